"""
Data models for the Personal Stylist application
"""

from .schemas import (
    EncodedImage,
    SuggestionItem,
    StyleSuggestion,
    SessionState,
    Session,
    GenerationProgress
)

__all__ = [
    'EncodedImage',
    'SuggestionItem',
    'StyleSuggestion',
    'SessionState',
    'Session',
    'GenerationProgress'
]
