"""
Personal Stylist Services

This package contains service modules for the Personal Stylist application:
- errors: Error types
- gemini_client: Gemini client and part helpers
- image_ingestion: Upload validation and encoding
- style_advisor: Face/body analysis and outfit suggestions
- gemini_generator: Styled image generation and refinement
- session_manager: In-memory session store
- orchestrator: Generate and refine flows
"""

__all__ = [
    'errors',
    'gemini_client',
    'image_ingestion',
    'style_advisor',
    'gemini_generator',
    'session_manager',
    'orchestrator',
]
