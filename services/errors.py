"""
Error types raised by the stylist services.

Transport failures (network, auth, quota) are not wrapped; they surface as
whatever the google-genai SDK raises.
"""


class StylistError(Exception):
    """Base class for application errors"""


class ConfigurationError(StylistError):
    """Missing or unusable configuration, e.g. no API key"""


class ValidationError(StylistError):
    """Required input missing; raised before any network call"""


class BusyError(StylistError):
    """A generation or refinement is already running for the session"""


class IllegalTransitionError(StylistError):
    """Session state change not allowed by the transition table"""


class SuggestionDecodeError(StylistError):
    """The suggestion response was not valid JSON of the expected shape"""


class ImageGenerationError(StylistError):
    """The image model returned no inline image"""


class ImageRefinementError(ImageGenerationError):
    """The image model returned no inline image for a refinement"""


class SessionNotFoundError(StylistError, KeyError):
    """Unknown or expired session id"""

    def __str__(self):
        return "Session not found or expired"
