"""
Personal Stylist configuration

Environment-based settings, loaded from .env when present.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def get_api_key():
    """Return the Gemini API key from the environment, or None."""
    return os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")


# Gemini models
SUGGESTION_MODEL = os.getenv("SUGGESTION_MODEL", "gemini-2.5-flash")
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "gemini-2.5-flash-image")

# Styled image output
IMAGE_ASPECT_RATIO = os.getenv("IMAGE_ASPECT_RATIO", "9:16")
IMAGE_SIZE = os.getenv("IMAGE_SIZE") or None  # e.g. "2K" on models that support it

# Web server
PORT = int(os.getenv("PORT", "5001"))
SECRET_KEY = os.getenv("SECRET_KEY", "stylist-secret-key-change-in-production")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "20"))
SESSION_TIMEOUT_MINUTES = int(os.getenv("SESSION_TIMEOUT_MINUTES", "60"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Style preferences offered in the UI
DEFAULT_STYLE = "Let AI Decide"
STYLE_OPTIONS = [
    DEFAULT_STYLE,
    "Streetwear",
    "Casual",
    "Business Casual",
    "Formal",
    "Vintage",
    "Bohemian",
    "Minimalist",
    "Sporty",
]

DOWNLOAD_FILENAME = "ai-styled-look.png"
