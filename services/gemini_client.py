"""
Gemini client helpers

Client construction, multimodal part building and inline image extraction
shared by the suggestion and image generation services.
"""

import logging
from google import genai
from google.genai import types

import config
from models.schemas import EncodedImage
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def get_client(api_key=None):
    """
    Create a Gemini client.

    Args:
        api_key: Google API key (optional, reads from env)

    Returns:
        genai.Client

    Raises:
        ConfigurationError: If no API key is configured
    """
    if api_key is None:
        api_key = config.get_api_key()
        if not api_key:
            raise ConfigurationError("GOOGLE_API_KEY not found in environment variables")

    return genai.Client(api_key=api_key)


def image_part(image: EncodedImage) -> types.Part:
    """Inline image part for an EncodedImage"""
    return types.Part.from_bytes(data=image.raw_bytes, mime_type=image.mime_type)


def text_part(text: str) -> types.Part:
    return types.Part.from_text(text=text)


def user_content(parts):
    """Wrap parts in the single user turn sent to the model"""
    return [types.Content(role="user", parts=parts)]


def first_part(response):
    """First content part of the first candidate, or None"""
    if (
        not response.candidates
        or response.candidates[0].content is None
        or not response.candidates[0].content.parts
    ):
        return None
    return response.candidates[0].content.parts[0]


def extract_inline_image(response, error_cls, message):
    """
    Decode the image carried by the first response part.

    Args:
        response: GenerateContentResponse from the image model
        error_cls: Exception class raised when no image is present
        message: Message for that exception

    Returns:
        EncodedImage: The generated image

    Raises:
        error_cls: If the first part has no inline data or MIME type
    """
    part = first_part(response)
    inline_data = part.inline_data if part is not None else None

    if inline_data is None or not inline_data.data or not inline_data.mime_type:
        text = getattr(part, "text", None) if part is not None else None
        if text:
            logger.warning("Image model returned text instead of an image: %s", text[:200])
        raise error_cls(message)

    data = inline_data.data
    if isinstance(data, str):
        # Already base64 text
        return EncodedImage(mime_type=inline_data.mime_type, data=data)
    return EncodedImage.from_bytes(data, inline_data.mime_type)
