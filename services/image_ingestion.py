"""
Image ingestion service

Turns uploaded photos into EncodedImages. Formats Gemini does not accept
inline (including HEIC from iPhones) are converted to JPEG first.
"""

import io
import logging
import mimetypes
from typing import Optional
from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError
from pillow_heif import register_heif_opener

from models.schemas import EncodedImage

# Register HEIF/HEIC support
register_heif_opener()

logger = logging.getLogger(__name__)

CONVERT_TO_JPEG = {
    'image/heic',
    'image/heif',
    'image/tiff',
    'image/x-icon',
}


def is_image_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.lower().startswith('image/')


def needs_conversion(mime_type: str) -> bool:
    """
    Check if image format needs conversion for Gemini compatibility.

    Args:
        mime_type: MIME type of the image

    Returns:
        True if conversion needed, False otherwise
    """
    return mime_type.lower() in CONVERT_TO_JPEG


def convert_to_jpeg(raw: bytes, quality: int = 95) -> bytes:
    """
    Re-encode image bytes as JPEG.

    Args:
        raw: Source image bytes in any format Pillow can open
        quality: JPEG quality (1-100, default 95)

    Returns:
        JPEG bytes
    """
    with Image.open(io.BytesIO(raw)) as img:
        # Flatten transparency onto white
        if img.mode in ('RGBA', 'LA', 'P'):
            if img.mode == 'P':
                img = img.convert('RGBA')
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            img = background
        elif img.mode != 'RGB':
            img = img.convert('RGB')

        output = io.BytesIO()
        img.save(output, 'JPEG', quality=quality, optimize=True)
        return output.getvalue()


def _is_decodable(raw: bytes) -> bool:
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.verify()
        return True
    except (UnidentifiedImageError, DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        logger.info("Rejected upload that is not a readable image: %s", e)
        return False


def encode_bytes(raw: bytes, content_type: Optional[str]) -> Optional[EncodedImage]:
    """
    Encode image bytes with their declared content type.

    Returns:
        EncodedImage, or None when the type is not an image type or the
        bytes do not decode as an image
    """
    if not raw or not is_image_type(content_type):
        return None

    if not _is_decodable(raw):
        return None

    mime_type = content_type.lower()
    if needs_conversion(mime_type):
        raw = convert_to_jpeg(raw)
        mime_type = 'image/jpeg'

    return EncodedImage.from_bytes(raw, mime_type)


def encode_upload(stream, content_type: Optional[str], filename: Optional[str] = None) -> Optional[EncodedImage]:
    """
    Encode a file uploaded from the browser.

    A missing file or a non-image type is "no image selected", not an
    error, and yields None.

    Args:
        stream: File-like object with the upload (e.g. FileStorage.stream)
        content_type: Declared MIME type of the upload
        filename: Original filename, used when no type was declared

    Returns:
        EncodedImage or None
    """
    if stream is None:
        return None

    if not content_type or content_type == 'application/octet-stream':
        guessed, _ = mimetypes.guess_type(filename or '')
        content_type = guessed or content_type

    if not is_image_type(content_type):
        logger.info("Ignoring upload %r with non-image type %r", filename, content_type)
        return None

    return encode_bytes(stream.read(), content_type)


def encode_file(path: str) -> Optional[EncodedImage]:
    """Encode a local image file; MIME type is guessed from its name"""
    mime_type, _ = mimetypes.guess_type(path)
    with open(path, 'rb') as f:
        return encode_bytes(f.read(), mime_type)
