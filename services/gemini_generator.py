"""
Gemini Image Generation Service

Renders the styled look with Gemini's image model and applies follow-up
edits to an already generated image.
"""

import logging
from google.genai import types

import config
from models.schemas import EncodedImage, StyleSuggestion
from .errors import ImageGenerationError, ImageRefinementError, ValidationError
from .gemini_client import (
    extract_inline_image,
    get_client,
    image_part,
    text_part,
    user_content,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTING = "A fashionable, neutral setting"
DEFAULT_AESTHETIC = "Modern and fashionable"

GENERATION_FAILED = "Image generation failed. The AI did not return an image."
REFINEMENT_FAILED = "Image refinement failed. The AI did not return an image."


def _image_config():
    return types.GenerateContentConfig(
        response_modalities=["IMAGE"],
        image_config=types.ImageConfig(
            aspect_ratio=config.IMAGE_ASPECT_RATIO,
            image_size=config.IMAGE_SIZE,
        ),
    )


def build_styled_image_prompt(suggestions: StyleSuggestion, occasion, style_category):
    """
    Build the rendering instruction for the styled look.

    Args:
        suggestions: The StyleSuggestion to dress the person in
        occasion: Free-text occasion (may be empty)
        style_category: Selected style (may be empty or "Let AI Decide")

    Returns:
        str: Prompt text
    """
    if not style_category or style_category == config.DEFAULT_STYLE:
        aesthetic = DEFAULT_AESTHETIC
    else:
        aesthetic = style_category

    outfit_lines = "\n".join(
        f"    - **{title}:** {item.item} - {item.description}"
        for title, item in suggestions.items()
    )

    return f"""**ABSOLUTE HIGHEST PRIORITY: 100% FACE REPLICATION**
- The single most important instruction is to replicate the person's face from the "CLOSEUP PHOTO" with 100% accuracy.
- The generated face **MUST be a perfect, photorealistic, and exact copy** of the user's face.
- **DO NOT ALTER** any facial features, skin tone, hair style, or expression. The likeness must be preserved perfectly. This is not optional.

**GOAL:** Generate a photorealistic, high-resolution, full-body image of the person from the photos, styled in the recommended outfit.

**OTHER CRITICAL INSTRUCTIONS (MUST BE FOLLOWED):**

1. **BODY SHAPE MATCH:**
    - The body shape in the generated image **MUST** match the body shape in the "FULL BODY PHOTO".

2. **STYLED OUTFIT:**
    - Dress the person in the following outfit. Adhere to the descriptions precisely.
{outfit_lines}

3. **BACKGROUND & AESTHETIC:**
    - The background should be a stylish and appropriate setting for the occasion: **"{occasion or DEFAULT_SETTING}"**.
    - The overall image style should be: **"{aesthetic}"**.
    - The final image should look like a professional fashion lookbook photo.

4. **IMAGE FORMAT:**
    - Generate the image with a **9:16 aspect ratio** (portrait mode), suitable for social media stories.
    - Output at the highest possible resolution."""


def build_refinement_prompt(instruction):
    return f"""**ABSOLUTE HIGHEST PRIORITY: 100% FACE PRESERVATION**
- The single most important instruction is to preserve the person's face from the "REFERENCE CLOSEUP PHOTO" with 100% accuracy.
- The face in the final edited image **MUST remain a perfect, photorealistic, and exact copy** of the face in the closeup photo.
- **DO NOT ALTER** any facial features, skin tone, hair style, or expression. The likeness must be preserved perfectly. This is not optional.

**GOAL:** Edit the provided "BASE IMAGE" according to the user's instructions while strictly preserving the person's face.

**OTHER CRITICAL INSTRUCTIONS (MUST BE FOLLOWED):**

1. **APPLY USER'S EDIT:**
    - Read the "EDIT INSTRUCTION" carefully.
    - Apply the following change to the "BASE IMAGE": **"{instruction}"**
    - Only apply the requested change. Do not alter other parts of the outfit or background unless instructed to.

2. **MAINTAIN QUALITY & COMPOSITION:**
    - The output image should be a high-resolution, photorealistic photo.
    - Maintain the original image's composition, lighting, and 9:16 aspect ratio."""


def synthesize_styled_image(closeup: EncodedImage, full_body: EncodedImage,
                            suggestions: StyleSuggestion, occasion: str,
                            style_category: str, client=None) -> EncodedImage:
    """
    Generate a full-body image of the person wearing the suggested look.

    Args:
        closeup: Closeup photo, the face reference
        full_body: Full body photo, the body shape reference
        suggestions: StyleSuggestion from the style advisor
        occasion: Free-text occasion, may be empty
        style_category: Style preference, may be empty
        client: genai.Client (optional, built from env)

    Returns:
        EncodedImage: The generated image

    Raises:
        ImageGenerationError: If the model returns no image
    """
    if client is None:
        client = get_client()

    parts = [
        text_part(build_styled_image_prompt(suggestions, occasion, style_category)),
        text_part("REFERENCE CLOSEUP PHOTO (FOR FACE):"),
        image_part(closeup),
        text_part("REFERENCE FULL BODY PHOTO (FOR BODY):"),
        image_part(full_body),
    ]

    logger.info("Generating styled image with %s", config.IMAGE_MODEL)
    response = client.models.generate_content(
        model=config.IMAGE_MODEL,
        contents=user_content(parts),
        config=_image_config(),
    )

    image = extract_inline_image(response, ImageGenerationError, GENERATION_FAILED)
    logger.info("Styled image generated (%s)", image.mime_type)
    return image


def refine_styled_image(base_image: EncodedImage, instruction: str,
                        closeup: EncodedImage, client=None) -> EncodedImage:
    """
    Apply a user edit to a previously generated image.

    Each call is independent; pass the last result back in as `base_image`
    to chain edits.

    Args:
        base_image: The image to edit
        instruction: User's edit request, inserted verbatim
        closeup: Closeup photo, the face reference
        client: genai.Client (optional, built from env)

    Returns:
        EncodedImage: The edited image

    Raises:
        ValidationError: If the instruction is blank
        ImageRefinementError: If the model returns no image
    """
    if not instruction or not instruction.strip():
        raise ValidationError("Please describe the change you want to make.")

    if client is None:
        client = get_client()

    parts = [
        text_part(build_refinement_prompt(instruction)),
        text_part("EDIT INSTRUCTION:"),
        text_part(instruction),
        text_part("BASE IMAGE (TO BE EDITED):"),
        image_part(base_image),
        text_part("REFERENCE CLOSEUP PHOTO (FOR FACE):"),
        image_part(closeup),
    ]

    logger.info("Refining styled image with %s", config.IMAGE_MODEL)
    response = client.models.generate_content(
        model=config.IMAGE_MODEL,
        contents=user_content(parts),
        config=_image_config(),
    )

    return extract_inline_image(response, ImageRefinementError, REFINEMENT_FAILED)
