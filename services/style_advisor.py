"""
Style Advisor Service

Analyzes the closeup and full body photos with Gemini and returns a
structured styling recommendation (face shape, body shape and four outfit
categories) decoded from schema-constrained JSON.
"""

import json
import logging
from google.genai import types

import config
from models.schemas import EncodedImage, StyleSuggestion
from .errors import SuggestionDecodeError
from .gemini_client import get_client, image_part, text_part, user_content

logger = logging.getLogger(__name__)

OCCASION_PLACEHOLDER = "Not specified"
CREATIVE_FREEDOM = "You have complete creative freedom."

DECODE_ERROR_MESSAGE = "Failed to get style suggestions. The AI's response was not valid JSON."

_SUGGESTION_ITEM_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "item": types.Schema(
            type=types.Type.STRING,
            description="The name of the suggested item (e.g., 'Classic Aviator Sunglasses').",
        ),
        "description": types.Schema(
            type=types.Type.STRING,
            description="A brief reason why this item is a good choice for the user.",
        ),
    },
    required=["item", "description"],
)

SUGGESTION_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "faceShape": types.Schema(
            type=types.Type.STRING,
            description="The identified face shape of the person.",
        ),
        "bodyShape": types.Schema(
            type=types.Type.STRING,
            description="The identified body shape of the person.",
        ),
        "outfit": _SUGGESTION_ITEM_SCHEMA,
        "sunglasses": _SUGGESTION_ITEM_SCHEMA,
        "accessories": _SUGGESTION_ITEM_SCHEMA,
        "shoes": _SUGGESTION_ITEM_SCHEMA,
        "overallReasoning": types.Schema(
            type=types.Type.STRING,
            description="A summary explaining the styling choices.",
        ),
    },
    required=[
        "faceShape",
        "bodyShape",
        "outfit",
        "sunglasses",
        "accessories",
        "shoes",
        "overallReasoning",
    ],
)


def describe_style_preference(style_category):
    """Style line for the prompt; blank or 'Let AI Decide' leaves it open"""
    if not style_category or style_category == config.DEFAULT_STYLE:
        return CREATIVE_FREEDOM
    return style_category


def build_suggestion_prompt(occasion, style_category):
    """
    Build the stylist instruction for the analysis request.

    Args:
        occasion: Free-text occasion (may be empty)
        style_category: Selected style preference (may be empty)

    Returns:
        str: Prompt text
    """
    return f"""You are a world-class AI personal stylist. Your task is to analyze two photos of a person (a closeup and a full body shot) to determine their face and body shape, and then create a complete, personalized style recommendation.

**CONTEXT:**
- **Occasion:** {occasion or OCCASION_PLACEHOLDER}
- **Preferred Style:** {describe_style_preference(style_category)}

**ANALYSIS:**
1. **Analyze Face Shape:** From the closeup photo, identify the person's face shape (e.g., Oval, Round, Square, Heart, Diamond).
2. **Analyze Body Shape:** From the full body photo, identify the person's body shape (e.g., Hourglass, Pear, Apple, Rectangle, Inverted Triangle).

**RECOMMENDATIONS:**
Based on your analysis and the provided context, create a full outfit recommendation covering the following categories. Be specific and fashionable.
- **Outfit:** Describe a complete outfit.
- **Sunglasses:** Recommend a style that complements the identified face shape.
- **Accessories:** Suggest items like a watch, necklace, bracelet, or bag.
- **Shoes:** Recommend footwear that completes the look.

**REASONING:**
Provide an "overallReasoning" explaining why this combination of items creates a cohesive and flattering look for this specific person, considering their features, the occasion, and the style preference.

**CRITICAL OUTPUT FORMATTING RULES:**
- You MUST output a single, raw, valid JSON object.
- Do NOT wrap the JSON in markdown backticks.
- Do NOT add any text before or after the JSON object.
- The JSON object must strictly adhere to the provided schema."""


def parse_suggestion(response_text):
    """
    Decode the model's JSON text into a StyleSuggestion.

    Raises:
        SuggestionDecodeError: If the text is not JSON of the expected shape
    """
    try:
        return StyleSuggestion.from_dict(json.loads(response_text))
    except (TypeError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        logger.error("Error parsing JSON response: %s. Response text: %r", e, response_text)
        raise SuggestionDecodeError(DECODE_ERROR_MESSAGE) from e


def generate_style_suggestions(closeup: EncodedImage, full_body: EncodedImage,
                               occasion: str, style_category: str,
                               client=None) -> StyleSuggestion:
    """
    Ask Gemini for a face/body analysis and outfit recommendation.

    Args:
        closeup: Closeup photo (for face shape)
        full_body: Full body photo (for body shape)
        occasion: Free-text occasion, may be empty
        style_category: Style preference, may be empty or "Let AI Decide"
        client: genai.Client (optional, built from env)

    Returns:
        StyleSuggestion

    Raises:
        SuggestionDecodeError: If the response is not valid suggestion JSON
        ConfigurationError: If no client is given and no API key is set
    """
    if client is None:
        client = get_client()

    parts = [
        text_part(build_suggestion_prompt(occasion, style_category)),
        text_part("Closeup Photo:"),
        image_part(closeup),
        text_part("Full Body Photo:"),
        image_part(full_body),
    ]

    generate_content_config = types.GenerateContentConfig(
        response_mime_type="application/json",
        response_schema=SUGGESTION_SCHEMA,
    )

    logger.info("Requesting style suggestions from %s", config.SUGGESTION_MODEL)
    response = client.models.generate_content(
        model=config.SUGGESTION_MODEL,
        contents=user_content(parts),
        config=generate_content_config,
    )

    return parse_suggestion(response.text)
