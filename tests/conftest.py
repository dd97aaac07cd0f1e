"""
Shared fixtures: small Pillow-made images, a suggestion payload and a fake
Gemini client that records its calls.
"""

import io
from types import SimpleNamespace

import pytest
from PIL import Image
from google.genai import types

from models.schemas import EncodedImage, StyleSuggestion


def make_image_bytes(fmt="PNG", size=(16, 24), color=(200, 40, 40), mode="RGB"):
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, fmt)
    return buffer.getvalue()


SUGGESTION_PAYLOAD = {
    "faceShape": "Oval",
    "bodyShape": "Rectangle",
    "outfit": {
        "item": "Oversized graphic hoodie with cargo pants",
        "description": "Relaxed layers add shape to a straight silhouette.",
    },
    "sunglasses": {
        "item": "Rectangular acetate frames",
        "description": "Angular lines contrast the soft oval face.",
    },
    "accessories": {
        "item": "Silver chain and crossbody bag",
        "description": "Adds a focal point without crowding the look.",
    },
    "shoes": {
        "item": "Chunky white sneakers",
        "description": "Grounds the oversized top half.",
    },
    "overallReasoning": "A balanced streetwear look that builds curves and keeps proportions.",
}


class FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


class FakeClient:
    """Stand-in for genai.Client exposing only models.generate_content"""

    def __init__(self, response=None, error=None):
        self.models = FakeModels(response=response, error=error)

    @property
    def calls(self):
        return self.models.calls


def text_response(text):
    return SimpleNamespace(text=text, candidates=[])


def image_response(data, mime_type="image/png"):
    return types.GenerateContentResponse(candidates=[
        types.Candidate(content=types.Content(role="model", parts=[
            types.Part(inline_data=types.Blob(data=data, mime_type=mime_type)),
        ])),
    ])


def text_only_response(text):
    return types.GenerateContentResponse(candidates=[
        types.Candidate(content=types.Content(role="model", parts=[
            types.Part(text=text),
        ])),
    ])


def prompt_texts(call):
    """All text parts sent in a recorded call"""
    return [part.text for part in call["contents"][0].parts if part.text is not None]


@pytest.fixture
def closeup():
    return EncodedImage.from_bytes(make_image_bytes(color=(10, 20, 30)), "image/png")


@pytest.fixture
def full_body():
    return EncodedImage.from_bytes(make_image_bytes("JPEG", color=(90, 90, 90)), "image/jpeg")


@pytest.fixture
def suggestion():
    return StyleSuggestion.from_dict(SUGGESTION_PAYLOAD)
