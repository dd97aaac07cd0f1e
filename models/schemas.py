"""
Data classes for the Personal Stylist application
"""

import base64
import binascii
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from services.errors import IllegalTransitionError

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(;[^;,]*)*),(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class EncodedImage:
    """Image bytes held as base64 text with their MIME type."""
    mime_type: str
    data: str

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str) -> "EncodedImage":
        return cls(mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))

    @classmethod
    def from_data_uri(cls, uri: str) -> "EncodedImage":
        """
        Parse a data URI such as ``data:image/jpeg;base64,/9j/...``.

        A missing MIME type falls back to image/png.

        Raises:
            ValueError: If the string is not a base64 data URI
        """
        match = _DATA_URI_RE.match(uri or "")
        if not match or ";base64" not in match.group("params"):
            raise ValueError("Not a base64 data URI")
        data = match.group("data")
        try:
            base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
        return cls(mime_type=match.group("mime") or "image/png", data=data)

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    @property
    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data)

    def to_dict(self) -> Dict[str, str]:
        return {"mime_type": self.mime_type, "data_uri": self.data_uri}

    def __str__(self):
        return self.data_uri


@dataclass(frozen=True)
class SuggestionItem:
    """One recommended item and why it was picked"""
    item: str
    description: str

    @classmethod
    def from_dict(cls, data) -> "SuggestionItem":
        if not isinstance(data, dict):
            raise ValueError("Suggestion item must be an object")
        for key in ("item", "description"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"Suggestion item is missing '{key}'")
        return cls(item=data["item"], description=data["description"])

    def to_dict(self) -> Dict[str, str]:
        return {"item": self.item, "description": self.description}


# (attribute, wire name, display title)
SUGGESTION_CATEGORIES = [
    ("outfit", "outfit", "Outfit"),
    ("sunglasses", "sunglasses", "Sunglasses"),
    ("accessories", "accessories", "Accessories"),
    ("shoes", "shoes", "Shoes"),
]


@dataclass(frozen=True)
class StyleSuggestion:
    """Face/body analysis plus four outfit categories"""
    face_shape: str
    body_shape: str
    outfit: SuggestionItem
    sunglasses: SuggestionItem
    accessories: SuggestionItem
    shoes: SuggestionItem
    overall_reasoning: str

    @classmethod
    def from_dict(cls, data) -> "StyleSuggestion":
        """
        Build from the JSON object returned by the model.

        Args:
            data: Decoded JSON using the wire field names (faceShape, ...)

        Raises:
            ValueError: If any of the seven fields is missing or mistyped
        """
        if not isinstance(data, dict):
            raise ValueError("Style suggestion must be a JSON object")

        for key in ("faceShape", "bodyShape", "overallReasoning"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"Style suggestion is missing '{key}'")

        items = {}
        for attr, wire_name, _ in SUGGESTION_CATEGORIES:
            if wire_name not in data:
                raise ValueError(f"Style suggestion is missing '{wire_name}'")
            items[attr] = SuggestionItem.from_dict(data[wire_name])

        return cls(
            face_shape=data["faceShape"],
            body_shape=data["bodyShape"],
            overall_reasoning=data["overallReasoning"],
            **items,
        )

    def items(self):
        """Yield (title, SuggestionItem) in display order"""
        for attr, _, title in SUGGESTION_CATEGORIES:
            yield title, getattr(self, attr)

    def to_dict(self) -> dict:
        result = {
            "faceShape": self.face_shape,
            "bodyShape": self.body_shape,
        }
        for attr, wire_name, _ in SUGGESTION_CATEGORIES:
            result[wire_name] = getattr(self, attr).to_dict()
        result["overallReasoning"] = self.overall_reasoning
        return result


class SessionState(Enum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"
    REFINING = "refining"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    SessionState.IDLE: {SessionState.GENERATING, SessionState.IDLE},
    SessionState.GENERATING: {SessionState.READY, SessionState.FAILED},
    SessionState.READY: {SessionState.GENERATING, SessionState.REFINING, SessionState.IDLE},
    SessionState.REFINING: {SessionState.READY},
    SessionState.FAILED: {SessionState.GENERATING, SessionState.IDLE},
}


@dataclass(frozen=True)
class Session:
    """
    State of one browser session.

    Records are immutable: every change produces a new Session which the
    SessionManager stores in place of the old one.
    """
    session_id: str
    state: SessionState = SessionState.IDLE
    closeup: Optional[EncodedImage] = None
    full_body: Optional[EncodedImage] = None
    occasion: str = ""
    style_category: str = ""
    suggestion: Optional[StyleSuggestion] = None
    styled_image: Optional[EncodedImage] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)

    @property
    def is_generating(self) -> bool:
        return self.state is SessionState.GENERATING

    @property
    def is_refining(self) -> bool:
        return self.state is SessionState.REFINING

    @property
    def is_busy(self) -> bool:
        return self.is_generating or self.is_refining

    @property
    def has_inputs(self) -> bool:
        return self.closeup is not None and self.full_body is not None

    def update(self, **changes) -> "Session":
        """Return a copy with the given fields changed and the same state"""
        changes.setdefault("last_updated", datetime.now())
        return replace(self, **changes)

    def transition(self, state: SessionState, **changes) -> "Session":
        """
        Return a copy moved to `state`.

        Raises:
            IllegalTransitionError: If the move is not in ALLOWED_TRANSITIONS
        """
        if state not in ALLOWED_TRANSITIONS[self.state]:
            raise IllegalTransitionError(
                f"Cannot move from {self.state.value} to {state.value}"
            )
        return self.update(state=state, **changes)

    def to_dict(self, include_images: bool = True) -> dict:
        result = {
            "session_id": self.session_id,
            "state": self.state.value,
            "is_generating": self.is_generating,
            "is_refining": self.is_refining,
            "has_closeup": self.closeup is not None,
            "has_full_body": self.full_body is not None,
            "occasion": self.occasion,
            "style_category": self.style_category,
            "suggestion": self.suggestion.to_dict() if self.suggestion else None,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }
        if include_images:
            result["styled_image"] = self.styled_image.data_uri if self.styled_image else None
        return result


@dataclass
class GenerationProgress:
    """Progress update pushed to the browser over Socket.IO"""
    step: str
    message: str
    progress_percent: int
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "message": self.message,
            "progress_percent": self.progress_percent,
            "details": self.details,
        }
