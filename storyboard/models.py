"""
Storyboard data model.

Characters and storyboard items are immutable values. Every change
produces a new instance, and collections are republished with the
changed index replaced, so interleaved coroutines never lose updates.
"""
import base64
from dataclasses import dataclass, replace, field
from enum import Enum
from typing import Optional, Dict, Any, FrozenSet


class AspectRatio(str, Enum):
    """Output aspect ratios supported by the image model."""
    SQUARE = "1:1"
    WIDESCREEN = "16:9"


class ItemStatus(str, Enum):
    """Storyboard item states."""
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


# Pending -> Generating -> {Completed | Failed}; finished items re-enter via regeneration
ALLOWED_TRANSITIONS: Dict[ItemStatus, FrozenSet[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.GENERATING}),
    ItemStatus.GENERATING: frozenset({ItemStatus.COMPLETED, ItemStatus.FAILED}),
    ItemStatus.COMPLETED: frozenset({ItemStatus.GENERATING}),
    ItemStatus.FAILED: frozenset({ItemStatus.GENERATING}),
}

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


class InvalidTransitionError(ValueError):
    """Raised when an item is moved along an edge the state machine forbids."""

    def __init__(self, current: ItemStatus, target: ItemStatus):
        self.current = current
        self.target = target
        super().__init__(f"Invalid item transition: {current.value} -> {target.value}")


@dataclass(frozen=True)
class ImageBlob:
    """Owned image bytes with their mime type."""
    data: bytes
    mime_type: str = "image/png"

    @classmethod
    def from_base64(cls, encoded: str, mime_type: str = "image/png") -> "ImageBlob":
        return cls(data=base64.b64decode(encoded), mime_type=mime_type)

    @property
    def extension(self) -> str:
        return _EXTENSIONS.get(self.mime_type, "png")

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(frozen=True)
class Character:
    """A cast member and its reference portrait."""
    name: str
    age: str = ""
    gender: str = ""
    appearance: str = ""
    reference_image: Optional[ImageBlob] = None

    EDITABLE_FIELDS = ("name", "age", "gender", "appearance")

    @property
    def has_reference(self) -> bool:
        return self.reference_image is not None

    def with_reference(self, image: Optional[ImageBlob]) -> "Character":
        return replace(self, reference_image=image)

    def with_field(self, field_name: str, value: str) -> "Character":
        return replace(self, **{field_name: value})

    def context_line(self) -> str:
        """One-line trait summary used as planning context."""
        return f"{self.name} ({self.age} {self.gender}): {self.appearance}"

    def to_dict(self, include_image: bool = True) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "age": self.age,
            "gender": self.gender,
            "appearance": self.appearance,
            "has_reference": self.has_reference,
        }
        if include_image:
            data["reference_image"] = self.reference_image.to_data_url() if self.reference_image else None
        return data


@dataclass(frozen=True)
class StoryboardItem:
    """One planned scene and its generated image."""
    id: str
    prompt: str
    original_description: str
    status: ItemStatus = ItemStatus.PENDING
    image: Optional[ImageBlob] = field(default=None, repr=False)

    def __post_init__(self):
        if (self.image is not None) != (self.status == ItemStatus.COMPLETED):
            raise ValueError("An item carries an image if and only if it is completed")

    def _move(self, target: ItemStatus, image: Optional[ImageBlob] = None) -> "StoryboardItem":
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status, target)
        return replace(self, status=target, image=image)

    def start(self) -> "StoryboardItem":
        """Enter Generating; any previous image is dropped."""
        return self._move(ItemStatus.GENERATING)

    def complete(self, image: ImageBlob) -> "StoryboardItem":
        return self._move(ItemStatus.COMPLETED, image)

    def fail(self) -> "StoryboardItem":
        return self._move(ItemStatus.FAILED)

    @property
    def is_completed(self) -> bool:
        return self.status == ItemStatus.COMPLETED

    def to_dict(self, include_image: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "prompt": self.prompt,
            "original_description": self.original_description,
            "status": self.status.value,
        }
        if include_image:
            data["image"] = self.image.to_data_url() if self.image else None
        return data
