"""
Character Registry - the cast and their reference portraits.

The registry is the source of truth read by the planning and rendering
stages. Extraction replaces the whole cast; afterwards characters are
only edited in place, never added or removed.
"""
import logging
from typing import List, Optional, Tuple

from storyboard.models import Character, ImageBlob
from .exceptions import InvalidIndexError, InvalidFieldError

logger = logging.getLogger(__name__)


class CharacterRegistry:
    """Copy-on-write list of characters."""

    def __init__(self, characters: Optional[List[Character]] = None):
        self._characters: Tuple[Character, ...] = tuple(characters or ())
        # Bumped whenever the whole cast is replaced
        self.generation = 0

    def __len__(self) -> int:
        return len(self._characters)

    @property
    def characters(self) -> List[Character]:
        return list(self._characters)

    def get(self, index: int) -> Character:
        self._check_index(index)
        return self._characters[index]

    def set_all(self, characters: List[Character]):
        self._characters = tuple(characters)
        self.generation += 1
        logger.info(f"[REGISTRY] Cast replaced: {len(self._characters)} characters")

    def update(self, index: int, field_name: str, value: str) -> Character:
        """Replace one editable field. Stale reference images are kept."""
        if field_name not in Character.EDITABLE_FIELDS:
            raise InvalidFieldError(field_name)
        return self._replace(index, self.get(index).with_field(field_name, value))

    def set_reference_image(self, index: int, image: Optional[ImageBlob]) -> Character:
        return self._replace(index, self.get(index).with_reference(image))

    def is_finalized(self) -> bool:
        """True when every character has a reference image."""
        return all(c.has_reference for c in self._characters)

    def missing_references(self) -> List[str]:
        return [c.name for c in self._characters if not c.has_reference]

    def _replace(self, index: int, character: Character) -> Character:
        updated = list(self._characters)
        updated[index] = character
        self._characters = tuple(updated)
        return character

    def _check_index(self, index: int):
        if not 0 <= index < len(self._characters):
            raise InvalidIndexError("character", index, len(self._characters))
