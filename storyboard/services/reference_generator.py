"""
Reference Image Generator - one canonical portrait per character.

Portraits are generated concurrently without a bound (casts are small).
A failed portrait leaves that character without a reference and never
aborts its siblings.
"""
import asyncio
import logging
from typing import List, Optional

from storyboard.models import AspectRatio, Character, ImageBlob
from storyboard.styles import ImageStyle
from .character_registry import CharacterRegistry
from .prompts import build_profile_prompt

logger = logging.getLogger(__name__)


class ReferenceImageGenerator:

    def __init__(self, gateway):
        self.gateway = gateway

    async def generate_one(self, character: Character, style: ImageStyle) -> ImageBlob:
        """Render a portrait with no reference images. Raises on failure."""
        prompt = build_profile_prompt(character, style)
        return await self.gateway.render_image(prompt, [], AspectRatio.SQUARE)

    async def generate_all(self, registry: CharacterRegistry, style: ImageStyle) -> List[Character]:
        """
        Generate portraits for the whole cast.

        Each success is written back into the registry at its index as soon
        as it arrives. Returns the cast after all calls have settled.
        """
        cast = registry.characters
        generation = registry.generation
        logger.info(f"[REFERENCES] Generating {len(cast)} portraits ({style.value})")

        results = await asyncio.gather(*[
            self._generate_into(registry, generation, index, character, style)
            for index, character in enumerate(cast)
        ])

        logger.info(f"[REFERENCES] {sum(results)}/{len(cast)} portraits generated")
        return registry.characters

    async def regenerate_one(
        self,
        registry: CharacterRegistry,
        index: int,
        style: ImageStyle,
    ) -> Optional[ImageBlob]:
        """
        Replace one character's portrait.

        The reference reads as absent while the call is outstanding; on
        failure the previous image is restored unchanged.
        """
        character = registry.get(index)
        generation = registry.generation
        previous = character.reference_image
        registry.set_reference_image(index, None)

        try:
            image = await self.generate_one(character, style)
        except Exception as e:
            logger.error(f"[REFERENCES] Regeneration failed for {character.name}: {e}")
            self._write(registry, generation, index, character.name, previous)
            return None

        if not self._write(registry, generation, index, character.name, image):
            return None
        logger.info(f"[REFERENCES] Portrait regenerated for {character.name}")
        return image

    async def _generate_into(
        self,
        registry: CharacterRegistry,
        generation: int,
        index: int,
        character: Character,
        style: ImageStyle,
    ) -> bool:
        try:
            image = await self.generate_one(character, style)
        except Exception as e:
            logger.error(f"[REFERENCES] Portrait failed for {character.name}: {e}")
            return False

        return self._write(registry, generation, index, character.name, image)

    @staticmethod
    def _write(
        registry: CharacterRegistry,
        generation: int,
        index: int,
        name: str,
        image: Optional[ImageBlob],
    ) -> bool:
        # The cast may have been replaced while the call was outstanding
        if registry.generation != generation or index >= len(registry):
            logger.warning(f"[REFERENCES] Cast changed, dropping portrait for {name}")
            return False
        registry.set_reference_image(index, image)
        return True
