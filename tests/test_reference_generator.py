"""
Tests for reference portrait generation.
"""
import asyncio

import pytest

from conftest import FakeGateway, wait_until
from storyboard.models import AspectRatio, Character, ImageBlob
from storyboard.services.character_registry import CharacterRegistry
from storyboard.services.reference_generator import ReferenceImageGenerator
from storyboard.styles import ImageStyle, PROFILE_SPEED_HINT, STYLE_PROMPTS


class TestGenerateAll:

    @pytest.mark.asyncio
    async def test_portrait_per_character(self, sample_characters):
        gateway = FakeGateway()
        registry = CharacterRegistry(sample_characters)

        characters = await ReferenceImageGenerator(gateway).generate_all(registry, ImageStyle.WEBTOON)

        assert all(c.has_reference for c in characters)
        assert registry.is_finalized()
        assert len(gateway.render_calls) == 2
        for prompt, references, ratio in gateway.render_calls:
            assert references == []
            assert ratio == AspectRatio.SQUARE
            assert prompt.startswith(STYLE_PROMPTS[ImageStyle.WEBTOON])
            assert PROFILE_SPEED_HINT in prompt

    @pytest.mark.asyncio
    async def test_realistic_style_has_no_speed_hint(self, sample_characters):
        gateway = FakeGateway()
        registry = CharacterRegistry(sample_characters)

        await ReferenceImageGenerator(gateway).generate_all(registry, ImageStyle.REALISTIC)

        assert all(PROFILE_SPEED_HINT not in call[0] for call in gateway.render_calls)

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, sample_characters):
        gateway = FakeGateway(fail_on={"Joon"})
        registry = CharacterRegistry(sample_characters)

        await ReferenceImageGenerator(gateway).generate_all(registry, ImageStyle.WEBTOON)

        assert registry.get(0).has_reference
        assert not registry.get(1).has_reference
        assert registry.missing_references() == ["Joon"]

    @pytest.mark.asyncio
    async def test_portraits_run_concurrently(self, sample_characters):
        gateway = FakeGateway(render_delay=0.02)
        registry = CharacterRegistry(sample_characters)

        await ReferenceImageGenerator(gateway).generate_all(registry, ImageStyle.WEBTOON)

        assert gateway.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_rename_during_generation_keeps_portrait(self, sample_characters):
        gateway = FakeGateway()
        gateway.render_gate = asyncio.Event()
        registry = CharacterRegistry(sample_characters)

        task = asyncio.create_task(
            ReferenceImageGenerator(gateway).generate_all(registry, ImageStyle.WEBTOON)
        )
        await wait_until(lambda: gateway.in_flight == 2)
        registry.update(0, "name", "Mina Park")
        gateway.render_gate.set()
        await task

        assert registry.get(0).name == "Mina Park"
        assert registry.get(0).has_reference


class TestRegenerateOne:

    @pytest.mark.asyncio
    async def test_reference_absent_while_in_flight(self, finalized_characters):
        gateway = FakeGateway()
        gateway.render_gate = asyncio.Event()
        registry = CharacterRegistry(finalized_characters)
        generator = ReferenceImageGenerator(gateway)

        task = asyncio.create_task(generator.regenerate_one(registry, 0, ImageStyle.WEBTOON))
        await wait_until(lambda: gateway.in_flight == 1)

        assert not registry.get(0).has_reference
        assert not registry.is_finalized()

        gateway.render_gate.set()
        image = await task

        assert isinstance(image, ImageBlob)
        assert registry.get(0).reference_image == image
        assert registry.is_finalized()

    @pytest.mark.asyncio
    async def test_failure_restores_previous_image(self, sample_characters):
        previous = ImageBlob(b"previous-portrait")
        registry = CharacterRegistry([sample_characters[0].with_reference(previous)])
        gateway = FakeGateway(fail_on={"Mina"})

        result = await ReferenceImageGenerator(gateway).regenerate_one(registry, 0, ImageStyle.WEBTOON)

        assert result is None
        assert registry.get(0).reference_image == previous

    @pytest.mark.asyncio
    async def test_portrait_for_replaced_cast_is_dropped(self, finalized_characters):
        gateway = FakeGateway()
        gateway.render_gate = asyncio.Event()
        registry = CharacterRegistry(finalized_characters)

        task = asyncio.create_task(
            ReferenceImageGenerator(gateway).regenerate_one(registry, 0, ImageStyle.WEBTOON)
        )
        await wait_until(lambda: gateway.in_flight == 1)
        registry.set_all([Character(name="Hana")])
        gateway.render_gate.set()

        assert await task is None
        assert registry.get(0).name == "Hana"
        assert not registry.get(0).has_reference

    @pytest.mark.asyncio
    async def test_failed_regeneration_does_not_restore_onto_new_cast(self, finalized_characters):
        gateway = FakeGateway(fail_on={"Mina"})
        gateway.render_gate = asyncio.Event()
        registry = CharacterRegistry(finalized_characters)

        task = asyncio.create_task(
            ReferenceImageGenerator(gateway).regenerate_one(registry, 0, ImageStyle.WEBTOON)
        )
        await wait_until(lambda: gateway.in_flight == 1)
        registry.set_all([Character(name="Hana")])
        gateway.render_gate.set()
        await task

        assert not registry.get(0).has_reference
