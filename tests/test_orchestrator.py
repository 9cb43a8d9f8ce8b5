"""
Tests for the storyboard batch orchestrator.
"""
import asyncio

import pytest

from conftest import FakeGateway, wait_until
from storyboard.models import AspectRatio, ItemStatus
from storyboard.providers.exceptions import PlanningFailure
from storyboard.services.character_registry import CharacterRegistry
from storyboard.services.exceptions import InvalidIndexError, ItemBusyError, ReferencesNotReadyError
from storyboard.services.orchestrator import PLANNING_FAILED_MESSAGE, StoryboardOrchestrator
from storyboard.styles import ImageStyle, SCENE_SPEED_HINT

STYLE = ImageStyle.SEMI_REALISTIC_WEBTOON


@pytest.fixture
def registry(finalized_characters):
    return CharacterRegistry(finalized_characters)


class TestRunBatch:

    @pytest.mark.asyncio
    async def test_happy_path(self, registry, sample_script):
        gateway = FakeGateway()
        orchestrator = StoryboardOrchestrator(gateway)

        handle = await orchestrator.run_batch(sample_script, registry, STYLE, 4)

        items = orchestrator.items
        assert [item.original_description for item in items] == [f"Scene number {i}" for i in range(1, 5)]
        assert all(item.status == ItemStatus.COMPLETED for item in items)
        assert all(item.image is not None for item in items)
        assert len({item.id for item in items}) == 4
        assert handle.progress == 100
        assert handle.finished and not handle.running
        assert handle.error is None

        assert gateway.plan_calls[0][2] == 4
        for prompt, references, ratio in gateway.render_calls:
            assert ratio == AspectRatio.WIDESCREEN
            assert [r.label for r in references] == ["Mina", "Joon"]
            assert "Scene: Scene number" in prompt
            assert SCENE_SPEED_HINT in prompt

    @pytest.mark.asyncio
    async def test_at_most_chunk_size_renders_in_flight(self, registry):
        gateway = FakeGateway(render_delay=0.01)
        orchestrator = StoryboardOrchestrator(gateway, chunk_size=8)

        await orchestrator.run_batch("script", registry, STYLE, 20)

        assert len(gateway.render_calls) == 20
        assert gateway.max_in_flight == 8

    @pytest.mark.asyncio
    async def test_chunks_run_sequentially(self, registry):
        gateway = FakeGateway()
        gateway.render_gate = asyncio.Event()
        orchestrator = StoryboardOrchestrator(gateway, chunk_size=8)

        handle = orchestrator.new_handle()
        task = asyncio.create_task(orchestrator.run_batch("script", registry, STYLE, 12, handle))
        await wait_until(lambda: gateway.in_flight == 8)
        await asyncio.sleep(0.01)

        # Second chunk waits for the first to settle
        assert len(gateway.render_calls) == 8
        assert handle.progress == 0
        statuses = [item.status for item in orchestrator.items]
        assert statuses == [ItemStatus.GENERATING] * 8 + [ItemStatus.PENDING] * 4

        gateway.render_gate.set()
        await task
        assert len(gateway.render_calls) == 12

    @pytest.mark.asyncio
    async def test_progress_per_chunk(self, registry):
        gateway = FakeGateway()
        seen = []
        orchestrator = StoryboardOrchestrator(gateway, chunk_size=4)
        handle = orchestrator.new_handle()

        async def watch():
            while not handle.finished:
                if not seen or seen[-1] != handle.progress:
                    seen.append(handle.progress)
                await asyncio.sleep(0)

        watcher = asyncio.create_task(watch())
        await orchestrator.run_batch("script", registry, STYLE, 10, handle)
        await watcher

        assert handle.progress == 100
        assert set(seen) <= {0, 40, 80, 100}

    @pytest.mark.asyncio
    async def test_largest_storyboard_keeps_order_and_bound(self, registry):
        gateway = FakeGateway(render_delay=0.001)
        orchestrator = StoryboardOrchestrator(gateway, chunk_size=8)
        handle = orchestrator.new_handle()
        seen = []
        orchestrator.on_change = lambda items: seen.append(handle.progress)

        await orchestrator.run_batch("script", registry, STYLE, 99, handle)

        items = orchestrator.items
        assert [item.original_description for item in items] == [f"Scene number {i}" for i in range(1, 100)]
        assert all(item.is_completed for item in items)
        assert len(gateway.render_calls) == 99
        assert gateway.max_in_flight == 8
        # 12 full chunks then a chunk of 3
        assert sorted(set(seen)) == [0] + [int(8 * k / 99 * 100 + 0.5) for k in range(1, 13)]
        assert handle.progress == 100

    @pytest.mark.asyncio
    async def test_progress_rounds_halves_up(self, registry):
        gateway = FakeGateway()
        orchestrator = StoryboardOrchestrator(gateway, chunk_size=8)
        handle = orchestrator.new_handle()
        seen = []
        orchestrator.on_change = lambda items: seen.append(handle.progress)

        await orchestrator.run_batch("script", registry, STYLE, 64, handle)

        assert sorted(set(seen)) == [0, 13, 25, 38, 50, 63, 75, 88]
        assert handle.progress == 100

    @pytest.mark.asyncio
    async def test_failed_items_do_not_abort_batch(self, registry):
        gateway = FakeGateway(scenes=["a quiet street", "an explosion", "a calm lake", "a sunrise"],
                              fail_on={"explosion"})
        orchestrator = StoryboardOrchestrator(gateway)

        await orchestrator.run_batch("script", registry, STYLE, 4)

        statuses = [item.status for item in orchestrator.items]
        assert statuses == [ItemStatus.COMPLETED, ItemStatus.FAILED, ItemStatus.COMPLETED, ItemStatus.COMPLETED]
        assert orchestrator.items[1].image is None

    @pytest.mark.asyncio
    async def test_refuses_without_references(self, sample_characters):
        gateway = FakeGateway()
        orchestrator = StoryboardOrchestrator(gateway)
        registry = CharacterRegistry(sample_characters)

        with pytest.raises(ReferencesNotReadyError) as exc_info:
            await orchestrator.run_batch("script", registry, STYLE, 4)

        assert exc_info.value.missing == ["Mina", "Joon"]
        assert gateway.plan_calls == []
        assert gateway.render_calls == []

    @pytest.mark.asyncio
    async def test_refusal_leaves_previous_items(self, registry):
        gateway = FakeGateway()
        orchestrator = StoryboardOrchestrator(gateway)
        await orchestrator.run_batch("script", registry, STYLE, 4)
        previous = orchestrator.items

        registry.set_reference_image(1, None)
        with pytest.raises(ReferencesNotReadyError):
            await orchestrator.run_batch("script", registry, STYLE, 4)

        assert orchestrator.items == previous
        assert len(gateway.plan_calls) == 1

    @pytest.mark.asyncio
    async def test_planning_failure_ends_with_no_items(self, registry):
        gateway = FakeGateway()
        gateway.plan_error = PlanningFailure("fake", "Invalid JSON")
        orchestrator = StoryboardOrchestrator(gateway)

        handle = await orchestrator.run_batch("script", registry, STYLE, 4)

        assert orchestrator.items == []
        assert handle.error == PLANNING_FAILED_MESSAGE
        assert handle.finished
        assert gateway.render_calls == []

    @pytest.mark.asyncio
    async def test_empty_plan_ends_with_no_items(self, registry):
        gateway = FakeGateway(scenes=[])
        orchestrator = StoryboardOrchestrator(gateway)

        handle = await orchestrator.run_batch("script", registry, STYLE, 4)

        assert orchestrator.items == []
        assert handle.error == PLANNING_FAILED_MESSAGE

    @pytest.mark.asyncio
    async def test_under_production_renders_what_was_planned(self, registry):
        gateway = FakeGateway(scenes=["one", "two"])
        orchestrator = StoryboardOrchestrator(gateway)

        handle = await orchestrator.run_batch("script", registry, STYLE, 4)

        assert len(orchestrator.items) == 2
        assert handle.total == 2
        assert handle.progress == 100

    @pytest.mark.asyncio
    async def test_on_change_receives_every_publication(self, registry):
        gateway = FakeGateway()
        published = []
        orchestrator = StoryboardOrchestrator(gateway, on_change=published.append)

        await orchestrator.run_batch("script", registry, STYLE, 4)

        assert published[0] == []
        assert all(item.status == ItemStatus.PENDING for item in published[1])
        assert published[-1] == orchestrator.items


class TestStop:

    @pytest.mark.asyncio
    async def test_stop_during_planning_creates_no_items(self, registry):
        gateway = FakeGateway()
        gateway.plan_gate = asyncio.Event()
        orchestrator = StoryboardOrchestrator(gateway)
        handle = orchestrator.new_handle()

        task = asyncio.create_task(orchestrator.run_batch("script", registry, STYLE, 4, handle))
        await wait_until(lambda: gateway.plan_calls)
        handle.stop()
        gateway.plan_gate.set()
        await task

        assert orchestrator.items == []
        assert gateway.render_calls == []
        assert handle.finished

    @pytest.mark.asyncio
    async def test_stop_lets_in_flight_finish_and_skips_the_rest(self, registry):
        gateway = FakeGateway()
        gateway.render_gate = asyncio.Event()
        orchestrator = StoryboardOrchestrator(gateway, chunk_size=8)
        handle = orchestrator.new_handle()

        task = asyncio.create_task(orchestrator.run_batch("script", registry, STYLE, 16, handle))
        await wait_until(lambda: gateway.in_flight == 8)
        handle.stop()
        handle.stop()
        gateway.render_gate.set()
        await task

        statuses = [item.status for item in orchestrator.items]
        assert statuses == [ItemStatus.COMPLETED] * 8 + [ItemStatus.PENDING] * 8
        assert len(gateway.render_calls) == 8
        # Skipped chunks still count toward progress
        assert handle.progress == 100
        assert handle.stop_requested
        assert not handle.running

    @pytest.mark.asyncio
    async def test_each_batch_gets_a_fresh_handle(self, registry):
        gateway = FakeGateway()
        orchestrator = StoryboardOrchestrator(gateway)

        first = orchestrator.new_handle()
        first.stop()
        await orchestrator.run_batch("script", registry, STYLE, 4, first)
        assert orchestrator.items == []

        second = await orchestrator.run_batch("script", registry, STYLE, 4)
        assert second.batch_id != first.batch_id
        assert all(item.is_completed for item in orchestrator.items)


class TestRegenerateItem:

    @pytest.mark.asyncio
    async def test_regenerate_failed_item(self, registry):
        gateway = FakeGateway(scenes=["calm", "storm", "calm again", "dawn"], fail_on={"storm"})
        orchestrator = StoryboardOrchestrator(gateway)
        await orchestrator.run_batch("script", registry, STYLE, 4)
        assert orchestrator.items[1].status == ItemStatus.FAILED

        gateway.fail_on.clear()
        item = await orchestrator.regenerate_item(1, registry, STYLE)

        assert item.status == ItemStatus.COMPLETED
        assert orchestrator.items[1] == item
        assert item.prompt == "storm"

    @pytest.mark.asyncio
    async def test_regenerate_uses_current_style_and_references(self, registry, png_image):
        gateway = FakeGateway()
        orchestrator = StoryboardOrchestrator(gateway)
        await orchestrator.run_batch("script", registry, STYLE, 4)

        await orchestrator.regenerate_item(0, registry, ImageStyle.REALISTIC)

        prompt, references, ratio = gateway.render_calls[-1]
        assert SCENE_SPEED_HINT not in prompt
        assert [r.label for r in references] == ["Mina", "Joon"]
        assert ratio == AspectRatio.WIDESCREEN

    @pytest.mark.asyncio
    async def test_regenerate_completed_item_drops_image_while_generating(self, registry):
        gateway = FakeGateway()
        orchestrator = StoryboardOrchestrator(gateway)
        await orchestrator.run_batch("script", registry, STYLE, 4)

        gateway.render_gate = asyncio.Event()
        task = asyncio.create_task(orchestrator.regenerate_item(2, registry, STYLE))
        await wait_until(lambda: gateway.in_flight == 1)

        assert orchestrator.items[2].status == ItemStatus.GENERATING
        assert orchestrator.items[2].image is None

        with pytest.raises(ItemBusyError):
            await orchestrator.regenerate_item(2, registry, STYLE)

        gateway.render_gate.set()
        await task
        assert orchestrator.items[2].is_completed

    @pytest.mark.asyncio
    async def test_regenerate_out_of_range(self, registry):
        orchestrator = StoryboardOrchestrator(FakeGateway())

        with pytest.raises(InvalidIndexError):
            await orchestrator.regenerate_item(0, registry, STYLE)

    @pytest.mark.asyncio
    async def test_late_result_for_replaced_item_is_dropped(self, registry):
        gateway = FakeGateway()
        orchestrator = StoryboardOrchestrator(gateway)
        await orchestrator.run_batch("script", registry, STYLE, 4)

        gateway.render_gate = asyncio.Event()
        task = asyncio.create_task(orchestrator.regenerate_item(0, registry, STYLE))
        await wait_until(lambda: gateway.in_flight == 1)

        # A new storyboard replaces the list while the old call is outstanding
        orchestrator.clear()
        gateway.render_gate.set()
        await task

        assert orchestrator.items == []


class TestConstruction:

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValueError):
            StoryboardOrchestrator(FakeGateway(), chunk_size=0)
