"""
Storyboard Orchestrator - planned scenes to finished images.

Batch flow:
1. Refuse unless every character has a reference image
2. Plan the scene list (abort with no items if stopped meanwhile)
3. Publish one Pending item per scene, in scene order
4. Render items in sequential chunks; items within a chunk run
   concurrently, so at most `chunk_size` render calls are in flight
5. Update progress after every chunk, including chunks skipped after a stop

Cancellation is cooperative: BatchHandle.stop() prevents new render
calls from starting but never aborts calls already issued.

The item collection is republished copy-on-write on every change, and
each write is addressed by index and checked against the item id, so
late results from a previous batch never land in the current one.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from storyboard.models import AspectRatio, ItemStatus, InvalidTransitionError, StoryboardItem
from storyboard.providers.exceptions import ProviderError
from storyboard.providers.gemini import ReferenceImage
from storyboard.styles import ImageStyle
from .character_registry import CharacterRegistry
from .exceptions import ReferencesNotReadyError, ItemBusyError, InvalidIndexError
from .prompts import build_scene_prompt, scene_references
from .scene_planner import ScenePlanner

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8

PLANNING_FAILED_MESSAGE = "Scene generation produced nothing usable. Please try again."


@dataclass
class BatchHandle:
    """Caller-side view of one batch: stop flag, progress and outcome."""
    batch_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    progress: int = 0
    total: int = 0
    running: bool = False
    finished: bool = False
    error: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    _stop_requested: bool = False

    def stop(self):
        """Request cooperative cancellation. Idempotent."""
        if not self._stop_requested:
            logger.info(f"[ORCHESTRATOR] Stop requested for batch {self.batch_id}")
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "progress": self.progress,
            "total": self.total,
            "running": self.running,
            "finished": self.finished,
            "stopped": self._stop_requested,
            "error": self.error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


class StoryboardOrchestrator:
    """
    Owns the storyboard item list for one session.

    Args:
        gateway: model gateway used for scene renders
        planner: scene planner (defaults to one on the same gateway)
        chunk_size: maximum concurrent render calls during a batch
        on_change: optional callback invoked with the new item list
            after every published change
    """

    def __init__(
        self,
        gateway,
        planner: Optional[ScenePlanner] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_change: Optional[Callable[[List[StoryboardItem]], None]] = None,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.gateway = gateway
        self.planner = planner or ScenePlanner(gateway)
        self.chunk_size = chunk_size
        self.on_change = on_change
        self._items: Tuple[StoryboardItem, ...] = ()

    @property
    def items(self) -> List[StoryboardItem]:
        return list(self._items)

    def new_handle(self) -> BatchHandle:
        return BatchHandle()

    def clear(self):
        """Discard the current item list."""
        self._publish(())

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def run_batch(
        self,
        script: str,
        registry: CharacterRegistry,
        style: ImageStyle,
        count: int,
        handle: Optional[BatchHandle] = None,
    ) -> BatchHandle:
        """
        Plan and render a full storyboard.

        Raises:
            ReferencesNotReadyError: some character has no reference image;
                nothing is planned and the current items are untouched
        """
        if not registry.is_finalized():
            raise ReferencesNotReadyError(registry.missing_references())

        handle = handle or self.new_handle()
        handle.running = True
        handle.started_at = datetime.now(timezone.utc).isoformat()

        logger.info("=" * 60)
        logger.info(f"[ORCHESTRATOR] BATCH {handle.batch_id} STARTED")
        logger.info(f"  Style: {style.value}")
        logger.info(f"  Scenes requested: {count}")
        logger.info(f"  Characters: {len(registry)}")
        logger.info(f"  Chunk size: {self.chunk_size}")
        logger.info("=" * 60)

        self._publish(())
        try:
            await self._run(script, registry, style, count, handle)
        finally:
            handle.running = False
            handle.finished = True
            handle.finished_at = datetime.now(timezone.utc).isoformat()
            self._log_summary(handle)

        return handle

    async def _run(
        self,
        script: str,
        registry: CharacterRegistry,
        style: ImageStyle,
        count: int,
        handle: BatchHandle,
    ):
        characters = registry.characters

        try:
            scenes = await self.planner.plan(script, characters, count)
        except ProviderError as e:
            logger.error(f"[ORCHESTRATOR] Scene planning failed: {e}")
            handle.error = PLANNING_FAILED_MESSAGE
            return

        if handle.stop_requested:
            logger.info("[ORCHESTRATOR] Stopped before rendering, no items created")
            return

        if not scenes:
            handle.error = PLANNING_FAILED_MESSAGE
            return

        items = tuple(
            StoryboardItem(
                id=f"item-{index}-{handle.batch_id}",
                prompt=scene,
                original_description=scene,
            )
            for index, scene in enumerate(scenes)
        )
        handle.total = len(items)
        self._publish(items)

        # References are fixed for the whole batch
        references = scene_references(characters)

        for start in range(0, len(items), self.chunk_size):
            chunk = items[start:start + self.chunk_size]
            await asyncio.gather(*[
                self._render_item(start + offset, item, style, references, handle)
                for offset, item in enumerate(chunk)
            ])
            # Halves round up
            done = min(start + self.chunk_size, len(items))
            handle.progress = int(done / len(items) * 100 + 0.5)
            logger.info(f"[ORCHESTRATOR] Progress {handle.progress}%")

    async def _render_item(
        self,
        index: int,
        item: StoryboardItem,
        style: ImageStyle,
        references: List[ReferenceImage],
        handle: BatchHandle,
    ):
        if handle.stop_requested:
            return

        # Skip items that were picked up by a single-item regeneration
        current = self._current(index, item.id)
        if current is None or current.status != ItemStatus.PENDING:
            return

        await self._generate(index, item.id, item.prompt, style, references)

    # ------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------

    async def regenerate_item(
        self,
        index: int,
        registry: CharacterRegistry,
        style: ImageStyle,
    ) -> Optional[StoryboardItem]:
        """
        Re-render one item from its existing prompt.

        Works whether or not a batch is running; the item itself must not
        already be generating. Returns None when the item list was replaced
        while the call was outstanding.
        """
        if not 0 <= index < len(self._items):
            raise InvalidIndexError("scene", index, len(self._items))
        item = self._items[index]
        if item.status == ItemStatus.GENERATING:
            raise ItemBusyError(index)

        logger.info(f"[ORCHESTRATOR] Regenerating scene {index + 1}")
        references = scene_references(registry.characters)
        await self._generate(index, item.id, item.prompt, style, references)
        return self._current(index, item.id)

    # ------------------------------------------------------------------
    # Shared render step
    # ------------------------------------------------------------------

    async def _generate(
        self,
        index: int,
        item_id: str,
        description: str,
        style: ImageStyle,
        references: List[ReferenceImage],
    ):
        if not self._transition(index, item_id, lambda it: it.start()):
            return

        prompt = build_scene_prompt(description, style)
        try:
            image = await self.gateway.render_image(prompt, references, AspectRatio.WIDESCREEN)
        except Exception as e:
            logger.error(f"[ORCHESTRATOR] Scene {index + 1} failed: {e}")
            self._transition(index, item_id, lambda it: it.fail())
            return

        self._transition(index, item_id, lambda it: it.complete(image))
        logger.info(f"[ORCHESTRATOR] Scene {index + 1} completed")

    def _current(self, index: int, item_id: str) -> Optional[StoryboardItem]:
        if index >= len(self._items) or self._items[index].id != item_id:
            return None
        return self._items[index]

    def _transition(
        self,
        index: int,
        item_id: str,
        transform: Callable[[StoryboardItem], StoryboardItem],
    ) -> bool:
        """Replace item `index` with transform(item) and republish."""
        current = self._current(index, item_id)
        if current is None:
            logger.debug(f"[ORCHESTRATOR] Dropping update for stale item {item_id}")
            return False
        try:
            updated = transform(current)
        except InvalidTransitionError as e:
            logger.warning(f"[ORCHESTRATOR] Scene {index + 1}: {e}")
            return False

        items = list(self._items)
        items[index] = updated
        self._publish(tuple(items))
        return True

    def _publish(self, items: Tuple[StoryboardItem, ...]):
        self._items = items
        if self.on_change:
            self.on_change(list(items))

    def _log_summary(self, handle: BatchHandle):
        counts = {status: 0 for status in ItemStatus}
        for item in self._items:
            counts[item.status] += 1
        logger.info("=" * 60)
        logger.info(f"[ORCHESTRATOR] BATCH {handle.batch_id} FINISHED")
        logger.info(f"  Completed: {counts[ItemStatus.COMPLETED]}")
        logger.info(f"  Failed: {counts[ItemStatus.FAILED]}")
        logger.info(f"  Not started: {counts[ItemStatus.PENDING]}")
        logger.info(f"  Stopped: {handle.stop_requested}")
        if handle.error:
            logger.info(f"  Error: {handle.error}")
        logger.info("=" * 60)
