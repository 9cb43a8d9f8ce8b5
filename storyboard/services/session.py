"""
Storyboard Session - the end-to-end workflow for one user.

Steps:
1. analyze: extract the cast from the script
2. edit characters, then generate reference portraits
3. start_batch / run_batch: plan scenes and render them
4. stop, regenerate single items, export the archive

Sessions live in memory only.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, List, Any, Set

from storyboard.config import config
from storyboard.models import Character
from storyboard.providers.exceptions import ProviderError
from storyboard.styles import ImageStyle, parse_style
from .archive import export_archive, write_archive
from .character_registry import CharacterRegistry
from .exceptions import (
    EmptyScriptError,
    InvalidSettingsError,
    ReferencesNotReadyError,
    SessionBusyError,
)
from .orchestrator import BatchHandle, StoryboardOrchestrator
from .reference_generator import ReferenceImageGenerator
from .scene_planner import ScenePlanner

logger = logging.getLogger(__name__)

ANALYSIS_EMPTY_MESSAGE = "Character analysis produced nothing usable. Please check the script and try again."
REFERENCE_FAILED_MESSAGE = "Reference image generation failed for: {names}. Retry those characters individually."
REGENERATE_FAILED_MESSAGE = "Reference image regeneration failed for {name}. The previous image was kept."

# Store background batch tasks to prevent garbage collection
BACKGROUND_TASKS = set()


class StoryboardSession:
    """
    Workflow state for a single storyboard.

    Busy flags serialize the steps that write shared state: analysis
    replaces the cast, reference generation writes portraits, and a batch
    reads both.
    """

    def __init__(
        self,
        gateway,
        session_id: Optional[str] = None,
        style: Optional[ImageStyle] = None,
        scene_count: Optional[int] = None,
    ):
        settings = config.storyboard
        self.session_id = session_id or str(uuid.uuid4())
        self.created_at = datetime.now(timezone.utc).isoformat()
        self.gateway = gateway

        self.script = ""
        self.style = style or parse_style(settings.default_style)
        self.scene_count = settings.default_scene_count
        if scene_count is not None:
            self.configure(scene_count=scene_count)

        self.registry = CharacterRegistry()
        self.references = ReferenceImageGenerator(gateway)
        self.orchestrator = StoryboardOrchestrator(
            gateway,
            planner=ScenePlanner(gateway),
            chunk_size=settings.chunk_size,
        )

        self.is_analyzing = False
        self.is_generating_references = False
        self._regenerating_references: Set[int] = set()
        self.current_batch: Optional[BatchHandle] = None
        self.last_error: Optional[str] = None
        self.last_export_path: Optional[str] = None

    @property
    def is_generating(self) -> bool:
        return self.current_batch is not None and self.current_batch.running

    @property
    def characters(self) -> List[Character]:
        return self.registry.characters

    @property
    def items(self):
        return self.orchestrator.items

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def configure(self, style: Optional[str] = None, scene_count: Optional[int] = None):
        settings = config.storyboard
        if style is not None:
            try:
                self.style = style if isinstance(style, ImageStyle) else parse_style(style)
            except ValueError as e:
                raise InvalidSettingsError(str(e))
        if scene_count is not None:
            if not settings.min_scene_count <= scene_count <= settings.max_scene_count:
                raise InvalidSettingsError(
                    f"Scene count must be between {settings.min_scene_count} "
                    f"and {settings.max_scene_count}."
                )
            self.scene_count = scene_count

    # ------------------------------------------------------------------
    # Step 1: analysis
    # ------------------------------------------------------------------

    async def analyze(self, script: str) -> List[Character]:
        """Extract the cast. Parse failures degrade to an empty cast."""
        if not script or not script.strip():
            raise EmptyScriptError()
        self._ensure_idle("analyze the script", analyzing=True, references=True, batch=True)
        if self._regenerating_references:
            raise SessionBusyError("analyze the script", "reference image regeneration")

        self.script = script
        self.is_analyzing = True
        self.last_error = None
        self.registry.set_all([])
        self.orchestrator.clear()

        try:
            characters = await self.gateway.extract_characters(script)
        except ProviderError as e:
            logger.error(f"[SESSION] Character analysis failed: {e}")
            characters = []
        finally:
            self.is_analyzing = False

        if not characters:
            self.last_error = ANALYSIS_EMPTY_MESSAGE
        self.registry.set_all(characters)
        return self.registry.characters

    def update_character(self, index: int, field_name: str, value: str) -> Character:
        self._ensure_idle("edit characters", analyzing=True)
        return self.registry.update(index, field_name, value)

    # ------------------------------------------------------------------
    # Step 2: reference portraits
    # ------------------------------------------------------------------

    async def generate_references(self) -> List[Character]:
        self._ensure_idle("generate reference images", analyzing=True, references=True)

        self.is_generating_references = True
        self.last_error = None
        try:
            characters = await self.references.generate_all(self.registry, self.style)
        finally:
            self.is_generating_references = False

        missing = self.registry.missing_references()
        if missing:
            self.last_error = REFERENCE_FAILED_MESSAGE.format(names=", ".join(missing))
        return characters

    async def regenerate_reference(self, index: int) -> Character:
        self._ensure_idle("regenerate a reference image", analyzing=True, references=True)
        if index in self._regenerating_references:
            raise SessionBusyError("regenerate this reference image", "a regeneration of the same character")

        self.last_error = None
        self._regenerating_references.add(index)
        try:
            image = await self.references.regenerate_one(self.registry, index, self.style)
        finally:
            self._regenerating_references.discard(index)
        character = self.registry.get(index)
        if image is None:
            self.last_error = REGENERATE_FAILED_MESSAGE.format(name=character.name)
        return character

    # ------------------------------------------------------------------
    # Step 3: batch
    # ------------------------------------------------------------------

    def start_batch(self) -> BatchHandle:
        """
        Check every precondition synchronously and hand out a fresh handle.

        Raises:
            EmptyScriptError, SessionBusyError, ReferencesNotReadyError
        """
        if not self.script.strip():
            raise EmptyScriptError()
        self._ensure_idle("generate the storyboard", analyzing=True, references=True, batch=True)
        if not self.registry.is_finalized():
            raise ReferencesNotReadyError(self.registry.missing_references())

        self.last_error = None
        self.current_batch = self.orchestrator.new_handle()
        self.current_batch.running = True
        return self.current_batch

    async def run_batch(self, handle: BatchHandle) -> BatchHandle:
        try:
            await self.orchestrator.run_batch(
                self.script, self.registry, self.style, self.scene_count, handle
            )
        except ReferencesNotReadyError as e:
            # A portrait was cleared between start_batch and the task starting
            logger.warning(f"[SESSION] Batch {handle.batch_id} refused: {e.detail}")
            handle.error = e.message
            handle.finished = True
            self.last_error = e.message
            return handle
        except Exception as e:
            logger.error(f"[SESSION] Batch {handle.batch_id} failed: {e}", exc_info=True)
            handle.error = f"Storyboard generation failed: {e}"
            handle.finished = True
            self.last_error = handle.error
            return handle
        finally:
            handle.running = False

        if handle.error:
            self.last_error = handle.error
        if config.storyboard.auto_export:
            path = write_archive(
                self.orchestrator.items,
                config.paths.exports_dir / self.session_id,
                name=f"storyboard_{handle.batch_id}.zip",
            )
            self.last_export_path = str(path) if path else None
        return handle

    async def generate(self) -> BatchHandle:
        return await self.run_batch(self.start_batch())

    def launch_batch(self) -> BatchHandle:
        """Validate synchronously, then run the batch as a background task."""
        handle = self.start_batch()
        task = asyncio.create_task(self.run_batch(handle))
        BACKGROUND_TASKS.add(task)
        task.add_done_callback(BACKGROUND_TASKS.discard)
        return handle

    def stop(self) -> bool:
        """Stop the running batch. Returns False when no batch is running."""
        if not self.is_generating:
            return False
        self.current_batch.stop()
        return True

    async def regenerate_item(self, index: int):
        self._ensure_idle("regenerate a scene", analyzing=True, references=True)
        return await self.orchestrator.regenerate_item(index, self.registry, self.style)

    # ------------------------------------------------------------------
    # Step 4: export
    # ------------------------------------------------------------------

    def export(self) -> bytes:
        """Explicit export. Raises NothingToExportError when nothing is completed."""
        return export_archive(self.orchestrator.items)

    # ------------------------------------------------------------------

    def _ensure_idle(
        self,
        operation: str,
        analyzing: bool = False,
        references: bool = False,
        batch: bool = False,
    ):
        if analyzing and self.is_analyzing:
            raise SessionBusyError(operation, "character analysis")
        if references and self.is_generating_references:
            raise SessionBusyError(operation, "reference image generation")
        if batch and self.is_generating:
            raise SessionBusyError(operation, "storyboard generation")

    def snapshot(self, include_images: bool = True) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at,
            "script": self.script,
            "style": self.style.value,
            "scene_count": self.scene_count,
            "characters": [c.to_dict(include_images) for c in self.registry.characters],
            "references_ready": len(self.registry) > 0 and self.registry.is_finalized(),
            "items": [item.to_dict(include_images) for item in self.orchestrator.items],
            "batch": self.current_batch.to_dict() if self.current_batch else None,
            "is_analyzing": self.is_analyzing,
            "is_generating_references": self.is_generating_references,
            "is_generating": self.is_generating,
            "last_error": self.last_error,
            "last_export_path": self.last_export_path,
        }


class SessionStore:
    """In-memory session registry."""

    def __init__(self, gateway_factory=None):
        self._sessions: Dict[str, StoryboardSession] = {}
        self._gateway_factory = gateway_factory

    def _gateway(self):
        if self._gateway_factory is not None:
            return self._gateway_factory()
        from storyboard.providers.gemini import get_gateway
        return get_gateway()

    def create(self, style: Optional[str] = None, scene_count: Optional[int] = None) -> StoryboardSession:
        session = StoryboardSession(self._gateway())
        session.configure(style=style, scene_count=scene_count)
        self._sessions[session.session_id] = session
        logger.info(f"[SESSION] Created {session.session_id}")
        return session

    def get(self, session_id: str) -> Optional[StoryboardSession]:
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)


_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get or create the global session store."""
    global _store
    if _store is None:
        _store = SessionStore()
    return _store
