"""
Storyboard API Routes.

Workflow:
1. POST /sessions                      -> session id
2. POST /sessions/{id}/analyze         -> cast extracted from the script
3. PATCH /sessions/{id}/characters/{i} -> edit traits
4. POST /sessions/{id}/references      -> one portrait per character
5. POST /sessions/{id}/generate        -> batch runs in the background
6. GET  /sessions/{id}                 -> poll items and progress
7. GET  /sessions/{id}/export          -> zip of completed scenes
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from storyboard.config import config
from storyboard.services.archive import ARCHIVE_NAME
from storyboard.services.session import SessionStore, StoryboardSession
from storyboard.styles import list_styles
from ..dependencies import get_session, get_store
from ..exceptions import ConflictError
from ..schemas import (
    AnalyzeRequest,
    BatchStartedResponse,
    CreateSessionRequest,
    SettingsRequest,
    StopResponse,
    StylesResponse,
    UpdateCharacterRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/storyboard", tags=["Storyboard"])


# =============================================================================
# Catalog
# =============================================================================

@router.get("/styles", response_model=StylesResponse)
async def get_styles():
    """Available image styles and scene-count bounds."""
    return StylesResponse(
        styles=list_styles(),
        default_style=config.storyboard.default_style,
    )


# =============================================================================
# Sessions
# =============================================================================

@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest,
    store: SessionStore = Depends(get_store),
):
    session = store.create(style=request.style, scene_count=request.scene_count)
    return session.snapshot()


@router.get("/sessions/{session_id}")
async def get_session_state(
    include_images: bool = Query(True, description="Embed images as data URLs"),
    session: StoryboardSession = Depends(get_session),
):
    """Full session state; poll this while a batch is running."""
    return session.snapshot(include_images=include_images)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session: StoryboardSession = Depends(get_session),
    store: SessionStore = Depends(get_store),
):
    session.stop()
    store.delete(session.session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/sessions/{session_id}/settings")
async def update_settings(
    request: SettingsRequest,
    session: StoryboardSession = Depends(get_session),
):
    session.configure(style=request.style, scene_count=request.scene_count)
    return session.snapshot(include_images=False)


# =============================================================================
# Characters
# =============================================================================

@router.post("/sessions/{session_id}/analyze")
async def analyze_script(
    request: AnalyzeRequest,
    session: StoryboardSession = Depends(get_session),
):
    """Extract the cast. An unusable model response yields an empty cast and last_error."""
    await session.analyze(request.script)
    return session.snapshot()


@router.patch("/sessions/{session_id}/characters/{index}")
async def update_character(
    index: int,
    request: UpdateCharacterRequest,
    session: StoryboardSession = Depends(get_session),
):
    character = session.update_character(index, request.field, request.value)
    return character.to_dict()


@router.post("/sessions/{session_id}/references")
async def generate_references(session: StoryboardSession = Depends(get_session)):
    """Generate a portrait for every character concurrently."""
    await session.generate_references()
    return session.snapshot()


@router.post("/sessions/{session_id}/characters/{index}/reference")
async def regenerate_reference(
    index: int,
    session: StoryboardSession = Depends(get_session),
):
    """Regenerate one portrait; the previous one is kept on failure."""
    character = await session.regenerate_reference(index)
    return {
        "character": character.to_dict(),
        "last_error": session.last_error,
    }


# =============================================================================
# Batch
# =============================================================================

@router.post(
    "/sessions/{session_id}/generate",
    response_model=BatchStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_storyboard(session: StoryboardSession = Depends(get_session)):
    """
    Start a storyboard batch in the background.

    Preconditions are checked before responding; poll GET /sessions/{id}
    for items and progress.
    """
    handle = session.launch_batch()

    logger.info("=" * 60)
    logger.info("[API] STORYBOARD GENERATION STARTED")
    logger.info(f"   Session: {session.session_id}")
    logger.info(f"   Batch: {handle.batch_id}")
    logger.info(f"   Style: {session.style.value}")
    logger.info(f"   Scenes: {session.scene_count}")
    logger.info("=" * 60)

    return BatchStartedResponse(
        session_id=session.session_id,
        batch_id=handle.batch_id,
        message=f"Generating {session.scene_count} scenes. Poll /api/storyboard/sessions/{session.session_id} for progress.",
    )


@router.post("/sessions/{session_id}/stop", response_model=StopResponse)
async def stop_storyboard(session: StoryboardSession = Depends(get_session)):
    """Stop the running batch. In-flight renders still finish."""
    stopped = session.stop()
    return StopResponse(
        session_id=session.session_id,
        stopped=stopped,
        batch=session.current_batch.to_dict() if session.current_batch else None,
    )


@router.post("/sessions/{session_id}/items/{index}/regenerate")
async def regenerate_item(
    index: int,
    session: StoryboardSession = Depends(get_session),
):
    item = await session.regenerate_item(index)
    if item is None:
        raise ConflictError("The storyboard was replaced while this scene was regenerating.")
    return item.to_dict()


# =============================================================================
# Export
# =============================================================================

@router.get("/sessions/{session_id}/export")
async def export_storyboard(session: StoryboardSession = Depends(get_session)):
    """Download every completed scene as scene_{n}.{ext} in one zip."""
    content = session.export()
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{ARCHIVE_NAME}"'},
    )
