"""
Archive export - package completed storyboard images into a zip.

Files are named by 1-based scene position (scene_1.png, scene_3.png, ...),
so gaps in the numbering show which scenes were not completed.
"""
import io
import logging
import zipfile
from pathlib import Path
from typing import List, Optional, Tuple

from storyboard.models import ImageBlob, StoryboardItem
from .exceptions import NothingToExportError

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "storyboard_package.zip"


def completed_entries(items: List[StoryboardItem]) -> List[Tuple[str, ImageBlob]]:
    """(file name, image) for every completed item, in scene order."""
    return [
        (f"scene_{position}.{item.image.extension}", item.image)
        for position, item in enumerate(items, start=1)
        if item.is_completed and item.image is not None
    ]


def build_archive(items: List[StoryboardItem]) -> Optional[bytes]:
    """Zip bytes for the completed items, or None when nothing is completed."""
    entries = completed_entries(items)
    if not entries:
        return None

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, image in entries:
            zf.writestr(name, image.data)

    logger.info(f"[ARCHIVE] Packaged {len(entries)}/{len(items)} scenes")
    return buffer.getvalue()


def export_archive(items: List[StoryboardItem]) -> bytes:
    """
    Explicit export.

    Raises:
        NothingToExportError: no completed items
    """
    content = build_archive(items)
    if content is None:
        raise NothingToExportError()
    return content


def write_archive(items: List[StoryboardItem], output_dir: Path, name: str = ARCHIVE_NAME) -> Optional[Path]:
    """Automatic export to disk. Silently does nothing when no item is completed."""
    content = build_archive(items)
    if content is None:
        logger.info("[ARCHIVE] Nothing completed, skipping automatic export")
        return None

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / name
    path.write_bytes(content)
    logger.info(f"[ARCHIVE] Saved {path}")
    return path
