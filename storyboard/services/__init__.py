"""
Services Module - storyboard workflow.

Script -> cast -> reference portraits -> planned scenes -> rendered images -> zip.
"""
from .character_registry import CharacterRegistry
from .reference_generator import ReferenceImageGenerator
from .scene_planner import ScenePlanner
from .orchestrator import BatchHandle, StoryboardOrchestrator
from .session import StoryboardSession, SessionStore, get_session_store
from .archive import ARCHIVE_NAME, build_archive, export_archive, write_archive

__all__ = [
    "CharacterRegistry",
    "ReferenceImageGenerator",
    "ScenePlanner",
    "BatchHandle",
    "StoryboardOrchestrator",
    "StoryboardSession",
    "SessionStore",
    "get_session_store",
    "ARCHIVE_NAME",
    "build_archive",
    "export_archive",
    "write_archive",
]
