"""
Storyboard workflow exceptions.

Each carries a user-facing message. They are raised synchronously,
before any call reaches the model gateway.
"""
from typing import Optional


class StoryboardError(Exception):
    """Base exception for workflow errors."""

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class EmptyScriptError(StoryboardError):
    """Script is blank."""

    def __init__(self):
        super().__init__("Please enter a script first.")


class ReferencesNotReadyError(StoryboardError):
    """Batch requested while some characters still lack a reference image."""

    def __init__(self, missing: list):
        super().__init__(
            "Generate a reference image for every character first. "
            "Reference images are required to keep characters consistent.",
            detail=f"Missing references: {', '.join(missing)}",
        )
        self.missing = missing


class SessionBusyError(StoryboardError):
    """Another step that touches the same state is still running."""

    def __init__(self, operation: str, running: str):
        super().__init__(f"Cannot {operation} while {running} is in progress.")
        self.operation = operation
        self.running = running


class ItemBusyError(StoryboardError):
    """Item is already being generated."""

    def __init__(self, index: int):
        super().__init__(f"Scene {index + 1} is already being generated.")
        self.index = index


class InvalidIndexError(StoryboardError):
    """Index outside the current collection."""

    def __init__(self, kind: str, index: int, size: int):
        super().__init__(f"No {kind} at position {index} (have {size}).")
        self.kind = kind
        self.index = index


class InvalidFieldError(StoryboardError):
    """Character field is not editable."""

    def __init__(self, field_name: str):
        super().__init__(f"Character field '{field_name}' cannot be edited.")
        self.field_name = field_name


class InvalidSettingsError(StoryboardError):
    """Style or scene count outside the supported catalog/range."""


class NothingToExportError(StoryboardError):
    """No completed images to package."""

    def __init__(self):
        super().__init__("There are no completed images to download.")
