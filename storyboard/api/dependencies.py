"""
Shared dependencies for API routes.
"""
from fastapi import Depends

from storyboard.services.session import SessionStore, StoryboardSession, get_session_store
from .exceptions import SessionNotFoundError


def get_store() -> SessionStore:
    """Get the session store (overridable in tests)."""
    return get_session_store()


def get_session(session_id: str, store: SessionStore = Depends(get_store)) -> StoryboardSession:
    """Resolve the `session_id` path parameter to a live session."""
    session = store.get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session
