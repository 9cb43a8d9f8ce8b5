"""
Pydantic schemas for API requests and responses.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone

from storyboard.config import config
from storyboard.models import Character
from storyboard.styles import parse_style

MIN_SCENES = config.storyboard.min_scene_count
MAX_SCENES = config.storyboard.max_scene_count


def _validate_style(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    return parse_style(v).value


class CreateSessionRequest(BaseModel):
    """POST /sessions request."""
    style: Optional[str] = Field(None, description="Image style value, e.g. semi_realistic_webtoon")
    scene_count: Optional[int] = Field(None, ge=MIN_SCENES, le=MAX_SCENES)

    @field_validator("style")
    @classmethod
    def validate_style(cls, v: Optional[str]) -> Optional[str]:
        return _validate_style(v)


class SettingsRequest(BaseModel):
    """PATCH /sessions/{id}/settings request."""
    style: Optional[str] = None
    scene_count: Optional[int] = Field(None, ge=MIN_SCENES, le=MAX_SCENES)

    @field_validator("style")
    @classmethod
    def validate_style(cls, v: Optional[str]) -> Optional[str]:
        return _validate_style(v)


class AnalyzeRequest(BaseModel):
    """POST /sessions/{id}/analyze request."""
    script: str = Field(..., description="Story script to storyboard")


class UpdateCharacterRequest(BaseModel):
    """PATCH /sessions/{id}/characters/{index} request."""
    field: str = Field(..., description="One of: name, age, gender, appearance")
    value: str

    @field_validator("field")
    @classmethod
    def validate_field(cls, v: str) -> str:
        if v not in Character.EDITABLE_FIELDS:
            raise ValueError(f"field must be one of {', '.join(Character.EDITABLE_FIELDS)}")
        return v


class StyleInfo(BaseModel):
    value: str
    label: str
    prompt: str


class StylesResponse(BaseModel):
    """GET /styles response."""
    styles: List[StyleInfo]
    default_style: str
    min_scene_count: int = MIN_SCENES
    max_scene_count: int = MAX_SCENES


class BatchStartedResponse(BaseModel):
    """POST /sessions/{id}/generate response."""
    session_id: str
    batch_id: str
    status: str = "started"
    message: str


class StopResponse(BaseModel):
    """POST /sessions/{id}/stop response."""
    session_id: str
    stopped: bool
    batch: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    """GET /health response."""
    status: str = "healthy"
    service: str = "storyboard-api"
    version: str = "1.0.0"
    google_configured: bool = False
    active_sessions: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
