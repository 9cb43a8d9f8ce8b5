"""
Providers Layer.

Wraps the external generative model behind a small async contract:
character extraction, scene planning and image rendering.
"""
from .exceptions import (
    ProviderError,
    ProviderUnavailable,
    ExtractionFailure,
    PlanningFailure,
    RenderFailure,
)
from .gemini import GeminiGateway, ReferenceImage, get_gateway, close_gateway

__all__ = [
    # Exceptions
    "ProviderError",
    "ProviderUnavailable",
    "ExtractionFailure",
    "PlanningFailure",
    "RenderFailure",

    # Gateway
    "GeminiGateway",
    "ReferenceImage",
    "get_gateway",
    "close_gateway",
]
