"""
Scene Planner - splits a script into an ordered list of scene descriptions.

Pure pass-through to the gateway. The orchestrator checks that the cast
is finalized before calling it and decides how failures degrade.
"""
import logging
from typing import List

from storyboard.models import Character

logger = logging.getLogger(__name__)


class ScenePlanner:

    def __init__(self, gateway):
        self.gateway = gateway

    async def plan(self, script: str, characters: List[Character], count: int) -> List[str]:
        scenes = await self.gateway.plan_scenes(script, characters, count)
        logger.info(f"[PLANNER] {len(scenes)} scenes planned (requested {count})")
        return scenes
