"""
Prompt construction for portraits and scenes.
"""
from typing import List

from storyboard.models import Character
from storyboard.providers.gemini import ReferenceImage
from storyboard.styles import (
    ImageStyle,
    STYLE_PROMPTS,
    GLOBAL_CONSTRAINTS,
    PROFILE_SPEED_HINT,
    SCENE_SPEED_HINT,
    uses_full_quality,
)


def build_profile_prompt(character: Character, style: ImageStyle) -> str:
    """Reference portrait prompt: style, speed hint, character traits, constraints."""
    speed_hint = "" if uses_full_quality(style) else PROFILE_SPEED_HINT
    return (
        f"{STYLE_PROMPTS[style]}{speed_hint} "
        f"A professional character concept art portrait of {character.name}, "
        f"a {character.age} year old {character.gender}. "
        f"Physical traits: {character.appearance}. "
        f"Front facing, neutral background, centered, full face visible. "
        f"{GLOBAL_CONSTRAINTS}"
    )


def build_scene_prompt(description: str, style: ImageStyle) -> str:
    """Scene prompt instructing the model to follow the attached portraits."""
    speed_hint = "" if uses_full_quality(style) else SCENE_SPEED_HINT
    return (
        f"{STYLE_PROMPTS[style]}{speed_hint} Scene: {description}.\n"
        f"INSTRUCTION: Use the provided character portrait images as strict visual references "
        f"for their appearance, age, gender, and features.\n"
        f"Ensure characters in this scene look exactly like the reference images provided.\n"
        f"{GLOBAL_CONSTRAINTS}"
    )


def scene_references(characters: List[Character]) -> List[ReferenceImage]:
    """Reference portraits in registry order, skipping characters without one."""
    return [
        ReferenceImage(label=c.name, image=c.reference_image)
        for c in characters
        if c.reference_image is not None
    ]
