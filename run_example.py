"""
Working example: full storyboard run without the API server.

Usage:
    python run_example.py script.txt [--style webtoon] [--scenes 8] [--out storyboard.zip]

Requires GOOGLE_API_KEY in the environment or .env.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

from storyboard.config import config
from storyboard.models import ItemStatus
from storyboard.providers.gemini import GeminiGateway
from storyboard.services.archive import ARCHIVE_NAME
from storyboard.services.exceptions import StoryboardError
from storyboard.services.session import StoryboardSession
from storyboard.styles import ImageStyle


def on_items(items):
    """Progress callback."""
    done = sum(1 for item in items if item.status in (ItemStatus.COMPLETED, ItemStatus.FAILED))
    total = len(items) or 1
    bar_length = 30
    filled = int(bar_length * done / total)
    bar = "=" * filled + "-" * (bar_length - filled)
    print(f"\r[{bar}] {done}/{len(items)} scenes", end="", flush=True)
    if items and done == len(items):
        print()


async def run(script: str, style: str, scenes: int, output: Path) -> int:
    gateway = GeminiGateway()
    session = StoryboardSession(gateway)
    session.orchestrator.on_change = on_items

    try:
        session.configure(style=style, scene_count=scenes)

        print("Analyzing characters...")
        characters = await session.analyze(script)
        if not characters:
            print(f"FAILED: {session.last_error}")
            return 1
        for character in characters:
            print(f"  - {character.context_line()}")

        print("Generating reference portraits...")
        await session.generate_references()
        if session.last_error:
            print(f"FAILED: {session.last_error}")
            return 1

        print(f"Generating {session.scene_count} scenes ({session.style.value})...")
        print("-" * 60)
        handle = await session.generate()
        print("-" * 60)
        if handle.error:
            print(f"FAILED: {handle.error}")
            return 1

        output.write_bytes(session.export())
        completed = sum(1 for item in session.items if item.is_completed)
        print(f"\nSUCCESS! {completed}/{len(session.items)} scenes")
        print(f"Output: {output}")
        return 0
    except StoryboardError as e:
        print(f"\nFAILED: {e.message}")
        return 1
    finally:
        await gateway.close()


def main():
    """Run example storyboard."""
    parser = argparse.ArgumentParser(description="Generate a storyboard from a script file")
    parser.add_argument("script", type=Path, help="Text file containing the story script")
    parser.add_argument("--style", default=config.storyboard.default_style,
                        choices=[s.value for s in ImageStyle])
    parser.add_argument("--scenes", type=int, default=config.storyboard.default_scene_count)
    parser.add_argument("--out", type=Path, default=Path(ARCHIVE_NAME))
    args = parser.parse_args()

    print("=" * 60)
    print("STORYBOARD GENERATOR")
    print("=" * 60)

    script = args.script.read_text(encoding="utf-8")
    return asyncio.run(run(script, args.style, args.scenes, args.out))


if __name__ == "__main__":
    sys.exit(main())
