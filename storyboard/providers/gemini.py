"""
Gemini Gateway - Google Gemini text and image generation.

Three calls, each a single request/response against the
generateContent endpoint:
- extract_characters: script -> structured cast list (JSON mode)
- plan_scenes: script + cast -> exactly N scene descriptions (JSON mode)
- render_image: prompt + reference portraits -> one image

Text calls raise ExtractionFailure / PlanningFailure when the response
cannot be parsed; callers degrade those to empty results. Image calls
raise RenderFailure when no image payload comes back.
"""
import asyncio
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Type

import httpx

from storyboard.models import AspectRatio, Character, ImageBlob
from .exceptions import (
    ProviderError,
    ProviderUnavailable,
    ExtractionFailure,
    PlanningFailure,
    RenderFailure,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "gemini"

CHARACTER_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "characters": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "age": {"type": "STRING"},
                    "gender": {"type": "STRING"},
                    "appearance": {"type": "STRING"},
                },
                "required": ["name", "age", "gender", "appearance"],
            },
        }
    },
    "required": ["characters"],
}

SCENES_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "scenes": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
        }
    },
    "required": ["scenes"],
}

EXTRACTION_PROMPT = """Analyze the following script and extract the main characters.
For each character, provide: Name, Age, Gender, and a detailed physical Appearance description (hair style/color, facial features, typical build).
All descriptions must be in English.
Script: "{script}\""""

PLANNING_PROMPT = """Based on the character definitions, parse the script into exactly {count} visual scenes.
Refer to characters by name and include their traits.
Descriptions in English.
Characters:
{characters}
Script: "{script}\""""

REFERENCE_BINDING = (
    "This image above is the visual reference for the character: {name}. "
    "Maintain strict visual consistency for this character in the scene below."
)


@dataclass
class ReferenceImage:
    """A reference portrait and the character it anchors."""
    label: str
    image: ImageBlob


class GeminiGateway:
    """
    Async client for the Gemini generateContent API.

    One httpx.AsyncClient per gateway; call close() when done.
    Every request is bounded by `timeout` seconds, and expiry is reported
    as the failure type of the call that timed out.
    """

    GOOGLE_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(
        self,
        api_key: Optional[str] = None,
        text_model: Optional[str] = None,
        image_model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        from storyboard.config import config
        self.api_key = api_key if api_key is not None else (config.ai.google_api_key or "")
        self.text_model = text_model or config.ai.text_model
        self.image_model = image_model or config.ai.image_model
        self.timeout = timeout or config.ai.request_timeout
        self.client = client or httpx.AsyncClient(timeout=self.timeout)

        if not self.api_key or self.api_key.startswith("PASTE_"):
            logger.warning("[GEMINI] No Google API key - generation disabled")
            self.api_key = ""
        else:
            logger.info(f"[GEMINI] Initialized (text={self.text_model}, image={self.image_model})")

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    # ------------------------------------------------------------------
    # Structured-data calls
    # ------------------------------------------------------------------

    async def extract_characters(self, script: str) -> List[Character]:
        """
        Extract the main cast from a script.

        Returns:
            Character candidates without reference images

        Raises:
            ExtractionFailure: response missing or not shaped as {characters: [...]}
        """
        logger.info(f"[GEMINI] Extracting characters from script ({len(script)} chars)")

        payload = self._json_payload(EXTRACTION_PROMPT.format(script=script), CHARACTER_SCHEMA)
        data = await self._generate(self.text_model, payload, ExtractionFailure)
        parsed = self._parse_json_response(data, ExtractionFailure)

        raw_characters = parsed.get("characters") if isinstance(parsed, dict) else None
        if not isinstance(raw_characters, list):
            raise ExtractionFailure(PROVIDER_NAME, "Response has no 'characters' list")

        characters = []
        for entry in raw_characters:
            if not isinstance(entry, dict) or not entry.get("name"):
                raise ExtractionFailure(PROVIDER_NAME, f"Malformed character entry: {entry!r}")
            characters.append(Character(
                name=str(entry["name"]),
                age=str(entry.get("age", "")),
                gender=str(entry.get("gender", "")),
                appearance=str(entry.get("appearance", "")),
            ))

        logger.info(f"[GEMINI] Extracted {len(characters)} characters")
        return characters

    async def plan_scenes(self, script: str, characters: List[Character], count: int) -> List[str]:
        """
        Segment a script into `count` scene descriptions.

        Over-production is truncated to `count`; under-production is
        returned as-is.

        Raises:
            PlanningFailure: response missing or not shaped as {scenes: [...]}
        """
        logger.info(f"[GEMINI] Planning {count} scenes with {len(characters)} characters")

        char_context = "\n".join(c.context_line() for c in characters)
        prompt = PLANNING_PROMPT.format(count=count, characters=char_context, script=script)
        payload = self._json_payload(prompt, SCENES_SCHEMA)
        data = await self._generate(self.text_model, payload, PlanningFailure)
        parsed = self._parse_json_response(data, PlanningFailure)

        scenes = parsed.get("scenes") if isinstance(parsed, dict) else None
        if not isinstance(scenes, list) or not all(isinstance(s, str) for s in scenes):
            raise PlanningFailure(PROVIDER_NAME, "Response has no 'scenes' list of strings")

        if len(scenes) > count:
            logger.info(f"[GEMINI] Model returned {len(scenes)} scenes, truncating to {count}")
        elif len(scenes) < count:
            logger.warning(f"[GEMINI] Model returned only {len(scenes)}/{count} scenes")

        return scenes[:count]

    # ------------------------------------------------------------------
    # Image call
    # ------------------------------------------------------------------

    async def render_image(
        self,
        prompt: str,
        references: Optional[List[ReferenceImage]] = None,
        aspect_ratio: AspectRatio = AspectRatio.WIDESCREEN,
    ) -> ImageBlob:
        """
        Render a single image.

        Each reference portrait is sent before the prompt, followed by a
        short text naming the character it anchors.

        Raises:
            RenderFailure: no image payload in the response
        """
        references = references or []
        parts: List[Dict[str, Any]] = []
        for ref in references:
            parts.append({
                "inlineData": {
                    "mimeType": ref.image.mime_type,
                    "data": ref.image.to_base64(),
                }
            })
            parts.append({"text": REFERENCE_BINDING.format(name=ref.label)})
        parts.append({"text": prompt})

        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": {"aspectRatio": aspect_ratio.value},
            },
        }

        logger.info(
            f"[GEMINI] Rendering image: refs={len(references)}, ratio={aspect_ratio.value}, "
            f"prompt={prompt[:100]}..."
        )
        data = await self._generate(self.image_model, payload, RenderFailure)

        parts = self._candidate_parts(data, RenderFailure)
        for part in parts:
            inline = part.get("inlineData") or part.get("inline_data")
            if isinstance(inline, dict) and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                try:
                    image = ImageBlob.from_base64(inline["data"], mime_type)
                except (binascii.Error, TypeError, ValueError) as e:
                    raise RenderFailure(PROVIDER_NAME, f"Undecodable image payload: {e}") from e
                logger.info(f"[GEMINI] Image received ({len(image.data)} bytes, {mime_type})")
                return image

        text = " ".join(p["text"] for p in parts if isinstance(p.get("text"), str))
        if text:
            logger.error(f"[GEMINI] Model returned text instead of image: {text[:300]}")
        raise RenderFailure(PROVIDER_NAME, "No image data in response")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _json_payload(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }

    async def _generate(
        self,
        model: str,
        payload: Dict[str, Any],
        failure: Type[ProviderError],
    ) -> Any:
        """POST to generateContent, mapping every transport problem to `failure`."""
        if not self.api_key:
            raise ProviderUnavailable(PROVIDER_NAME, "GOOGLE_API_KEY not configured")

        url = f"{self.GOOGLE_API_URL}/{model}:generateContent"
        try:
            response = await asyncio.wait_for(
                self.client.post(url, params={"key": self.api_key}, json=payload),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"[GEMINI] {model} timed out after {self.timeout}s")
            raise failure(PROVIDER_NAME, f"Request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"[GEMINI] {model} transport error: {e}")
            raise failure(PROVIDER_NAME, f"Transport error: {e}") from e

        if response.status_code != 200:
            message = self._error_message(response)
            logger.error(f"[GEMINI] API error {response.status_code}: {message[:500]}")
            raise failure(PROVIDER_NAME, f"API error {response.status_code}: {message}")

        try:
            return response.json()
        except ValueError as e:
            raise failure(PROVIDER_NAME, "Response body is not JSON") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("error", {}).get("message", "Unknown error")
        except (ValueError, AttributeError):
            return response.text

    @staticmethod
    def _candidate_parts(data: Any, failure: Type[ProviderError]) -> List[Dict[str, Any]]:
        """Parts of the first candidate; only dict parts are kept."""
        if not isinstance(data, dict):
            raise failure(PROVIDER_NAME, "Malformed response envelope")
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise failure(PROVIDER_NAME, "Malformed response envelope")

        content = candidates[0].get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None
        if parts is None:
            return []
        if not isinstance(parts, list):
            raise failure(PROVIDER_NAME, "Malformed response envelope")
        return [part for part in parts if isinstance(part, dict)]

    def _parse_json_response(self, data: Any, failure: Type[ProviderError]) -> Any:
        text = "".join(
            p["text"] for p in self._candidate_parts(data, failure) if isinstance(p.get("text"), str)
        ).strip()
        if not text:
            raise failure(PROVIDER_NAME, "Empty text response")

        # Clean up potential markdown code blocks
        if text.startswith("```"):
            text = text.split("```")[1]
            if text.startswith("json"):
                text = text[4:]
        text = text.strip()

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"[GEMINI] JSON parse error: {e}")
            raise failure(PROVIDER_NAME, f"Invalid JSON: {e}") from e

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
        logger.info("[GEMINI] Gateway closed")


_gateway: Optional[GeminiGateway] = None


def get_gateway() -> GeminiGateway:
    """Get or create the global gateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = GeminiGateway()
    return _gateway


async def close_gateway():
    """Close and forget the global gateway, if one was created."""
    global _gateway
    if _gateway is not None:
        await _gateway.close()
        _gateway = None
