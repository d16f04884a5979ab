"""
Gemini integration for product image analysis.

- Description: Gemini Flash (vision) via REST, free-text product description
- Video prompt: composed locally from the description, deterministic
"""

import logging
from typing import Optional

import httpx

from . import config
from .errors import ConfigurationMissing, DescriptionFailed
from .pipeline.models import Description
from .pipeline.storage import load_image_base64

logger = logging.getLogger(__name__)


# =========================================================================
# 1. Prompts
# =========================================================================

DESCRIBE_PROMPT = (
    "Analyze this {product_name} image and create a detailed description for "
    "360-degree video generation. Focus on: product type, key features, materials, "
    "colors, textures, and visual characteristics. Be specific and descriptive "
    "for AI video generation."
)

VIDEO_STYLE_DIRECTIVES = (
    "Perfect 360-degree turntable camera movement around the product. "
    "Professional studio lighting setup with bright, even illumination and subtle "
    "soft shadows beneath the product only. Pristine white backdrop with no gradients "
    "or color variations. The product maintains its exact appearance, colors, materials, "
    "and details from the reference image. Clean e-commerce product photography style. "
    "Camera: steady circular dolly shot. "
    "Lighting: bright key light, soft fill, white bounce cards. "
    "8 seconds duration."
)


def build_video_prompt(product_name: str, description: str) -> str:
    """Compose the video-generation prompt. Same inputs, same prompt."""
    return (
        f"The exact {product_name} from the reference image rotates smoothly on a "
        f"seamless pure white studio background. "
        f"Product details: {description.strip()} "
        f"{VIDEO_STYLE_DIRECTIVES}"
    )


# =========================================================================
# 2. Describer
# =========================================================================

class GeminiDescriber:
    def __init__(
        self,
        api_key: str = config.GEMINI_API_KEY,
        model: str = config.GEMINI_MODEL,
        api_base: str = config.GEMINI_API_BASE,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationMissing("GEMINI_API_KEY")

    def _api_url(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    async def _generate_content(self, parts: list, generation_config: Optional[dict] = None) -> dict:
        """Call Gemini generateContent REST endpoint."""
        body: dict = {"contents": [{"parts": parts}]}
        if generation_config:
            body["generationConfig"] = generation_config

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self._api_url(),
                    params={"key": self.api_key},
                    json=body,
                )
        except httpx.HTTPError as e:
            raise DescriptionFailed(f"Gemini request failed: {e}")

        if resp.status_code != 200:
            raise DescriptionFailed(
                f"Gemini API error {resp.status_code}: {resp.text[:500]}",
                detail=resp.text[:2000],
            )

        try:
            return resp.json()
        except ValueError:
            raise DescriptionFailed(f"Gemini returned non-JSON body: {resp.text[:200]}")

    async def describe(self, image_ref: str, product_name: str) -> Description:
        """
        Describe the product in `image_ref` and derive the video prompt.

        Remote references are downloaded and sent inline.

        Raises:
            ConfigurationMissing: no API key.
            DescriptionFailed:    provider error, unreadable image, or empty result.
        """
        self.ensure_configured()

        try:
            mime, b64data = await load_image_base64(image_ref, transport=self._transport)
        except httpx.HTTPError as e:
            raise DescriptionFailed(f"Failed to fetch image for analysis: {e}")

        parts = [
            {"inlineData": {"mimeType": mime, "data": b64data}},
            {"text": DESCRIBE_PROMPT.format(product_name=product_name)},
        ]
        result = await self._generate_content(parts, {"temperature": 0.4})

        text = _first_candidate_text(result)
        if not text:
            raise DescriptionFailed("Invalid Gemini response: no description text", detail=result)

        logger.info(f"Gemini description for '{product_name}': {len(text)} chars")
        return Description(
            description=text,
            video_prompt=build_video_prompt(product_name, text),
        )


def _first_candidate_text(result: dict) -> str:
    try:
        parts = result["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    texts = [p.get("text", "") for p in parts if isinstance(p, dict)]
    return "".join(texts).strip()
