"""
Veo on Vertex AI: image-conditioned 360° product video generation.

Submits a predictLongRunning request with the product photos as `asset`
reference images, then polls fetchPredictOperation until the operation is done.
Auth uses a service-account OAuth token (google-auth).
"""

import json
import base64
import asyncio
import logging
import os
from functools import partial
from typing import Callable, Optional, Sequence

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from . import config
from .errors import ConfigurationMissing, GenerationFailed
from .pipeline.models import VideoResult
from .pipeline.storage import load_image_base64
from .polling import OperationPoller

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

NEGATIVE_PROMPT = (
    "grey background, gradient background, colored background, cluttered scene, "
    "busy environment, shadows on background, dark lighting, different product, "
    "modified product, text overlays, watermarks, people, hands, multiple objects"
)

# A lone reference image is repeated to weigh conditioning toward the real product
SINGLE_REFERENCE_COPIES = 3


def service_account_token(credentials_path: str) -> str:
    """Mint an access token from a service-account JSON file (blocking)."""
    credentials = service_account.Credentials.from_service_account_file(
        credentials_path, scopes=[CLOUD_PLATFORM_SCOPE]
    )
    credentials.refresh(GoogleAuthRequest())
    if not credentials.token:
        raise ConfigurationMissing(
            "GOOGLE_APPLICATION_CREDENTIALS",
            "Failed to get access token from service account",
        )
    return credentials.token


class VertexVeoSynthesizer:
    def __init__(
        self,
        project_id: str = config.VERTEX_PROJECT_ID,
        location: str = config.VERTEX_LOCATION,
        model: str = config.VERTEX_VEO_MODEL,
        credentials_path: str = config.GOOGLE_APPLICATION_CREDENTIALS,
        token_provider: Optional[Callable[[], str]] = None,
        poller: Optional[OperationPoller] = None,
        single_reference_copies: int = SINGLE_REFERENCE_COPIES,
        aspect_ratio: str = "16:9",
        duration_seconds: int = 8,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.project_id = project_id
        self.location = location
        self.model = model
        self.credentials_path = credentials_path
        self._token_provider = token_provider or partial(service_account_token, credentials_path)
        self._custom_token_provider = token_provider is not None
        self.poller = poller or OperationPoller()
        self.single_reference_copies = max(1, single_reference_copies)
        self.aspect_ratio = aspect_ratio
        self.duration_seconds = duration_seconds
        self.timeout = timeout
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.project_id:
            raise ConfigurationMissing("VERTEX_PROJECT_ID")
        if not self._custom_token_provider and not os.path.exists(self.credentials_path):
            raise ConfigurationMissing(
                "GOOGLE_APPLICATION_CREDENTIALS",
                f"Service account credentials not found at {self.credentials_path}",
            )

    @property
    def _model_url(self) -> str:
        return (
            f"https://{self.location}-aiplatform.googleapis.com/v1/projects/{self.project_id}"
            f"/locations/{self.location}/publishers/google/models/{self.model}"
        )

    async def _reference_images(self, refs: Sequence[str]) -> list[dict]:
        """Inline every reference; unreadable ones are skipped, a single one is repeated."""
        unique: list[dict] = []
        for ref in refs:
            try:
                mime, b64data = await load_image_base64(ref, transport=self._transport)
            except httpx.HTTPError as e:
                logger.warning(f"Skipping unreadable reference image {ref[:60]}: {e}")
                continue
            unique.append({
                "image": {"bytesBase64Encoded": b64data, "mimeType": mime},
                "referenceType": "asset",
            })

        if len(unique) == 1:
            return unique * self.single_reference_copies
        return unique

    async def generate(
        self,
        prompt: str,
        product_name: str,
        reference_images: Sequence[str] = (),
    ) -> VideoResult:
        """
        Render the rotation video.

        Args:
            prompt:           Full video prompt.
            product_name:     Product label, for logging.
            reference_images: Image references conditioning the output.

        Returns:
            VideoResult with the decoded video bytes.

        Raises:
            ConfigurationMissing, GenerationFailed, GenerationTimeout
        """
        self.ensure_configured()

        try:
            token = await asyncio.to_thread(self._token_provider)
        except (GoogleAuthError, OSError, ValueError) as e:
            raise ConfigurationMissing(
                "GOOGLE_APPLICATION_CREDENTIALS",
                f"Could not obtain Vertex AI access token: {e}",
            )
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

        instance: dict = {"prompt": prompt, "negativePrompt": NEGATIVE_PROMPT}
        refs = await self._reference_images(reference_images)
        if refs:
            instance["referenceImages"] = refs
        logger.info(
            f"Veo request for '{product_name}': {len(refs)} reference slot(s) "
            f"from {len(reference_images)} image(s)"
        )

        body = {
            "instances": [instance],
            "parameters": {
                "aspectRatio": self.aspect_ratio,
                "sampleCount": 1,
                "durationSeconds": self.duration_seconds,
            },
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            operation = await self._post(client, f"{self._model_url}:predictLongRunning", headers, body)

            if operation.get("done"):
                return _extract_video(operation)

            name = operation.get("name")
            if not name:
                raise GenerationFailed(f"Veo returned no operation name: {operation}", detail=operation)
            logger.info(f"Veo operation started: {name}")

            check = partial(self._fetch_operation, client, headers)
            return await self.poller.wait(name, check, label="Veo operation")

    async def _post(self, client: httpx.AsyncClient, url: str, headers: dict, body: dict) -> dict:
        try:
            resp = await client.post(url, headers=headers, json=body)
        except httpx.HTTPError as e:
            raise GenerationFailed(f"Vertex AI request failed: {e}")

        if resp.status_code != 200:
            raise GenerationFailed(
                f"Vertex AI Veo API error: {resp.status_code} - {resp.text[:500]}",
                detail=resp.text[:2000],
            )
        try:
            return resp.json()
        except ValueError:
            raise GenerationFailed(f"Vertex AI returned non-JSON body: {resp.text[:200]}")

    async def _fetch_operation(
        self, client: httpx.AsyncClient, headers: dict, operation_name: str
    ) -> Optional[VideoResult]:
        status = await self._post(
            client,
            f"{self._model_url}:fetchPredictOperation",
            headers,
            {"operationName": operation_name},
        )
        if not status.get("done"):
            return None
        return _extract_video(status)


def _extract_video(operation: dict) -> VideoResult:
    """Pull the video out of a finished operation, wherever Veo put it."""
    if operation.get("error"):
        error = operation["error"]
        raise GenerationFailed(f"Veo operation failed: {json.dumps(error)}", detail=error)

    response = operation.get("response") or {}
    candidates = [
        (response.get("predictions") or [{}])[0],
        (response.get("videos") or [{}])[0],
        response,
    ]
    for node in candidates:
        if isinstance(node, dict) and node.get("bytesBase64Encoded"):
            return VideoResult(
                video_bytes=base64.b64decode(node["bytesBase64Encoded"]),
                mime_type=node.get("mimeType") or "video/mp4",
            )

    raise GenerationFailed(
        f"Unexpected Veo response structure. Response keys: {sorted(response.keys())}",
        detail=operation,
    )
