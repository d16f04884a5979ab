"""
Veo 3.1 via Kie.ai: alternative video provider.

Kie.ai takes reference images by URL only, so inline references (upload
fallbacks) are left out of the request. Submission returns a task id that is
polled at /veo/record-info until successFlag flips.
"""

import logging
from functools import partial
from typing import Optional, Sequence

import httpx

from . import config
from .errors import ConfigurationMissing, GenerationFailed
from .pipeline.models import VideoResult
from .pipeline.storage import is_remote
from .polling import OperationPoller

logger = logging.getLogger(__name__)

# successFlag on record-info: 0 generating, 1 success, 2/3 failed
SUCCESS_STATUSES = ("SUCCESS", "success", "completed")
FAILED_STATUSES = ("GENERATE_FAILED", "CREATE_TASK_FAILED", "SENSITIVE_WORD_ERROR", "fail", "failed")


def _task_id(result: dict) -> Optional[str]:
    data = result.get("data") or {}
    task_id = None
    if isinstance(data, dict):
        task_id = data.get("taskId") or data.get("task_id") or data.get("id")
    if not task_id:
        task_id = result.get("taskId") or result.get("task_id") or result.get("id")
    return task_id


def _video_url(record: dict) -> Optional[str]:
    response = record.get("response") or {}
    if isinstance(response, dict):
        urls = response.get("resultUrls") or []
        if urls:
            return urls[0]

    results = record.get("results") or record.get("works") or []
    if results and isinstance(results, list):
        first = results[0]
        if isinstance(first, dict):
            url = first.get("url") or first.get("videoUrl") or first.get("video_url")
            if url:
                return url
        elif isinstance(first, str):
            return first

    return record.get("videoUrl") or record.get("video_url") or record.get("resultUrl")


class KieVeoSynthesizer:
    def __init__(
        self,
        api_key: str = config.KIE_API_KEY,
        api_base: str = config.KIE_API_BASE,
        model: str = config.KIE_VEO_MODEL,
        aspect_ratio: str = "16:9",
        poller: Optional[OperationPoller] = None,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.model = model
        self.aspect_ratio = aspect_ratio
        self.poller = poller or OperationPoller()
        self.timeout = timeout
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationMissing("KIE_API_KEY")

    async def generate(
        self,
        prompt: str,
        product_name: str,
        reference_images: Sequence[str] = (),
    ) -> VideoResult:
        self.ensure_configured()

        image_urls = [ref for ref in reference_images if is_remote(ref)]
        skipped = len(reference_images) - len(image_urls)
        if skipped:
            logger.warning(f"Kie.ai accepts URLs only; dropping {skipped} inline reference image(s)")

        payload: dict = {
            "prompt": prompt,
            "model": self.model,
            "aspectRatio": self.aspect_ratio,
        }
        if image_urls:
            payload["mode"] = "REFERENCE_2_VIDEO"
            payload["imageUrls"] = image_urls
        logger.info(
            f"Kie.ai Veo request for '{product_name}': model={self.model}, "
            f"mode={payload.get('mode', 'TEXT_2_VIDEO')}, images={len(image_urls)}"
        )

        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            submitted = await self._request(client, "POST", f"{self.api_base}/veo/generate", headers, json=payload)

            task_id = _task_id(submitted)
            if not task_id:
                raise GenerationFailed(f"Kie.ai submit failed, no task_id: {submitted}", detail=submitted)
            logger.info(f"Kie.ai Veo task submitted: task_id={task_id}")

            check = partial(self._check_task, client, headers)
            return await self.poller.wait(task_id, check, label="Kie.ai Veo task")

    async def _request(self, client: httpx.AsyncClient, method: str, url: str, headers: dict, **kwargs) -> dict:
        try:
            resp = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise GenerationFailed(f"Kie.ai request failed: {e}")

        if resp.status_code != 200:
            raise GenerationFailed(
                f"Kie.ai API error {resp.status_code}: {resp.text[:500]}",
                detail=resp.text[:2000],
            )
        try:
            body = resp.json()
        except ValueError:
            raise GenerationFailed(f"Kie.ai returned non-JSON body: {resp.text[:200]}")

        # Kie.ai wraps errors in a 200 with its own code field
        code = body.get("code")
        if code is not None and code != 200:
            raise GenerationFailed(f"Kie.ai error {code}: {body.get('msg')}", detail=body)
        return body

    async def _check_task(self, client: httpx.AsyncClient, headers: dict, task_id: str) -> Optional[VideoResult]:
        status_data = await self._request(
            client, "GET", f"{self.api_base}/veo/record-info", headers, params={"taskId": task_id}
        )
        record = status_data.get("data")
        if not isinstance(record, dict):
            record = {}

        raw_status = record.get("status", "")
        success_flag = record.get("successFlag")

        if raw_status in FAILED_STATUSES or success_flag in (2, 3):
            error_msg = record.get("errorMessage") or record.get("error") or record.get("msg") or "Unknown Veo error"
            raise GenerationFailed(f"Kie.ai Veo task failed: {error_msg}", detail=record)

        if not (raw_status in SUCCESS_STATUSES or success_flag == 1):
            return None

        video_url = _video_url(record)
        if not video_url:
            raise GenerationFailed(f"Veo completed but no video URL in response: {record}", detail=record)

        try:
            video_resp = await client.get(video_url, follow_redirects=True, timeout=120)
            video_resp.raise_for_status()
        except httpx.HTTPError as e:
            raise GenerationFailed(f"Failed to download generated video: {e}")

        content_type = video_resp.headers.get("content-type", "video/mp4").split(";")[0]
        logger.info(f"Kie.ai video downloaded: {len(video_resp.content)} bytes")
        return VideoResult(video_bytes=video_resp.content, mime_type=content_type)
