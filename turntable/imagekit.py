"""
ImageKit integration: hosts product photos on the ImageKit CDN.

The upload API accepts either a remote URL or a base64 payload in the same
`file` form field, so no download is needed on our side.
"""

import logging
from typing import Optional

import httpx

from . import config
from .errors import ConfigurationMissing, UploadFailed
from .pipeline.storage import is_remote, split_data_url

logger = logging.getLogger(__name__)


class ImageKitHost:
    def __init__(
        self,
        private_key: str = config.IMAGEKIT_PRIVATE_KEY,
        upload_url: str = config.IMAGEKIT_UPLOAD_URL,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.private_key = private_key
        self.upload_url = upload_url
        self.timeout = timeout
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.private_key:
            raise ConfigurationMissing("IMAGEKIT_PRIVATE_KEY")

    async def upload(self, image_ref: str, suggested_name: str) -> str:
        """
        Upload an image to ImageKit and return its public CDN URL.

        Args:
            image_ref:      Remote URL, data URL, or bare base64 string.
            suggested_name: File name hint; ImageKit appends a unique suffix.

        Raises:
            ConfigurationMissing: IMAGEKIT_PRIVATE_KEY is not set.
            UploadFailed:         Transport error or non-200 response.
        """
        self.ensure_configured()

        if is_remote(image_ref):
            logger.info(f"Uploading image from URL to ImageKit: {image_ref[:80]}")
            file_value = image_ref
        else:
            logger.info("Uploading base64 image to ImageKit")
            _, file_value = split_data_url(image_ref)

        # (None, value) tuples force multipart/form-data without a filename
        form = {
            "file": (None, file_value),
            "fileName": (None, suggested_name),
            "useUniqueFileName": (None, "true"),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.upload_url,
                    files=form,
                    auth=(self.private_key, ""),
                )
        except httpx.HTTPError as e:
            raise UploadFailed(f"ImageKit upload request failed: {e}")

        if resp.status_code != 200:
            raise UploadFailed(
                f"ImageKit upload failed ({resp.status_code}): {resp.text[:300]}",
                status_code=resp.status_code,
                detail=resp.text[:1000],
            )

        try:
            url = resp.json().get("url")
        except ValueError:
            url = None
        if not url:
            raise UploadFailed("ImageKit response contained no URL", status_code=resp.status_code)

        logger.info(f"ImageKit upload successful: {url}")
        return url
