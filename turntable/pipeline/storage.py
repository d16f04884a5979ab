"""
Image reference helpers and the R2 image host.

An image reference is either a remote URL (http/https) or inline data: a
`data:<mime>;base64,<payload>` URL or a bare base64 string.

R2 objects are stored under:
  product-images/{uuid}_{file_name}
"""

import re
import uuid
import base64
import asyncio
import logging
from typing import Optional

import httpx

from .. import config
from ..errors import ConfigurationMissing, UploadFailed

logger = logging.getLogger(__name__)


# ── Reference Helpers ────────────────────────────────────────────────────────

def is_remote(ref: str) -> bool:
    return ref.startswith("http://") or ref.startswith("https://")


def guess_mime(url: str) -> str:
    lower = url.lower()
    if ".png" in lower:
        return "image/png"
    if ".webp" in lower:
        return "image/webp"
    return "image/jpeg"


def split_data_url(ref: str) -> tuple[str, str]:
    """Return (mime_type, base64_payload) for an inline reference."""
    if ref.startswith("data:") and "," in ref:
        header, b64data = ref.split(",", 1)
        mime = header.split(":", 1)[1].split(";")[0] or "image/jpeg"
        return mime, b64data
    if "," in ref:
        return "image/jpeg", ref.split(",", 1)[1]
    return "image/jpeg", ref


def safe_file_stem(name: str) -> str:
    """Product name → filesystem/URL-safe stem, e.g. 'Red Mug!' → 'Red_Mug_'."""
    return re.sub(r"[^a-z0-9]", "_", name, flags=re.IGNORECASE) or "product"


def decode_base64(ref: str) -> bytes:
    _, b64data = split_data_url(ref)
    return base64.b64decode(b64data)


async def download_image_bytes(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = 30,
) -> tuple[bytes, str]:
    """Download an image from a public URL and return (raw bytes, mime type)."""
    async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        content_type = resp.headers.get("content-type", "") or guess_mime(url)
        return resp.content, content_type.split(";")[0]


async def load_image_base64(
    ref: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> tuple[str, str]:
    """Resolve any reference to (mime_type, base64_payload), downloading URLs."""
    if is_remote(ref):
        data, mime = await download_image_bytes(ref, transport=transport)
        return mime, base64.b64encode(data).decode("utf-8")
    return split_data_url(ref)


# ── R2 Image Host ────────────────────────────────────────────────────────────

class R2ImageHost:
    """Uploads images to Cloudflare R2 through the S3 API (boto3)."""

    def __init__(
        self,
        account_id: str = config.R2_ACCOUNT_ID,
        access_key_id: str = config.R2_ACCESS_KEY_ID,
        secret_access_key: str = config.R2_SECRET_ACCESS_KEY,
        bucket: str = config.R2_BUCKET_NAME,
        public_url: str = config.R2_PUBLIC_URL,
        s3_client=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_id = account_id
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")
        self._s3 = s3_client
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.public_url:
            raise ConfigurationMissing("R2_PUBLIC_URL")
        if self._s3 is None and not (self.account_id and self.access_key_id and self.secret_access_key):
            raise ConfigurationMissing(
                "R2_ACCOUNT_ID",
                "R2_ACCOUNT_ID, R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY must be set",
            )

    def _client(self):
        if self._s3 is None:
            import boto3
            from botocore.config import Config as BotoConfig

            self._s3 = boto3.client(
                "s3",
                endpoint_url=f"https://{self.account_id}.r2.cloudflarestorage.com",
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                config=BotoConfig(signature_version="s3v4"),
                region_name="auto",
            )
        return self._s3

    async def upload(self, image_ref: str, suggested_name: str) -> str:
        self.ensure_configured()

        try:
            if is_remote(image_ref):
                data, content_type = await download_image_bytes(image_ref, transport=self._transport)
            else:
                content_type, _ = split_data_url(image_ref)
                data = decode_base64(image_ref)
        except (httpx.HTTPError, ValueError) as e:
            raise UploadFailed(f"Could not read image for R2 upload: {e}")

        key = f"product-images/{uuid.uuid4().hex}_{suggested_name}"
        try:
            await asyncio.to_thread(
                self._client().put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except Exception as e:
            logger.error(f"R2 upload failed for key={key}: {e}")
            raise UploadFailed(f"R2 upload failed: {e}")

        public_url = f"{self.public_url}/{key}"
        logger.info(f"Uploaded to R2: {public_url}")
        return public_url
