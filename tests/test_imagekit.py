import httpx
import pytest

from turntable.errors import ConfigurationMissing, UploadFailed
from turntable.imagekit import ImageKitHost


@pytest.mark.unit
class TestImageKitHost:

    @pytest.mark.asyncio
    async def test_upload_posts_multipart_with_basic_auth(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization", "")
            seen["content_type"] = request.headers.get("content-type", "")
            seen["body"] = request.read()
            return httpx.Response(200, json={"url": "https://cdn.example/mug123.jpg"})

        host = ImageKitHost(private_key="private_abc", transport=httpx.MockTransport(handler))
        url = await host.upload("data:image/jpeg;base64,AAAA", "Red_Mug_main.jpg")

        assert url == "https://cdn.example/mug123.jpg"
        assert seen["auth"].startswith("Basic ")
        assert seen["content_type"].startswith("multipart/form-data")
        assert b"Red_Mug_main.jpg" in seen["body"]
        assert b"AAAA" in seen["body"]
        assert b"data:image" not in seen["body"]

    @pytest.mark.asyncio
    async def test_non_200_raises_upload_failed_with_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(403, text="forbidden"))
        host = ImageKitHost(private_key="private_abc", transport=transport)

        with pytest.raises(UploadFailed) as exc_info:
            await host.upload("https://shop.example/mug.jpg", "mug.jpg")
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_url_in_response_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"fileId": "f1"}))
        host = ImageKitHost(private_key="private_abc", transport=transport)

        with pytest.raises(UploadFailed, match="no URL"):
            await host.upload("AAAA", "mug.jpg")

    def test_missing_private_key(self):
        with pytest.raises(ConfigurationMissing):
            ImageKitHost(private_key="").ensure_configured()
