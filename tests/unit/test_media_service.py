"""Unit tests for CloudinaryUploader with a mocked httpx client."""

import hashlib
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from account_service.services.media_service import CloudinaryUploader


@pytest.fixture
def uploader():
    return CloudinaryUploader(cloud_name="demo", api_key="key-123", api_secret="shh")


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "avatar.png"
    path.write_bytes(b"\x89PNG fake image")
    return path


def _response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.json.return_value = payload
    return response


class TestSignature:
    """Tests for request signing."""

    def test_sign_sorts_params_and_appends_secret(self, uploader):
        expected = hashlib.sha1(b"folder=avatars&timestamp=1700000000shh").hexdigest()
        assert uploader.sign({"timestamp": 1700000000, "folder": "avatars"}) == expected

    def test_upload_url(self, uploader):
        assert uploader.upload_url == "https://api.cloudinary.com/v1_1/demo/auto/upload"


class TestUpload:
    """Tests for upload."""

    async def test_success_returns_secure_url_and_removes_file(self, uploader, image):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.is_closed = False
            mock_client.post.return_value = _response(
                {"secure_url": "https://res.cloudinary.com/demo/a.png", "public_id": "a"}
            )
            mock_client_class.return_value = mock_client

            result = await uploader.upload(str(image))

        assert result.url == "https://res.cloudinary.com/demo/a.png"
        assert result.public_id == "a"
        assert not image.exists()

        _, kwargs = mock_client.post.call_args
        assert kwargs["data"]["api_key"] == "key-123"
        assert "signature" in kwargs["data"]
        assert "timestamp" in kwargs["data"]

    async def test_falls_back_to_plain_url(self, uploader, image):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response({"url": "http://res.cloudinary.com/demo/a.png"})
            mock_client_class.return_value = mock_client

            result = await uploader.upload(str(image))

        assert result.url == "http://res.cloudinary.com/demo/a.png"

    async def test_http_error_returns_none_and_removes_file(self, uploader, image):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            response = _response({})
            response.raise_for_status.side_effect = httpx.HTTPStatusError(
                "server error",
                request=MagicMock(),
                response=SimpleNamespace(status_code=500),
            )
            mock_client.post.return_value = response
            mock_client_class.return_value = mock_client

            result = await uploader.upload(str(image))

        assert result is None
        assert not image.exists()

    async def test_timeout_returns_none_without_retry(self, uploader, image):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.side_effect = httpx.TimeoutException("Timeout")
            mock_client_class.return_value = mock_client

            result = await uploader.upload(str(image))

        assert result is None
        assert mock_client.post.call_count == 1

    async def test_missing_url_returns_none(self, uploader, image):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response({"public_id": "a"})
            mock_client_class.return_value = mock_client

            assert await uploader.upload(str(image)) is None

    async def test_no_path_is_noop(self, uploader):
        with patch("httpx.AsyncClient") as mock_client_class:
            assert await uploader.upload(None) is None
            mock_client_class.assert_not_called()

    async def test_unconfigured_returns_none_and_removes_file(self, image):
        unconfigured = CloudinaryUploader(cloud_name="", api_key="", api_secret="")

        with patch("httpx.AsyncClient") as mock_client_class:
            assert await unconfigured.upload(str(image)) is None
            mock_client_class.assert_not_called()

        assert not image.exists()

    async def test_missing_local_file_returns_none(self, uploader, tmp_path):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client_class.return_value = AsyncMock()
            assert await uploader.upload(str(tmp_path / "gone.png")) is None
