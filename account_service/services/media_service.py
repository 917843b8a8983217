"""Cloudinary media upload client."""

import hashlib
import time
from pathlib import Path
from typing import Optional, Protocol

import httpx
import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

CLOUDINARY_API_BASE_URL = "https://api.cloudinary.com/v1_1"


class UploadResult(BaseModel):
    """Reference returned by the media host."""

    url: str
    public_id: Optional[str] = None


class MediaUploader(Protocol):
    """Uploads a local file and returns its hosted reference, or None on failure."""

    async def upload(self, local_path: Optional[str]) -> Optional[UploadResult]:
        ...


class CloudinaryUploader:
    """Signed uploads to the Cloudinary REST API.

    The local file is always removed after an attempt, whether or not the
    upload succeeded. Failed uploads are logged and reported as None; nothing
    is retried.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: float = 30,
        base_url: str = CLOUDINARY_API_BASE_URL,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout
        self.base_url = base_url
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings) -> "CloudinaryUploader":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            timeout=settings.media_upload_timeout,
        )

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/{self.cloud_name}/auto/upload"

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def sign(self, params: dict) -> str:
        """Compute the Cloudinary request signature.

        Parameters are sorted by name, joined as ``k=v`` pairs with ``&``,
        suffixed with the API secret and SHA-1 hashed.
        """
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    async def upload(self, local_path: Optional[str]) -> Optional[UploadResult]:
        """Upload a local file.

        Args:
            local_path: Path of the file to upload; None is a no-op

        Returns:
            UploadResult with the hosted URL, or None on any failure
        """
        if not local_path:
            return None

        path = Path(local_path)
        try:
            if not self.configured:
                logger.error("media_upload_not_configured")
                return None

            params = {"timestamp": int(time.time())}
            data = {
                **{key: str(value) for key, value in params.items()},
                "api_key": self.api_key,
                "signature": self.sign(params),
            }

            try:
                client = await self._get_client()
                with path.open("rb") as fh:
                    response = await client.post(
                        self.upload_url,
                        data=data,
                        files={"file": (path.name, fh)},
                    )
                response.raise_for_status()
                body = response.json()
            except httpx.HTTPStatusError as e:
                logger.error(
                    "media_upload_failed",
                    status_code=e.response.status_code,
                    file=path.name,
                )
                return None
            except (httpx.HTTPError, OSError, ValueError) as e:
                logger.error("media_upload_failed", error=str(e), file=path.name)
                return None
        finally:
            self._discard(path)

        url = body.get("secure_url") or body.get("url")
        if not url:
            logger.error("media_upload_missing_url", file=path.name)
            return None

        logger.info("media_uploaded", file=path.name, public_id=body.get("public_id"))
        return UploadResult(url=url, public_id=body.get("public_id"))

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("media_local_cleanup_failed", file=str(path), error=str(e))
