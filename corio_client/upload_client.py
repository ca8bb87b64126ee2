"""
Durable Upload Client

Turns a locally captured image into a durable server-side URL:
read bytes -> base64 data URL -> POST /api/upload/base64 -> returned URL.

Only the network POST is retried, and only for transport failures that are
not read/write timeouts (see retry_policy). A timed-out upload may already
be stored, and errors answered by the server are final; both propagate at once.
"""

import asyncio
import base64
import io
import time
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from PIL import Image, UnidentifiedImageError

from corio_client import config
from corio_client.api_client import ApiClient
from corio_client.errors import CorioClientError, UploadFailed
from corio_client.retry_policy import RetryPolicy, retry_async
from corio_client.structured_logging import get_logger

logger = get_logger(__name__)

UPLOAD_PATH = "/api/upload/base64"

ImageRef = Union[str, Path]


def detect_mime_type(data: bytes) -> str:
    """Sniff the image format with Pillow; unknown formats are sent as JPEG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return Image.MIME.get(img.format, config.DEFAULT_IMAGE_MIME_TYPE)
    except UnidentifiedImageError:
        return config.DEFAULT_IMAGE_MIME_TYPE


def encode_image(data: bytes, mime_type: Optional[str] = None) -> str:
    """Encode image bytes as a data URL the upload endpoint accepts."""
    mime_type = mime_type or detect_mime_type(data)
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def extension_for(mime_type: str) -> str:
    subtype = mime_type.split("/", 1)[-1].lower()
    return "jpg" if subtype in ("jpeg", "pjpeg") else subtype


def make_filename(prefix: str, image_index: int, mime_type: str = config.DEFAULT_IMAGE_MIME_TYPE) -> str:
    """Unique upload filename: prefix, epoch milliseconds, one-based ordinal and the format's extension."""
    return f"{prefix}-{int(time.time() * 1000)}-{image_index + 1}.{extension_for(mime_type)}"


class UploadClient:
    """Uploads local images one at a time with bounded retries."""

    def __init__(
        self,
        api: ApiClient,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api = api
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def upload_image(self, image_ref: ImageRef, image_index: int = 0, prefix: str = "lesion") -> str:
        """
        Upload one local image and return its durable URL.

        Args:
            image_ref: Local file path of the captured image
            image_index: Zero-based position of the image in its batch
            prefix: Filename prefix sent to the server

        Returns:
            Remote URL of the stored image

        Raises:
            UploadFailed: local read failed, server rejected the upload, or
                transport retries were exhausted
        """
        try:
            data = Path(image_ref).read_bytes()
        except OSError as e:
            logger.error(f"Cannot read image {image_index}", extra={"image_index": image_index, "error": str(e)})
            raise UploadFailed(image_index, f"Cannot read local image: {e}") from e

        mime_type = detect_mime_type(data)
        payload = {
            "base64": encode_image(data, mime_type),
            "filename": make_filename(prefix, image_index, mime_type),
            "mimeType": mime_type,
        }
        attempts = 0

        async def post_once():
            nonlocal attempts
            attempts += 1
            return await self.api.post(UPLOAD_PATH, payload)

        try:
            result = await retry_async(
                post_once,
                self.retry_policy,
                sleep=self._sleep,
                description=f"Upload of image {image_index}",
            )
        except CorioClientError as e:
            logger.error(
                f"Upload of image {image_index} failed",
                extra={"image_index": image_index, "attempts": attempts, "error_kind": e.kind},
            )
            raise UploadFailed(image_index, str(e), attempts=attempts) from e

        url = result.get("url") if isinstance(result, dict) else None
        if not url:
            raise UploadFailed(image_index, "Upload response did not include a URL", attempts=attempts)

        logger.info(
            f"Image {image_index} uploaded",
            extra={"image_index": image_index, "attempts": attempts, "size_bytes": len(data)},
        )
        return url

    async def upload_images(self, image_refs: Sequence[ImageRef], prefix: str = "lesion") -> List[str]:
        """
        Upload images sequentially, in order.

        The first failure aborts the batch with UploadFailed(index); images
        uploaded before it are not rolled back.
        """
        urls = []
        for index, image_ref in enumerate(image_refs):
            urls.append(await self.upload_image(image_ref, index, prefix=prefix))
        return urls
