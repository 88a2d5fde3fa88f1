"""NIP-96 attachment upload with NIP-98 HTTP authorization.

[Nip96Uploader][vectorbot.utils.upload.Nip96Uploader] resolves the media
server's ``api_url`` from its NIP-96 configuration document (once per
uploader), then posts the already-encrypted attachment as multipart form
data. Each attempt is authorized by a fresh kind-27235 event signed through
[CryptoPrimitives][vectorbot.utils.crypto.CryptoPrimitives] and sent as
``Authorization: Nostr <base64 event>``.

Examples:
    ```python
    uploader = Nip96Uploader(crypto)
    url = await uploader.upload(encrypted, "image/png")
    ```
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from vectorbot.core.exceptions import UploadError
from vectorbot.nips.event_builders import build_http_auth
from vectorbot.utils.crypto import calculate_file_hash


if TYPE_CHECKING:
    from vectorbot.utils.crypto import CryptoPrimitives


logger = logging.getLogger(__name__)

TRUSTED_NIP96_SERVER = "https://medea-1-swiss.vectorapp.io"
WELL_KNOWN_PATH = "/.well-known/nostr/nip96.json"

_MAX_RESPONSE_SIZE = 1024 * 1024


async def _read_json(response: aiohttp.ClientResponse) -> Any:
    """Parse a JSON body, refusing bodies over ``_MAX_RESPONSE_SIZE`` bytes."""
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(_MAX_RESPONSE_SIZE + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > _MAX_RESPONSE_SIZE:
            raise UploadError(f"Response body too large: >{_MAX_RESPONSE_SIZE} bytes")
        chunks.append(chunk)
    try:
        return json.loads(b"".join(chunks))
    except ValueError as e:
        raise UploadError(f"Malformed JSON response: {e}") from e


def extract_upload_url(payload: Any) -> str:
    """URL of the stored file from a NIP-96 upload response.

    Raises:
        UploadError: If the server reported an error or no ``url``/``u`` tag exists.
    """
    if not isinstance(payload, dict):
        raise UploadError("Upload response is not a JSON object")
    if payload.get("status") == "error":
        raise UploadError(payload.get("message") or "Upload server reported an error")
    nip94 = payload.get("nip94_event") or {}
    for tag in nip94.get("tags") or []:
        if isinstance(tag, list) and len(tag) > 1 and tag[0] in ("url", "u"):
            return str(tag[1])
    raise UploadError("Upload response is missing a URL tag")


class Nip96Uploader:
    """Uploads encrypted attachments to a NIP-96 media server.

    Attributes:
        server_url: Base URL of the media server.
        retry_count: Retries after the first failed attempt.
        retry_spacing: Seconds between attempts.
        timeout: Total timeout of each HTTP request in seconds.
    """

    def __init__(
        self,
        crypto: CryptoPrimitives,
        *,
        server_url: str = TRUSTED_NIP96_SERVER,
        retry_count: int = 3,
        retry_spacing: float = 2.0,
        timeout: float = 60.0,  # noqa: ASYNC109
    ) -> None:
        self._crypto = crypto
        self.server_url = server_url.rstrip("/")
        self.retry_count = retry_count
        self.retry_spacing = retry_spacing
        self.timeout = timeout
        self._api_url: str | None = None

    async def get_api_url(self, session: aiohttp.ClientSession) -> str:
        """Resolve and cache the server's upload endpoint.

        Raises:
            UploadError: If the configuration cannot be fetched or lacks ``api_url``.
        """
        if self._api_url is not None:
            return self._api_url
        try:
            async with session.get(self.server_url + WELL_KNOWN_PATH) as response:
                if response.status != 200:  # noqa: PLR2004
                    raise UploadError("Failed to fetch NIP-96 server configuration")
                payload = await _read_json(response)
        except aiohttp.ClientError as e:
            raise UploadError(f"Failed to fetch NIP-96 server configuration: {e}") from e
        api_url = payload.get("api_url") if isinstance(payload, dict) else None
        if not api_url:
            raise UploadError("Malformed server configuration")
        self._api_url = api_url
        return api_url

    def authorization_header(self, url: str, method: str, payload: bytes) -> str:
        """NIP-98 ``Authorization`` header value for one request."""
        event = self._crypto.sign_event(
            build_http_auth(url, method, calculate_file_hash(payload))
        )
        return "Nostr " + base64.b64encode(event.to_json().encode()).decode()

    async def upload(self, data: bytes, mime_type: str | None = None) -> str:
        """Upload ``data`` and return the URL reported by the server.

        Raises:
            UploadError: After every attempt failed, carrying the last error.
        """
        client_timeout = aiohttp.ClientTimeout(total=self.timeout)
        last_error: UploadError | None = None
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            for attempt in range(self.retry_count + 1):
                if attempt > 0:
                    await asyncio.sleep(self.retry_spacing)
                try:
                    return await self._attempt(session, data, mime_type)
                except UploadError as e:
                    last_error = e
                except (aiohttp.ClientError, TimeoutError) as e:
                    last_error = UploadError(f"Upload request failed: {e}")
                logger.debug("upload_attempt_failed attempt=%s error=%s", attempt + 1, last_error)
        raise last_error or UploadError("Upload failed without a recorded error")

    async def _attempt(
        self, session: aiohttp.ClientSession, data: bytes, mime_type: str | None
    ) -> str:
        api_url = await self.get_api_url(session)
        form = aiohttp.FormData()
        form.add_field(
            "file",
            data,
            filename="attachment",
            content_type=mime_type or "application/octet-stream",
        )
        headers = {"Authorization": self.authorization_header(api_url, "POST", data)}
        async with session.post(api_url, data=form, headers=headers) as response:
            if response.status >= 400:  # noqa: PLR2004
                raise UploadError(f"Upload failed ({response.status})")
            payload = await _read_json(response)
        return extract_upload_url(payload)
