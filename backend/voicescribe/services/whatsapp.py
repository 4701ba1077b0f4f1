"""
WhatsApp Cloud API client

- download_media: two-step media fetch (resolve the media id to a short-lived URL, then download it)
- send_text: free-form text message (only delivered inside the 24h session window)
- send_template: approved template message (can be sent at any time)

No retries happen here; callers decide what to retry.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.errors import DownloadError, SendError

logger = logging.getLogger(__name__)


class WhatsAppClient:
    """WhatsApp Cloud API client bound to one business phone number"""

    def __init__(
        self,
        access_token: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token if access_token is not None else settings.whatsapp_access_token
        self.phone_number_id = phone_number_id if phone_number_id is not None else settings.whatsapp_phone_number_id
        self.api_url = (api_url or settings.whatsapp_api_url).rstrip("/")
        self._transport = transport

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def download_media(self, media_id: str) -> bytes:
        """
        Fetch the binary content of an inbound media object.

        Raises:
            DownloadError: either request failed; `status` is the HTTP status (None on transport errors)
        """
        try:
            async with self._client(timeout=60) as client:
                # Step 1: resolve the media id to its download URL
                meta = await client.get(f"{self.api_url}/{media_id}", headers=self._headers)
                if meta.status_code >= 400:
                    raise DownloadError(
                        f"Failed to get media URL: {meta.status_code} {meta.reason_phrase}",
                        status=meta.status_code,
                    )
                media_url = meta.json().get("url")
                if not media_url:
                    raise DownloadError(f"Media {media_id} has no download URL", status=meta.status_code)

                # Step 2: download the file itself (same bearer token)
                resp = await client.get(media_url, headers=self._headers)
                if resp.status_code >= 400:
                    raise DownloadError(
                        f"Failed to download media: {resp.status_code} {resp.reason_phrase}",
                        status=resp.status_code,
                    )
                return resp.content
        except (httpx.HTTPError, ValueError) as e:
            raise DownloadError(f"Media download failed: {e!r}") from e

    async def _post_message(self, payload: Dict[str, Any], kind: str) -> Dict[str, Any]:
        url = f"{self.api_url}/{self.phone_number_id}/messages"
        try:
            async with self._client(timeout=30) as client:
                resp = await client.post(url, headers=self._headers, json=payload)
        except httpx.HTTPError as e:
            raise SendError(f"Failed to send WhatsApp {kind}: {e!r}") from e

        if resp.status_code >= 400:
            logger.error("[whatsapp] %s send error | status=%s | body=%s", kind, resp.status_code, resp.text)
            raise SendError(f"Failed to send WhatsApp {kind}: {resp.status_code}", status=resp.status_code)
        return resp.json() if resp.content else {}

    async def send_text(self, to: str, text: str) -> Dict[str, Any]:
        return await self._post_message(
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "text",
                "text": {"body": text},
            },
            kind="message",
        )

    async def send_template(
        self, to: str, template_name: str, params: List[str], language: str = "en"
    ) -> Dict[str, Any]:
        """
        Send a template message; every entry of `params` fills one body placeholder in order.
        """
        return await self._post_message(
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "template",
                "template": {
                    "name": template_name,
                    "language": {"code": language},
                    "components": [
                        {
                            "type": "body",
                            "parameters": [{"type": "text", "text": p} for p in params],
                        }
                    ],
                },
            },
            kind="template",
        )
