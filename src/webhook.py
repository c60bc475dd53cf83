"""Client for the external script-generation webhook."""

import asyncio
import logging
from typing import Any

import requests

from config import settings
from src.exceptions import WebhookError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class WebhookClient:
    """Posts an episode name and source PDF to the workflow webhook.

    The response is advisory only: authoritative state always comes from the
    episode table, so callers treat any failure as non-fatal.
    """

    def __init__(self, url: str | None = None, timeout: int | None = None,
                 session: requests.Session | None = None):
        self.url = url if url is not None else settings.webhook_url
        self.timeout = timeout or settings.webhook_timeout_seconds
        self.session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self.url)

    def _post(self, episode_name: str, filename: str, data: bytes) -> Any:
        if not self.url:
            raise WebhookError("No WEBHOOK_URL configured")

        files = {"pdfFile": (filename, data, PDF_CONTENT_TYPE)}
        form = {"episodeName": episode_name}
        logger.info("Posting '%s' (%s, %d bytes) to webhook", episode_name, filename, len(data))

        try:
            resp = self.session.post(self.url, data=form, files=files, timeout=self.timeout)
        except requests.RequestException as e:
            raise WebhookError(f"Webhook request failed: {e}") from e

        if not resp.ok:
            detail = resp.text[:300] if resp.text else resp.reason
            raise WebhookError(
                f"Webhook responded with status {resp.status_code}: {detail}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError:
            logger.info("Webhook returned a non-JSON body (%d bytes)", len(resp.content))
            return None

    async def submit(self, episode_name: str, filename: str, data: bytes) -> Any:
        """Send the submission without blocking the event loop.

        Returns:
            The decoded JSON body, or None when the body is not JSON.

        Raises:
            WebhookError: On transport errors or a non-2xx response.
        """
        return await asyncio.to_thread(self._post, episode_name, filename, data)


def first_item(response: Any) -> dict[str, Any] | None:
    """Return the first element of an array response when it is an object."""
    if isinstance(response, list) and response and isinstance(response[0], dict):
        return response[0]
    if isinstance(response, dict):
        return response
    return None
