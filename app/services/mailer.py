"""Transactional e-mail client.

Posts messages to an HTTP e-mail provider. Sending is disabled when
EMAIL_API_URL is empty; callers should treat failures as non-fatal.
"""

import logging
from typing import Any

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from app.config import get_settings

logger = logging.getLogger(__name__)


class EmailError(Exception):
    """Raised when the e-mail provider rejects or cannot receive a message."""
    pass


class EmailClient:
    """Client for the transactional e-mail API."""

    def __init__(self) -> None:
        self._settings = get_settings()
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return self._settings.email_enabled

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=15.0,
                headers={
                    "Authorization": f"Bearer {self._settings.email_api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    @retry(
        retry=retry_if_exception_type(httpx.RequestError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        return await client.post(self._settings.email_api_url, json=payload)

    async def send(self, to: str, subject: str, text: str) -> bool:
        """Send a plain-text e-mail.

        Returns:
            True if the provider accepted the message, False if sending is disabled

        Raises:
            EmailError: If the provider is unreachable or returns an error status
        """
        if not self.enabled:
            logger.debug(f"E-mail disabled, skipping message to {to}")
            return False

        payload = {
            "from": self._settings.email_from,
            "to": [to],
            "subject": subject,
            "text": text,
        }

        try:
            response = await self._post(payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"E-mail provider error: {e.response.status_code}")
            raise EmailError(f"E-mail provider returned {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"E-mail provider request error: {e}")
            raise EmailError(f"Failed to reach e-mail provider: {e}") from e

        logger.info(f"E-mail sent to {to}: {subject}")
        return True


# Singleton instance
_client_instance: EmailClient | None = None


def get_email_client() -> EmailClient:
    """Get or create the global e-mail client."""
    global _client_instance
    if _client_instance is None:
        _client_instance = EmailClient()
    return _client_instance


async def shutdown_email_client() -> None:
    """Shutdown the global e-mail client."""
    global _client_instance
    if _client_instance is not None:
        await _client_instance.close()
        _client_instance = None
