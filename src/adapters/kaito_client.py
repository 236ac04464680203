"""Kaito score API adapter.

Implements the core ScoreSourcePort over HTTP with httpx.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from core.config import KaitoConfig
from core.errors import TransientFetchError
from core.models import ScoreSnapshot

LOGGER = logging.getLogger(__name__)


class KaitoScoreSource:
    """Fetch Yaps scores for Twitter/X handles."""

    def __init__(self, config: Optional[KaitoConfig] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self._config = config or KaitoConfig()
        self._client = client or httpx.AsyncClient(
            timeout=self._config.timeout_seconds,
            headers={"User-Agent": "yapswatch/1.0"},
        )

    async def fetch(self, handle: str) -> Optional[ScoreSnapshot]:
        """Return the current snapshot, or None when Kaito has no data for the handle."""

        try:
            response = await self._client.get(
                self._config.base_url,
                params={"username": handle},
                timeout=self._config.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"Request for {handle} failed: {exc}") from exc

        if response.status_code == 404:
            LOGGER.warning("Twitter user %s not found on Kaito", handle)
            return None

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransientFetchError(f"Kaito returned {response.status_code} for {handle}") from exc

        if not response.content.strip():
            LOGGER.warning("Empty Kaito response for %s", handle)
            return None

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientFetchError(f"Invalid JSON from Kaito for {handle}") from exc

        if not payload:
            LOGGER.warning("Empty Kaito payload for %s", handle)
            return None
        if not isinstance(payload, dict):
            raise TransientFetchError(f"Unexpected Kaito payload for {handle}: {type(payload).__name__}")

        try:
            return ScoreSnapshot.from_payload(payload, handle=handle)
        except (KeyError, TypeError, ValueError) as exc:
            raise TransientFetchError(f"Malformed Kaito payload for {handle}: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
