"""Economy collaborator — grants story rewards to a user's balance.

The engine computes coin and XP figures; crediting them is delegated to an
object matching the protocol:

    async def __call__(self, grant: RewardGrant) -> None: ...

Two implementations are provided:

    HttpEconomyClient — POSTs the grant to the economy backend.
    LoggingEconomy    — logs and records grants. No network calls; used for
                        local development when no backend is running.

Any failure is raised as RewardGrantError. The engine does not retry.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from pydantic import BaseModel

from talecraft.errors import RewardGrantError

logger = logging.getLogger(__name__)


class RewardGrant(BaseModel):
    user_id: int
    coins: int
    xp: int
    activity_type: str
    notes: str = ""


class RewardGranter(Protocol):
    async def __call__(self, grant: RewardGrant) -> None: ...


class HttpEconomyClient:
    """Async HTTP client for the economy backend.

    Calls POST {base_url}/rewards/grant with the RewardGrant as JSON body.
    Any 2xx response counts as success.

    Args:
        base_url: Base URL of the backend, e.g. "http://localhost:3000/api".
        api_key:  Bearer token, or empty string if not required.
        timeout:  HTTP timeout in seconds. Defaults to 10.
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def __call__(self, grant: RewardGrant) -> None:
        url = f"{self._base_url}/rewards/grant"
        logger.debug(
            "reward grant user=%s coins=%d xp=%d activity=%s",
            grant.user_id, grant.coins, grant.xp, grant.activity_type,
        )
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=grant.model_dump(), headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise RewardGrantError(f"Cannot connect to economy backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise RewardGrantError(
                f"Economy backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise RewardGrantError(f"Economy backend timed out after {self._timeout}s") from e


class LoggingEconomy:
    """Records grants in memory and logs them. No network calls."""

    def __init__(self) -> None:
        self.grants: list[RewardGrant] = []

    async def __call__(self, grant: RewardGrant) -> None:
        logger.info(
            "LoggingEconomy grant user=%s coins=%d xp=%d activity=%s",
            grant.user_id, grant.coins, grant.xp, grant.activity_type,
        )
        self.grants.append(grant)
