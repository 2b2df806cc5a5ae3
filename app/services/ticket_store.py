"""
Ledger Reports - Ticket Store

Key-value storage for report ticket state with a bounded time-to-live.
Once a key expires the ticket is gone for good: reads return None and
status writes do not recreate it.

Backends:
- RedisTicketStore: shared by the API process and Celery workers
- InMemoryTicketStore: single process deployments and tests
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from pydantic import BaseModel, Field

from app.config import Settings, get_settings
from app.schemas.general_ledger import TicketStatus
from app.utils.error_handling import TicketStoreException

logger = logging.getLogger(__name__)


class ReportArtifact(BaseModel):
    """Where a finished report was written."""
    disk: str = "local"
    relative_path: str
    download_name: str
    format: str
    content_type: str


class TicketState(BaseModel):
    """Persisted state of one report run."""
    ticket: str
    status: TicketStatus = TicketStatus.RUNNING
    progress: int = Field(0, ge=0, le=100)
    message: str = ""
    params: Dict[str, Any] = Field(default_factory=dict)
    artifact: Optional[ReportArtifact] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class TicketStore(ABC):
    """Ticket state keyed by ticket id."""

    def __init__(self, ttl_seconds: int, key_prefix: str = "gl"):
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def key_for(self, ticket: str) -> str:
        return f"{self.key_prefix}:{ticket}"

    @abstractmethod
    async def get(self, ticket: str) -> Optional[TicketState]:
        """Return the state, or None when unknown or expired."""

    @abstractmethod
    async def put(self, state: TicketState, create: bool = False) -> bool:
        """
        Write the whole state and refresh its TTL.

        With ``create=False`` the write only happens when the key still
        exists; returns False when it was skipped.
        """

    @abstractmethod
    async def delete(self, ticket: str) -> None:
        ...

    async def close(self) -> None:
        return None


class RedisTicketStore(TicketStore):
    """Ticket store on Redis; expiry is handled by Redis key TTLs."""

    def __init__(
        self,
        redis_url: str,
        ttl_seconds: int,
        key_prefix: str = "gl",
        client: Optional[redis.Redis] = None,
    ):
        super().__init__(ttl_seconds, key_prefix)
        self.redis_url = redis_url
        self._client = client

    async def get_client(self) -> redis.Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, ticket: str) -> Optional[TicketState]:
        try:
            client = await self.get_client()
            raw = await client.get(self.key_for(ticket))
        except redis.RedisError as exc:
            logger.error(f"Ticket store read failed for {ticket}: {exc}")
            raise TicketStoreException(original_error=exc) from exc
        if raw is None:
            return None
        return TicketState.model_validate_json(raw)

    async def put(self, state: TicketState, create: bool = False) -> bool:
        try:
            client = await self.get_client()
            written = await client.set(
                self.key_for(state.ticket),
                state.model_dump_json(),
                ex=self.ttl_seconds,
                xx=not create,
            )
        except redis.RedisError as exc:
            logger.error(f"Ticket store write failed for {state.ticket}: {exc}")
            raise TicketStoreException(original_error=exc) from exc
        return bool(written)

    async def delete(self, ticket: str) -> None:
        try:
            client = await self.get_client()
            await client.delete(self.key_for(ticket))
        except redis.RedisError as exc:
            raise TicketStoreException(original_error=exc) from exc


class InMemoryTicketStore(TicketStore):
    """Process-local ticket store; expired keys are swept on every write."""

    def __init__(
        self,
        ttl_seconds: int,
        key_prefix: str = "gl",
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(ttl_seconds, key_prefix)
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}

    def _live_entry(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return payload

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    async def get(self, ticket: str) -> Optional[TicketState]:
        payload = self._live_entry(self.key_for(ticket))
        if payload is None:
            return None
        return TicketState.model_validate_json(payload)

    async def put(self, state: TicketState, create: bool = False) -> bool:
        key = self.key_for(state.ticket)
        now = self._clock()
        self._sweep(now)
        if not create and key not in self._entries:
            return False
        self._entries[key] = (now + self.ttl_seconds, state.model_dump_json())
        return True

    async def delete(self, ticket: str) -> None:
        self._entries.pop(self.key_for(ticket), None)


def create_ticket_store(config: Optional[Settings] = None) -> TicketStore:
    """Build the configured ticket store backend."""
    config = config or get_settings()
    backend = config.ticket_store_backend.lower()
    if backend == "memory":
        return InMemoryTicketStore(config.ticket_ttl_seconds, config.ticket_key_prefix)
    if backend == "redis":
        return RedisTicketStore(config.redis_url, config.ticket_ttl_seconds, config.ticket_key_prefix)
    raise ValueError(f"Unknown ticket store backend: {config.ticket_store_backend}")
