"""
Call-memory store adapters.

Records are written by the call-ending webhook into a durable key-value
store with a 90-day TTL. This module only reads them, using the same key
layout the writer uses:

    latest:<phone>               newest record, overwritten on every call
    index:<phone>                {"timestamps": [...]} of retained records
    history:<phone>:<timestamp>  one record per call
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from callcab.schemas.memory_schema import CallRecord
from callcab.utils import mask_phone

logger = logging.getLogger(__name__)

LATEST_KEY = "latest:{phone}"
INDEX_KEY = "index:{phone}"
HISTORY_KEY = "history:{phone}:{timestamp}"


class MemoryStoreError(Exception):
    """Raised when the memory store cannot be read or returns unusable data."""


class MemoryStore(ABC):
    """Read side of the per-customer call history."""

    @abstractmethod
    async def get_latest(self, phone: str) -> Optional[CallRecord]:
        """Return the newest call record for a canonical phone, if any."""

    @abstractmethod
    async def get_recent_history(self, phone: str, limit: int) -> list[CallRecord]:
        """Return up to ``limit`` records, newest first."""

    async def aclose(self) -> None:
        """Release connections held by the store."""


class RedisMemoryStore(MemoryStore):
    """Memory store backed by Redis."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisMemoryStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get_latest(self, phone: str) -> Optional[CallRecord]:
        try:
            raw = await self._redis.get(LATEST_KEY.format(phone=phone))
        except RedisError as e:
            raise MemoryStoreError(f"Redis read failed for {mask_phone(phone)}: {e}") from e
        if raw is None:
            return None
        try:
            return CallRecord.model_validate_json(raw)
        except ValidationError as e:
            raise MemoryStoreError(
                f"Malformed latest record for {mask_phone(phone)}"
            ) from e

    async def get_recent_history(self, phone: str, limit: int) -> list[CallRecord]:
        if limit <= 0:
            return []
        try:
            raw_index = await self._redis.get(INDEX_KEY.format(phone=phone))
            if not raw_index:
                return []
            timestamps = json.loads(raw_index).get("timestamps") or []
            newest = sorted(timestamps, reverse=True)[:limit]
            if not newest:
                return []
            values = await self._redis.mget(
                [HISTORY_KEY.format(phone=phone, timestamp=ts) for ts in newest]
            )
        except RedisError as e:
            raise MemoryStoreError(
                f"Redis history read failed for {mask_phone(phone)}: {e}"
            ) from e
        except (json.JSONDecodeError, AttributeError) as e:
            raise MemoryStoreError(
                f"Malformed history index for {mask_phone(phone)}"
            ) from e

        records: list[CallRecord] = []
        for timestamp, raw in zip(newest, values):
            if raw is None:
                logger.debug("History entry %s expired", timestamp)
                continue
            try:
                records.append(CallRecord.model_validate_json(raw))
            except ValidationError:
                logger.warning(
                    "Skipping malformed history record %s for %s",
                    timestamp, mask_phone(phone),
                )
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records

    async def aclose(self) -> None:
        await self._redis.aclose()


class InMemoryMemoryStore(MemoryStore):
    """Process-local store for the console demo and tests."""

    def __init__(self, records: Optional[list[CallRecord]] = None) -> None:
        self._records: dict[str, list[CallRecord]] = {}
        for record in records or []:
            self.add_record(record)

    def add_record(self, record: CallRecord) -> None:
        history = self._records.setdefault(record.phone, [])
        history.append(record)
        history.sort(key=lambda r: r.timestamp, reverse=True)

    async def get_latest(self, phone: str) -> Optional[CallRecord]:
        history = self._records.get(phone)
        return history[0] if history else None

    async def get_recent_history(self, phone: str, limit: int) -> list[CallRecord]:
        return list(self._records.get(phone, [])[:max(limit, 0)])
