"""Tests for per-lookup log correlation."""

import asyncio
import logging

import pytest

from callcab.logging_context import (
    LookupContextFilter,
    bind_lookup,
    get_call_id,
    get_call_logger,
    get_caller,
)


class TestBindLookup:
    def test_binds_call_id_and_masked_caller(self):
        bind_lookup("call-abc123", "+13035550100")
        assert get_call_id() == "call-abc123"
        assert get_caller() == "***0100"

    def test_missing_values_fall_back(self):
        bind_lookup(None)
        assert get_call_id() == "NO_CALL_ID"
        assert get_caller() == "-"

    @pytest.mark.asyncio
    async def test_tasks_keep_their_own_context(self):
        async def lookup(call_id: str) -> str:
            bind_lookup(call_id, "+13035550100")
            await asyncio.sleep(0)
            return get_call_id()

        results = await asyncio.gather(lookup("call-1"), lookup("call-2"))
        assert results == ["call-1", "call-2"]


class TestLookupContextFilter:
    def test_filter_sets_record_fields(self):
        bind_lookup("call-9", "+13035550100")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        assert LookupContextFilter().filter(record) is True
        assert record.call_id == "call-9"
        assert record.caller == "***0100"

    def test_call_logger_attaches_filter_once(self):
        logger = get_call_logger("callcab.test_logging_context")
        get_call_logger("callcab.test_logging_context")
        filters = [f for f in logger.filters if isinstance(f, LookupContextFilter)]
        assert len(filters) == 1
