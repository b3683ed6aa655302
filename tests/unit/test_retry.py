"""Retry with exponential backoff tests."""

from unittest.mock import AsyncMock

import pytest

from goalplanner import retry
from goalplanner.retry import retry_async


class TestRetryAsync:
    async def test_succeeds_after_failures(self, monkeypatch):
        sleep = AsyncMock()
        monkeypatch.setattr(retry.asyncio, "sleep", sleep)
        op = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])

        result = await retry_async(op, attempts=3, base_delay=1.0, retry_on=(ConnectionError,), name="t")
        assert result == "ok"
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    async def test_exhausted_reraises(self, monkeypatch):
        monkeypatch.setattr(retry.asyncio, "sleep", AsyncMock())
        op = AsyncMock(side_effect=ConnectionError("down"))
        with pytest.raises(ConnectionError):
            await retry_async(op, attempts=3, base_delay=0.1, retry_on=(ConnectionError,), name="t")
        assert op.await_count == 3

    async def test_other_errors_propagate_immediately(self):
        op = AsyncMock(side_effect=KeyError("x"))
        with pytest.raises(KeyError):
            await retry_async(op, attempts=3, base_delay=0, retry_on=(ConnectionError,), name="t")
        assert op.await_count == 1
