"""Tests for retry with exponential backoff."""

from unittest.mock import AsyncMock, Mock

import pytest

from invoice_workflow.utils import backoff_delays, retry_async, retry_call


class TestBackoffDelays:
    """Test cases for backoff_delays."""

    @pytest.mark.parametrize("attempts, expected", [
        (1, []),
        (3, [2.0, 4.0]),
        (4, [2.0, 4.0, 8.0]),
    ])
    def test_delays_double(self, attempts, expected):
        assert list(backoff_delays(attempts, 2.0)) == expected


class TestRetryCall:
    """Test cases for retry_call."""

    def test_success_after_failures(self):
        func = Mock(side_effect=[ValueError("a"), ValueError("b"), "ok"])
        sleep = Mock()

        assert retry_call(func, 1, key="v", retry_on=(ValueError,), sleep=sleep) == "ok"

        func.assert_called_with(1, key="v")
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0]

    def test_last_error_reraised(self):
        func = Mock(side_effect=ValueError("still failing"))
        with pytest.raises(ValueError, match="still failing"):
            retry_call(func, attempts=3, sleep=Mock())
        assert func.call_count == 3

    def test_other_errors_propagate_immediately(self):
        func = Mock(side_effect=KeyError("x"))
        sleep = Mock()
        with pytest.raises(KeyError):
            retry_call(func, retry_on=(ValueError,), sleep=sleep)
        assert func.call_count == 1
        sleep.assert_not_called()


class TestRetryAsync:
    """Test cases for retry_async."""

    @pytest.mark.asyncio
    async def test_success_after_failure(self):
        func = AsyncMock(side_effect=[ConnectionError("down"), {"id": 1}])
        sleep = AsyncMock()

        assert await retry_async(func, 7, sleep=sleep) == {"id": 1}

        func.assert_awaited_with(7)
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_exhausted(self):
        func = AsyncMock(side_effect=ConnectionError("down"))
        sleep = AsyncMock()
        with pytest.raises(ConnectionError):
            await retry_async(func, attempts=2, base_delay=0.5, sleep=sleep)
        sleep.assert_awaited_once_with(0.5)
