"""Retry logic tests - focused on actual usage patterns."""

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from genai_chat.exceptions import NotFoundError, StorageError
from genai_chat.retry import is_throttling_error, with_storage_retry


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "Query")


class TestStorageRetry:
    """Test the storage retry decorator."""

    @pytest.mark.asyncio
    async def test_success_no_retry_needed(self) -> None:
        call_count = 0

        @with_storage_retry("test")
        async def success_function():
            nonlocal call_count
            call_count += 1
            return "success"

        assert await success_function() == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_throttling_retries_then_succeeds(self) -> None:
        """Throttled calls are retried."""
        call_count = 0

        @with_storage_retry("test", max_retries=3)
        async def retry_then_succeed():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise _client_error("ProvisionedThroughputExceededException")
            return "success after retries"

        assert await retry_then_succeed() == "success after retries"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_throttling_exhausts_retries(self) -> None:
        call_count = 0

        @with_storage_retry("test", max_retries=2)
        async def always_throttled():
            nonlocal call_count
            call_count += 1
            raise _client_error("ThrottlingException")

        with pytest.raises(StorageError, match="test failed"):
            await always_throttled()
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_other_client_errors_are_not_retried(self) -> None:
        call_count = 0

        @with_storage_retry("test", max_retries=3)
        async def missing_table():
            nonlocal call_count
            call_count += 1
            raise _client_error("ResourceNotFoundException")

        with pytest.raises(StorageError):
            await missing_table()
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_botocore_errors_become_storage_errors(self) -> None:
        @with_storage_retry("test")
        async def unreachable():
            raise EndpointConnectionError(endpoint_url="http://localhost:8000")

        with pytest.raises(StorageError):
            await unreachable()

    @pytest.mark.asyncio
    async def test_domain_errors_pass_through(self) -> None:
        @with_storage_retry("test")
        async def not_found():
            raise NotFoundError("Chat c1 not found")

        with pytest.raises(NotFoundError):
            await not_found()

    def test_wraps_preserves_name(self) -> None:
        @with_storage_retry("test")
        async def named_function():
            return None

        assert named_function.__name__ == "named_function"


def test_is_throttling_error() -> None:
    assert is_throttling_error(_client_error("RequestLimitExceeded"))
    assert not is_throttling_error(_client_error("ConditionalCheckFailedException"))
    assert not is_throttling_error(ValueError("nope"))
