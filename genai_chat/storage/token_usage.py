"""Daily token usage counters kept in three DynamoDB tables.

* main table: ``userId`` / ``date`` with per-day totals
* by use case: ``userId`` / ``dateUsecase`` (``YYYY-MM-DD#<usecase>``)
* by model: ``userId`` / ``dateModel`` (``YYYY-MM-DD#<modelId>``)

Counters only ever grow through ``if_not_exists(x, 0) + n`` updates, so
concurrent writers never lose increments.
"""

import asyncio
import math
from datetime import UTC, date, datetime, timedelta
from functools import partial
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from loguru import logger

from ..exceptions import ValidationError
from ..retry import with_storage_retry
from ..types import RecordedMessage, TokenUsage, TokenUsageStats, UsageCounters
from . import keys
from .items import from_item

COUNTER_FIELDS = (
    "inputTokens",
    "outputTokens",
    "cacheReadInputTokens",
    "cacheWriteInputTokens",
)


def _compact(expression: str) -> str:
    return " ".join(expression.split())


def _counters_update(dimension: str) -> str:
    """Update expression for a by-use-case or by-model row."""
    return _compact(f"""
    SET #date = :date,
        #{dimension} = :{dimension},
        executions = if_not_exists(executions, :zero) + :one,
        inputTokens = if_not_exists(inputTokens, :zero) + :inputTokens,
        outputTokens = if_not_exists(outputTokens, :zero) + :outputTokens,
        cacheReadInputTokens = if_not_exists(cacheReadInputTokens, :zero) + :cacheReadInputTokens,
        cacheWriteInputTokens = if_not_exists(cacheWriteInputTokens, :zero) + :cacheWriteInputTokens
""")


_TOTALS_UPDATE = _compact("""
    SET totalExecutions = if_not_exists(totalExecutions, :zero) + :one,
        totalInputTokens = if_not_exists(totalInputTokens, :zero) + :inputTokens,
        totalOutputTokens = if_not_exists(totalOutputTokens, :zero) + :outputTokens,
        totalCacheReadInputTokens = if_not_exists(totalCacheReadInputTokens, :zero) + :cacheReadInputTokens,
        totalCacheWriteInputTokens = if_not_exists(totalCacheWriteInputTokens, :zero) + :cacheWriteInputTokens
""")


def empty_stats(day: str, user_id: str | None) -> TokenUsageStats:
    return {
        "date": day,
        "userId": user_id or "all",
        "totalExecutions": 0,
        "totalInputTokens": 0,
        "totalOutputTokens": 0,
        "totalCacheReadInputTokens": 0,
        "totalCacheWriteInputTokens": 0,
        "usecaseStats": {},
        "modelStats": {},
    }


def _counters(item: dict[str, Any]) -> UsageCounters:
    return {
        "executions": int(item.get("executions") or 0),
        "inputTokens": int(item.get("inputTokens") or 0),
        "outputTokens": int(item.get("outputTokens") or 0),
        "cacheReadInputTokens": int(item.get("cacheReadInputTokens") or 0),
        "cacheWriteInputTokens": int(item.get("cacheWriteInputTokens") or 0),
    }


def parse_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` (a full ISO timestamp is accepted too)."""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}") from e


def span_days(start_date: str, end_date: str) -> int:
    """Number of calendar days covered by an inclusive date range."""
    diff = abs(parse_date(end_date) - parse_date(start_date))
    return math.ceil(diff / timedelta(days=1)) + 1


class DynamoDBTokenUsageRepository:
    """Token usage counters and their daily aggregation."""

    def __init__(
        self,
        table_name: str,
        by_usecase_table_name: str,
        by_model_table_name: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        max_days: int = 366,
    ):
        self.table_name = table_name
        self.by_usecase_table_name = by_usecase_table_name
        self.by_model_table_name = by_model_table_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.max_days = max_days
        self.table: Any = None
        self.by_usecase_table: Any = None
        self.by_model_table: Any = None

    async def startup(self) -> None:
        resource = boto3.resource(
            "dynamodb", region_name=self.region, endpoint_url=self.endpoint_url
        )
        self.table = resource.Table(self.table_name)
        self.by_usecase_table = resource.Table(self.by_usecase_table_name)
        self.by_model_table = resource.Table(self.by_model_table_name)
        logger.info(
            f"Token usage tables: {self.table_name}, {self.by_usecase_table_name}, "
            f"{self.by_model_table_name}"
        )

    async def shutdown(self) -> None:
        pass

    async def health_check(self) -> bool:
        try:
            loop = asyncio.get_event_loop()
            status = await loop.run_in_executor(None, lambda: self.table.table_status)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Token usage table health check failed: {e}")
            return False
        return status == "ACTIVE"

    async def _run(self, func: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(func, **kwargs))

    @with_storage_retry("increment_token_usage")
    async def _increment(self, table: Any, **update: Any) -> None:
        await self._run(table.update_item, **update)

    async def update_token_usage(self, message: RecordedMessage) -> None:
        """Add one message's usage to the three tables.

        Messages without ``metadata.usage`` are ignored. Each table's
        increment is retried on its own.
        """
        usage: TokenUsage | None = (message.get("metadata") or {}).get("usage")
        if not usage:
            return

        day = keys.usage_date(message["createdDate"])
        user_id = keys.strip_user_prefix(message["userId"])
        model_id = message.get("llmType") or "unknown"
        usecase = message.get("usecase") or "unknown"

        values: dict[str, Any] = {":zero": 0, ":one": 1}
        for field in COUNTER_FIELDS:
            values[f":{field}"] = int(usage.get(field) or 0)

        try:
            await asyncio.gather(
                self._increment(
                    self.table,
                    Key={"userId": user_id, "date": day},
                    UpdateExpression=_TOTALS_UPDATE,
                    ExpressionAttributeValues=values,
                ),
                self._increment(
                    self.by_usecase_table,
                    Key={"userId": user_id, "dateUsecase": f"{day}#{usecase}"},
                    UpdateExpression=_counters_update("usecase"),
                    ExpressionAttributeNames={"#date": "date", "#usecase": "usecase"},
                    ExpressionAttributeValues={**values, ":date": day, ":usecase": usecase},
                ),
                self._increment(
                    self.by_model_table,
                    Key={"userId": user_id, "dateModel": f"{day}#{model_id}"},
                    UpdateExpression=_counters_update("modelId"),
                    ExpressionAttributeNames={"#date": "date", "#modelId": "modelId"},
                    ExpressionAttributeValues={**values, ":date": day, ":modelId": model_id},
                ),
            )
        except Exception as e:
            logger.error(f"Error updating token usage: {e}")
            raise

    @with_storage_retry("query_daily_usage")
    async def _query_day(self, user_id: str, day: str) -> list[dict[str, Any]]:
        prefix = f"{day}#"
        return await asyncio.gather(
            self._run(
                self.table.query,
                KeyConditionExpression=Key("userId").eq(user_id) & Key("date").eq(day),
            ),
            self._run(
                self.by_usecase_table.query,
                KeyConditionExpression=Key("userId").eq(user_id)
                & Key("dateUsecase").begins_with(prefix),
            ),
            self._run(
                self.by_model_table.query,
                KeyConditionExpression=Key("userId").eq(user_id)
                & Key("dateModel").begins_with(prefix),
            ),
        )

    async def _daily_stats(self, day: str, user_id: str | None) -> TokenUsageStats:
        """Stats for one day, zero-filled when the day cannot be read."""
        if not user_id:
            return empty_stats(day, user_id)

        try:
            main_result, usecase_result, model_result = await self._query_day(user_id, day)

            stats = empty_stats(day, user_id)
            main_items = main_result.get("Items") or []
            if main_items:
                main_data = from_item(main_items[0])
                for field in (
                    "totalExecutions",
                    "totalInputTokens",
                    "totalOutputTokens",
                    "totalCacheReadInputTokens",
                    "totalCacheWriteInputTokens",
                ):
                    stats[field] = int(main_data.get(field) or 0)  # type: ignore[literal-required]

            for item in usecase_result.get("Items") or []:
                stats["usecaseStats"][item["usecase"]] = _counters(from_item(item))
            for item in model_result.get("Items") or []:
                stats["modelStats"][item["modelId"]] = _counters(from_item(item))
        except Exception as e:  # noqa: BLE001
            logger.error(f"Error fetching data for date {day}: {e}")
            return empty_stats(day, user_id)

        logger.debug(
            f"Data for {day}: executions={stats['totalExecutions']} "
            f"usecases={list(stats['usecaseStats'])} models={list(stats['modelStats'])}"
        )
        return stats

    async def _range_stats(self, start: date, days: int, user_id: str | None) -> list[TokenUsageStats]:
        if days > self.max_days:
            raise ValidationError(f"Date range spans {days} days, at most {self.max_days} allowed")
        stats = []
        for offset in range(days):
            day = (start + timedelta(days=offset)).isoformat()
            stats.append(await self._daily_stats(day, user_id))
        return sorted(stats, key=lambda s: s["date"])

    async def get_recent_token_usage(
        self, days: int = 7, user_id: str | None = None
    ) -> list[TokenUsageStats]:
        """Stats for the last ``days`` days, today (UTC) included."""
        if days < 1:
            raise ValidationError("days must be at least 1")
        today = datetime.now(UTC).date()
        return await self._range_stats(today - timedelta(days=days - 1), days, user_id)

    async def aggregate_token_usage(
        self, start_date: str, end_date: str, user_ids: list[str] | None = None
    ) -> list[TokenUsageStats]:
        """Stats for every day between two dates, both ends included."""
        user_id = user_ids[0] if user_ids else None
        if not user_id:
            raise ValidationError("userId is required")

        start = min(parse_date(start_date), parse_date(end_date))
        return await self._range_stats(start, span_days(start_date, end_date), user_id)
