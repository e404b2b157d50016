"""
Reports Service Module

One coroutine per report. Each validates its inputs (before a connection is
taken), runs the matching aggregation query through the ConnectionProvider
and shapes the rows into response records. Reports are read-only and either
return a complete result or raise; an empty range gives an empty list.
"""

import datetime
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Type, TypeVar, Union

from ...core.config import REPORT_DEFAULT_LIMIT, REPORT_MAX_LIMIT, REPORT_MAX_TREND_BUCKETS, REPORT_TIMEZONE
from ...core.database import ConnectionProvider
from ...core.exceptions import InvalidLimitError, ReportError, ReportInputError, UnknownQueryError
from . import queries
from .periods import DateRange, TrendInterval, count_buckets, parse_interval
from .schemas import (
    GrossProfitDimension, GrossProfitRecord, ReportKind, SalesByCustomer,
    SalesByPaymentMethod, SalesSummary, SalesTrendPoint, TopCustomersMetric, TopProductsMetric,
    TopSellingProduct,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Enum)

TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


def resolve_limit(limit: Union[int, str, None]) -> int:
    """
    Validates a "top N" limit.

    None means the configured default. Zero, negative and non-integer values
    are rejected; values above REPORT_MAX_LIMIT are clamped to it.
    """
    if limit is None:
        return REPORT_DEFAULT_LIMIT
    if isinstance(limit, bool):
        raise InvalidLimitError(f"Invalid limit '{limit}'. Expected a positive integer")
    if not isinstance(limit, int):
        try:
            limit = int(str(limit).strip())
        except ValueError:
            raise InvalidLimitError(f"Invalid limit '{limit}'. Expected a positive integer") from None
    if limit <= 0:
        raise InvalidLimitError(f"Limit must be greater than 0, got {limit}")
    return min(limit, REPORT_MAX_LIMIT)


def resolve_metric(rank_by: Union[M, str, None], metric_type: Type[M] = TopProductsMetric) -> M:
    """Parses a rankBy value into `metric_type`. None means the first (default) metric."""
    if rank_by is None:
        return next(iter(metric_type))
    if isinstance(rank_by, metric_type):
        return rank_by
    try:
        return metric_type(rank_by.strip().lower())
    except (ValueError, AttributeError):
        allowed = ", ".join(m.value for m in metric_type)
        raise ReportInputError(f"Invalid rankBy '{rank_by}'. Expected one of: {allowed}") from None


def resolve_flag(value: Union[bool, str, None], param_name: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ReportInputError(f"Invalid {param_name} '{value}'. Expected true or false")


async def _execute(
    provider: ConnectionProvider,
    kind: ReportKind,
    query: Callable[..., Awaitable[Any]],
    date_range: DateRange,
    *args: Any,
) -> Any:
    try:
        return await provider.run(query, date_range, REPORT_TIMEZONE, *args)
    except ReportError:
        raise
    except Exception as e:
        logger.exception(
            f"Report '{kind.value}' failed for {date_range.start.isoformat()}..{date_range.end.isoformat()} "
            f"(query={query.__name__}, args={args!r}, connection={provider.connection_name})"
        )
        raise UnknownQueryError(f"Failed to run report '{kind.value}'") from e


async def get_sales_summary(
    provider: ConnectionProvider,
    start_date: datetime.date,
    end_date: datetime.date,
) -> SalesSummary:
    """
    Totals for completed orders in the range.

    Besides revenue, order count and average order value this also carries
    items sold, refunds, net sales (revenue minus refunds) and gross profit.
    A range without orders gives a summary of zeros, not an error.
    """
    date_range = DateRange(start_date, end_date)
    row = await _execute(provider, ReportKind.SALES_SUMMARY, queries.sales_summary, date_range)
    return SalesSummary(start_date=date_range.start, end_date=date_range.end, **row)


async def get_sales_trend(
    provider: ConnectionProvider,
    start_date: datetime.date,
    end_date: datetime.date,
    interval: Union[TrendInterval, str, None] = TrendInterval.DAY,
    fill_empty: Union[bool, str, None] = False,
) -> List[SalesTrendPoint]:
    """
    Revenue and order count per calendar bucket, oldest bucket first.

    Weeks start on Monday (ISO weeks). Only buckets with sales are returned
    unless `fill_empty` is set, in which case every bucket touching the range
    is present with zeros where nothing was sold, up to
    REPORT_MAX_TREND_BUCKETS buckets.
    """
    date_range = DateRange(start_date, end_date)
    resolved = parse_interval(interval)
    fill_empty = resolve_flag(fill_empty, "fillEmpty")
    if fill_empty and count_buckets(date_range, resolved) > REPORT_MAX_TREND_BUCKETS:
        raise ReportInputError(
            f"Too many {resolved.value} buckets to fill between {date_range.start.isoformat()} and "
            f"{date_range.end.isoformat()} (max {REPORT_MAX_TREND_BUCKETS}). Use a larger interval or a shorter range"
        )
    rows = await _execute(
        provider, ReportKind.SALES_TREND, queries.sales_trend, date_range, resolved, fill_empty
    )
    return [SalesTrendPoint(**row) for row in rows]


async def get_top_selling_products(
    provider: ConnectionProvider,
    start_date: datetime.date,
    end_date: datetime.date,
    limit: Union[int, str, None] = None,
    rank_by: Union[TopProductsMetric, str, None] = TopProductsMetric.REVENUE,
) -> List[TopSellingProduct]:
    date_range = DateRange(start_date, end_date)
    resolved_limit = resolve_limit(limit)
    metric = resolve_metric(rank_by, TopProductsMetric)
    rows = await _execute(
        provider, ReportKind.TOP_PRODUCTS, queries.top_selling_products,
        date_range, resolved_limit, metric is TopProductsMetric.QUANTITY,
    )
    return [TopSellingProduct(**row) for row in rows]


async def get_sales_by_payment_method(
    provider: ConnectionProvider,
    start_date: datetime.date,
    end_date: datetime.date,
) -> List[SalesByPaymentMethod]:
    date_range = DateRange(start_date, end_date)
    rows = await _execute(
        provider, ReportKind.SALES_BY_PAYMENT_METHOD, queries.sales_by_payment_method, date_range
    )
    return [SalesByPaymentMethod(**row) for row in rows]


async def get_sales_by_customer(
    provider: ConnectionProvider,
    start_date: datetime.date,
    end_date: datetime.date,
    limit: Union[int, str, None] = None,
    rank_by: Union[TopCustomersMetric, str, None] = TopCustomersMetric.SPENT,
) -> List[SalesByCustomer]:
    """
    Top customers in the range by amount spent, or by number of orders.

    Walk-in sales without a customer are left out.
    """
    date_range = DateRange(start_date, end_date)
    resolved_limit = resolve_limit(limit)
    metric = resolve_metric(rank_by, TopCustomersMetric)
    rows = await _execute(
        provider, ReportKind.SALES_BY_CUSTOMER, queries.sales_by_customer,
        date_range, resolved_limit, metric is TopCustomersMetric.ORDERS,
    )
    return [SalesByCustomer(**row) for row in rows]


def _profit_records(dimension: GrossProfitDimension, rows: list[dict]) -> List[GrossProfitRecord]:
    return [GrossProfitRecord(dimension=dimension, **row) for row in rows]


async def get_gross_profit_by_product(
    provider: ConnectionProvider,
    start_date: datetime.date,
    end_date: datetime.date,
    limit: Union[int, str, None] = None,
) -> List[GrossProfitRecord]:
    """
    Gross profit per product, highest profit first.

    Cost uses the product's cost price as it is now, not what it was when the
    sale happened. Lines whose product has no cost price are costed at 0 and
    the record is flagged with `has_unknown_cost`.
    """
    date_range = DateRange(start_date, end_date)
    resolved_limit = resolve_limit(limit)
    rows = await _execute(
        provider, ReportKind.GROSS_PROFIT_BY_PRODUCT, queries.gross_profit_by_product,
        date_range, resolved_limit,
    )
    return _profit_records(GrossProfitDimension.PRODUCT, rows)


async def get_gross_profit_by_category(
    provider: ConnectionProvider,
    start_date: datetime.date,
    end_date: datetime.date,
    limit: Union[int, str, None] = None,
) -> List[GrossProfitRecord]:
    date_range = DateRange(start_date, end_date)
    resolved_limit = resolve_limit(limit)
    rows = await _execute(
        provider, ReportKind.GROSS_PROFIT_BY_CATEGORY, queries.gross_profit_by_category,
        date_range, resolved_limit,
    )
    return _profit_records(GrossProfitDimension.CATEGORY, rows)


async def get_gross_profit_per_order(
    provider: ConnectionProvider,
    start_date: datetime.date,
    end_date: datetime.date,
) -> List[GrossProfitRecord]:
    date_range = DateRange(start_date, end_date)
    rows = await _execute(
        provider, ReportKind.GROSS_PROFIT_PER_ORDER, queries.gross_profit_per_order, date_range
    )
    return _profit_records(GrossProfitDimension.ORDER, rows)


async def run_report(
    provider: ConnectionProvider,
    kind: Union[ReportKind, str],
    start_date: datetime.date,
    end_date: datetime.date,
    interval: Union[TrendInterval, str, None] = None,
    limit: Union[int, str, None] = None,
    rank_by: Optional[str] = None,
    fill_empty: Union[bool, str, None] = False,
):
    """Runs a report picked by kind, ignoring options the report doesn't take."""
    try:
        kind = ReportKind(kind)
    except ValueError:
        raise UnknownQueryError(f"Unknown report '{kind}'") from None

    if kind is ReportKind.SALES_SUMMARY:
        return await get_sales_summary(provider, start_date, end_date)
    if kind is ReportKind.SALES_TREND:
        return await get_sales_trend(provider, start_date, end_date, interval, fill_empty)
    if kind is ReportKind.TOP_PRODUCTS:
        return await get_top_selling_products(provider, start_date, end_date, limit, rank_by)
    if kind is ReportKind.SALES_BY_PAYMENT_METHOD:
        return await get_sales_by_payment_method(provider, start_date, end_date)
    if kind is ReportKind.SALES_BY_CUSTOMER:
        return await get_sales_by_customer(provider, start_date, end_date, limit, rank_by)
    if kind is ReportKind.GROSS_PROFIT_BY_PRODUCT:
        return await get_gross_profit_by_product(provider, start_date, end_date, limit)
    if kind is ReportKind.GROSS_PROFIT_BY_CATEGORY:
        return await get_gross_profit_by_category(provider, start_date, end_date, limit)
    return await get_gross_profit_per_order(provider, start_date, end_date)
