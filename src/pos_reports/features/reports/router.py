import datetime
import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query

from ...core.database import (
    ConnectionProvider, DatabaseStatusCache, get_connection_provider, get_database_status_cache,
)
from .periods import current_month, parse_iso_date
from .schemas import (
    ErrorEnvelope, GrossProfitRecord, ReportEnvelope, SalesByCustomer, SalesByPaymentMethod,
    SalesSummary, SalesTrendPoint, TimePeriodQuery, TopSellingProduct,
)
# Service functions that contain the report logic
from . import service as report_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
    responses={
        400: {"model": ErrorEnvelope, "description": "Invalid report parameters"},
        500: {"model": ErrorEnvelope, "description": "Report failed"},
        503: {"model": ErrorEnvelope, "description": "Database unavailable"},
    },
)

Provider = Annotated[ConnectionProvider, Depends(get_connection_provider)]


def report_period(
    start_date: Optional[str] = Query(None, alias="startDate", description="First day of the report (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="Last day of the report, inclusive (YYYY-MM-DD)"),
) -> TimePeriodQuery:
    """
    Parses startDate/endDate. A missing bound defaults to the first or last
    day of the current month. Malformed dates are a 400 through InvalidDateError.
    """
    month = current_month()
    return TimePeriodQuery(
        start_date=parse_iso_date(start_date, "startDate") if start_date else month.start,
        end_date=parse_iso_date(end_date, "endDate") if end_date else month.end,
    )


Period = Annotated[TimePeriodQuery, Depends(report_period)]

# limit and fillEmpty stay strings here so bad values become a 400 from the service, not a 422
LimitParam = Annotated[Optional[str], Query(description="Maximum number of records (default 10, max 100)")]


@router.get("/sales/summary", response_model=ReportEnvelope[SalesSummary])
async def get_sales_summary_report(provider: Provider, period: Period):
    summary = await report_service.get_sales_summary(provider, period.start_date, period.end_date)
    return {"success": True, "data": summary}


@router.get("/sales/trend", response_model=ReportEnvelope[List[SalesTrendPoint]])
async def get_sales_trend_report(
    provider: Provider,
    period: Period,
    interval: str = Query("day", description="day, week, month or year"),
    fill_empty: Optional[str] = Query(None, alias="fillEmpty", description="true to include buckets without sales"),
):
    points = await report_service.get_sales_trend(
        provider, period.start_date, period.end_date, interval=interval, fill_empty=fill_empty
    )
    return {"success": True, "data": points}


@router.get("/products/top", response_model=ReportEnvelope[List[TopSellingProduct]])
async def get_top_products_report(
    provider: Provider,
    period: Period,
    limit: LimitParam = None,
    rank_by: str = Query("revenue", alias="rankBy", description="revenue or quantity"),
):
    products = await report_service.get_top_selling_products(
        provider, period.start_date, period.end_date, limit=limit, rank_by=rank_by
    )
    return {"success": True, "data": products}


@router.get("/sales/by-payment-method", response_model=ReportEnvelope[List[SalesByPaymentMethod]])
async def get_sales_by_payment_method_report(provider: Provider, period: Period):
    methods = await report_service.get_sales_by_payment_method(provider, period.start_date, period.end_date)
    return {"success": True, "data": methods}


@router.get("/sales/by-customer", response_model=ReportEnvelope[List[SalesByCustomer]])
async def get_sales_by_customer_report(
    provider: Provider,
    period: Period,
    limit: LimitParam = None,
    rank_by: str = Query("spent", alias="rankBy", description="spent or orders"),
):
    customers = await report_service.get_sales_by_customer(
        provider, period.start_date, period.end_date, limit=limit, rank_by=rank_by
    )
    return {"success": True, "data": customers}


@router.get("/gross-profit/by-product", response_model=ReportEnvelope[List[GrossProfitRecord]])
async def get_gross_profit_by_product_report(provider: Provider, period: Period, limit: LimitParam = None):
    records = await report_service.get_gross_profit_by_product(
        provider, period.start_date, period.end_date, limit=limit
    )
    return {"success": True, "data": records}


@router.get("/gross-profit/by-category", response_model=ReportEnvelope[List[GrossProfitRecord]])
async def get_gross_profit_by_category_report(provider: Provider, period: Period, limit: LimitParam = None):
    records = await report_service.get_gross_profit_by_category(
        provider, period.start_date, period.end_date, limit=limit
    )
    return {"success": True, "data": records}


@router.get("/gross-profit/by-order", response_model=ReportEnvelope[List[GrossProfitRecord]])
async def get_gross_profit_per_order_report(provider: Provider, period: Period):
    records = await report_service.get_gross_profit_per_order(provider, period.start_date, period.end_date)
    return {"success": True, "data": records}


@router.post("/refresh-cache")
async def refresh_report_cache(
    cache: Annotated[DatabaseStatusCache, Depends(get_database_status_cache)],
):
    # Reports are always computed live; the only cached state is the database readiness check
    cache.invalidate()
    logger.info("Report cache refresh requested, database status cache invalidated")
    return {
        "success": True,
        "data": {
            "message": "Cache refresh completed",
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        },
    }
