import asyncio
import json
import logging
from typing import Optional

import typer
from tortoise import Tortoise

from ..core.config import DATABASE_URL
from ..core.database import ConnectionProvider, build_tortoise_config, check_database_ready
from ..core.exceptions import ReportError
from ..features.orders.models import Order
from ..features.reports import service as report_service
from ..features.reports.periods import DateRange, current_month, parse_interval, parse_iso_date
from ..features.reports.schemas import GrossProfitDimension, ReportKind, TopCustomersMetric, TopProductsMetric
from .commands.seed_demo import seed_demo_data

logger = logging.getLogger(__name__)

app = typer.Typer(name="pos-reports", help="Run POS sales and gross profit reports from the command line.")

GROSS_PROFIT_REPORTS = {
    GrossProfitDimension.PRODUCT: ReportKind.GROSS_PROFIT_BY_PRODUCT,
    GrossProfitDimension.CATEGORY: ReportKind.GROSS_PROFIT_BY_CATEGORY,
    GrossProfitDimension.ORDER: ReportKind.GROSS_PROFIT_PER_ORDER,
}


# Shared async context manager for database connection
class DBConnection:
    def __init__(self, db_url: str = DATABASE_URL, generate_schemas: bool = False):
        self.config = build_tortoise_config(db_url)
        self.generate_schemas = generate_schemas

    async def __aenter__(self):
        await Tortoise.init(config=self.config)
        if self.generate_schemas:
            await Tortoise.generate_schemas(safe=True)  # Only creates tables that don't exist
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await Tortoise.close_connections()


def _fail(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _period(start: Optional[str], end: Optional[str]) -> DateRange:
    """Parses --start/--end, defaulting to the current month. Exits on bad input."""
    month = current_month()
    try:
        return DateRange(
            parse_iso_date(start, "start") if start else month.start,
            parse_iso_date(end, "end") if end else month.end,
        )
    except ReportError as e:
        _fail(e.message)


def _to_json(result) -> str:
    if isinstance(result, list):
        payload = [record.model_dump(mode="json") for record in result]
    else:
        payload = result.model_dump(mode="json")
    return json.dumps(payload, indent=2)


async def _run_report(db_url: str, kind: ReportKind, period: DateRange, **options):
    async with DBConnection(db_url):
        return await report_service.run_report(
            ConnectionProvider(), kind, period.start, period.end, **options
        )


def _report(kind: ReportKind, period: DateRange, db_url: str, **options) -> None:
    try:
        result = asyncio.run(_run_report(db_url, kind, period, **options))
    except ReportError as e:
        _fail(e.message)
    typer.echo(_to_json(result))


StartOption = typer.Option(None, "--start", help="First day, YYYY-MM-DD (default: first day of this month)")
EndOption = typer.Option(None, "--end", help="Last day, inclusive, YYYY-MM-DD (default: last day of this month)")
DbUrlOption = typer.Option(DATABASE_URL, "--db-url", help="Tortoise database URL")
LimitOption = typer.Option(None, "--limit", help="Maximum number of records (default 10, max 100)")


@app.command("summary")
def sales_summary_command(
    start: Optional[str] = StartOption,
    end: Optional[str] = EndOption,
    db_url: str = DbUrlOption,
):
    """Revenue, orders, average order value, refunds and gross profit for the period."""
    _report(ReportKind.SALES_SUMMARY, _period(start, end), db_url)


@app.command("trend")
def sales_trend_command(
    start: Optional[str] = StartOption,
    end: Optional[str] = EndOption,
    interval: str = typer.Option("day", "--interval", help="day, week, month or year"),
    fill_empty: bool = typer.Option(False, "--fill-empty", help="Include buckets without sales"),
    db_url: str = DbUrlOption,
):
    """Revenue and order count per day, week, month or year."""
    period = _period(start, end)
    try:
        resolved = parse_interval(interval)
    except ReportError as e:
        _fail(e.message)
    _report(ReportKind.SALES_TREND, period, db_url, interval=resolved, fill_empty=fill_empty)


@app.command("top-products")
def top_products_command(
    start: Optional[str] = StartOption,
    end: Optional[str] = EndOption,
    limit: Optional[int] = LimitOption,
    rank_by: TopProductsMetric = typer.Option(TopProductsMetric.REVENUE, "--rank-by"),
    db_url: str = DbUrlOption,
):
    """Best selling products by revenue or quantity."""
    period = _period(start, end)
    try:
        report_service.resolve_limit(limit)
    except ReportError as e:
        _fail(e.message)
    _report(ReportKind.TOP_PRODUCTS, period, db_url, limit=limit, rank_by=rank_by.value)


@app.command("by-payment-method")
def by_payment_method_command(
    start: Optional[str] = StartOption,
    end: Optional[str] = EndOption,
    db_url: str = DbUrlOption,
):
    """Order count and revenue per payment method."""
    _report(ReportKind.SALES_BY_PAYMENT_METHOD, _period(start, end), db_url)


@app.command("by-customer")
def by_customer_command(
    start: Optional[str] = StartOption,
    end: Optional[str] = EndOption,
    limit: Optional[int] = LimitOption,
    rank_by: TopCustomersMetric = typer.Option(TopCustomersMetric.SPENT, "--rank-by"),
    db_url: str = DbUrlOption,
):
    """Customers who spent the most, or ordered most often, in the period."""
    period = _period(start, end)
    try:
        report_service.resolve_limit(limit)
    except ReportError as e:
        _fail(e.message)
    _report(ReportKind.SALES_BY_CUSTOMER, period, db_url, limit=limit, rank_by=rank_by.value)


@app.command("gross-profit")
def gross_profit_command(
    dimension: GrossProfitDimension = typer.Argument(..., help="Group by product, category or order"),
    start: Optional[str] = StartOption,
    end: Optional[str] = EndOption,
    limit: Optional[int] = LimitOption,
    db_url: str = DbUrlOption,
):
    """Revenue, cost and profit grouped by product, category or order."""
    period = _period(start, end)
    try:
        report_service.resolve_limit(limit)
    except ReportError as e:
        _fail(e.message)
    _report(GROSS_PROFIT_REPORTS[dimension], period, db_url, limit=limit)


@app.command("test-db-connection")
def test_db_connection_command_sync(db_url: str = DbUrlOption):
    """Checks that the reports can read from the database."""
    asyncio.run(test_db_connection_command(db_url))


async def test_db_connection_command(db_url: str):
    async with DBConnection(db_url):
        if not await check_database_ready(ConnectionProvider()):
            _fail("The database is reachable but the POS tables can't be read.")
        typer.echo("Successfully connected to the database.")
        order_count = await Order.all().count()
        typer.echo(f"Found {order_count} order(s) in the database.")


@app.command("seed-demo")
def seed_demo_command(
    days: int = typer.Option(30, "--days", min=1, help="Spread the demo orders over this many past days"),
    db_url: str = DbUrlOption,
):
    """Creates tables and fills an empty database with demo catalog, customers and orders."""
    asyncio.run(_seed_demo(db_url, days))


async def _seed_demo(db_url: str, days: int):
    async with DBConnection(db_url, generate_schemas=True):
        if await Order.all().exists():
            typer.secho("The database already has orders, nothing was seeded.", fg=typer.colors.YELLOW)
            raise typer.Exit(code=0)
        created = await seed_demo_data(days)
        typer.secho(f"Seeded {created} demo order(s) over the last {days} day(s).", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
