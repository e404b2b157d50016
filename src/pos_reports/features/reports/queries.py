"""
Aggregation queries behind the reports.

Each query takes the database client lent by the ConnectionProvider as its
first argument and a validated DateRange, reads completed orders inside the
range and returns plain rows (dicts) already aggregated and ordered. Values
only ever reach the database as ORM filter parameters.

Ordering rules shared by the ranked queries: metric descending, then the
grouping key's id ascending, so equal metrics always come back in the same
order.
"""

import datetime
import logging
import math
from typing import Iterable, Optional

from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.functions import Count, Sum

from ..catalog.models import Category, Product
from ..customers.models import Customer
from ..orders.models import Order, OrderItem, ORDER_STATUS_COMPLETED
from .periods import (
    DateRange, TrendInterval, bucket_label, bucket_start, buckets_in_range, local_date,
)

logger = logging.getLogger(__name__)

UNCATEGORIZED_LABEL = "Uncategorized"


def _completed_orders(date_range: DateRange, tz_name: str):
    first, last = date_range.window(tz_name)
    return Order.filter(
        order_status=ORDER_STATUS_COMPLETED, created_at__gte=first, created_at__lte=last
    )


def _completed_order_lines(date_range: DateRange, tz_name: str):
    first, last = date_range.window(tz_name)
    return OrderItem.filter(
        order__order_status=ORDER_STATUS_COMPLETED,
        order__created_at__gte=first,
        order__created_at__lte=last,
    )


async def _products_by_id(client: BaseDBAsyncClient, product_ids: Iterable[int]) -> dict[int, dict]:
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = await Product.filter(id__in=ids).using_db(client).values(
        "id", "name", "sku", "cost_price", "category_id"
    )
    return {row["id"]: row for row in rows}


def line_cost(quantity: int, cost_price: Optional[float]) -> tuple[float, bool]:
    """
    Cost of one order line at the product's current cost price.

    Returns (cost, unknown). A missing or negative cost price is costed at 0
    and reported as unknown so the line still counts towards revenue.
    """
    if cost_price is None or cost_price < 0:
        return 0.0, True
    return cost_price * quantity, False


def _new_profit_group(record_id: Optional[int], label: str) -> dict:
    return {
        "id": record_id, "label": label, "quantity_sold": 0,
        "revenue": 0.0, "cost": 0.0, "has_unknown_cost": False,
    }


def _add_line(group: dict, line: dict, product: Optional[dict]) -> None:
    cost, unknown = line_cost(line["quantity"], product["cost_price"] if product else None)
    group["quantity_sold"] += line["quantity"]
    group["revenue"] += line["total_price"]
    group["cost"] += cost
    group["has_unknown_cost"] = group["has_unknown_cost"] or unknown


def _finish_profit_groups(groups: Iterable[dict]) -> list[dict]:
    finished = []
    for group in groups:
        group["profit"] = group["revenue"] - group["cost"]
        finished.append(group)
    return finished


# 1. Sales Summary
async def sales_summary(client: BaseDBAsyncClient, date_range: DateRange, tz_name: str) -> dict:
    orders = await _completed_orders(date_range, tz_name).using_db(client).values(
        "id", "total_amount", "refund_amount"
    )
    if not orders:
        return {}

    lines = await _completed_order_lines(date_range, tz_name).using_db(client).values(
        "product_id", "quantity", "total_price"
    )
    products = await _products_by_id(client, (line["product_id"] for line in lines))

    total_revenue = sum(o["total_amount"] or 0.0 for o in orders)
    total_refunds = sum(o["refund_amount"] or 0.0 for o in orders)
    gross_profit = 0.0
    for line in lines:
        cost, _ = line_cost(line["quantity"], products.get(line["product_id"], {}).get("cost_price"))
        gross_profit += line["total_price"] - cost

    return {
        "total_revenue": total_revenue,
        "order_count": len(orders),
        "average_order_value": total_revenue / len(orders),
        "items_sold": sum(line["quantity"] for line in lines),
        "total_refunds": total_refunds,
        "net_sales": total_revenue - total_refunds,
        "gross_profit": gross_profit,
    }


# 2. Sales Trend
async def sales_trend(
    client: BaseDBAsyncClient,
    date_range: DateRange,
    tz_name: str,
    interval: TrendInterval,
    fill_empty: bool = False,
) -> list[dict]:
    orders = await _completed_orders(date_range, tz_name).using_db(client).values(
        "created_at", "total_amount"
    )

    buckets: dict[datetime.date, dict] = {}
    if fill_empty:
        for start in buckets_in_range(date_range, interval):
            buckets[start] = {"revenue": 0.0, "order_count": 0}

    for order in orders:
        start = bucket_start(local_date(order["created_at"], tz_name), interval)
        bucket = buckets.setdefault(start, {"revenue": 0.0, "order_count": 0})
        bucket["revenue"] += order["total_amount"] or 0.0
        bucket["order_count"] += 1

    return [
        {"bucket": bucket_label(start, interval), "period_start": start, **buckets[start]}
        for start in sorted(buckets)
    ]


# 3. Top Selling Products
async def top_selling_products(
    client: BaseDBAsyncClient,
    date_range: DateRange,
    tz_name: str,
    limit: int,
    rank_by_quantity: bool = False,
) -> list[dict]:
    lines = await _completed_order_lines(date_range, tz_name).using_db(client).values(
        "product_id", "quantity", "total_price"
    )

    totals: dict[int, dict] = {}
    for line in lines:
        entry = totals.setdefault(line["product_id"], {"quantity_sold": 0, "revenue": 0.0})
        entry["quantity_sold"] += line["quantity"]
        entry["revenue"] += line["total_price"]

    metric = "quantity_sold" if rank_by_quantity else "revenue"
    ranked = sorted(totals.items(), key=lambda kv: (-kv[1][metric], kv[0]))[:limit]

    products = await _products_by_id(client, (product_id for product_id, _ in ranked))
    return [
        {
            "product_id": product_id,
            "name": products.get(product_id, {}).get("name", f"Product #{product_id}"),
            "sku": products.get(product_id, {}).get("sku"),
            **entry,
        }
        for product_id, entry in ranked
    ]


# 4. Sales by Payment Method
async def sales_by_payment_method(
    client: BaseDBAsyncClient, date_range: DateRange, tz_name: str
) -> list[dict]:
    rows = await (
        _completed_orders(date_range, tz_name)
        .using_db(client)
        .annotate(order_count=Count("id"), total_revenue=Sum("total_amount"))
        .group_by("payment_method")
        .values("payment_method", "order_count", "total_revenue")
    )
    results = [
        {
            "payment_method": row["payment_method"],
            "order_count": row["order_count"],
            "total_revenue": float(row["total_revenue"] or 0.0),
        }
        for row in rows
    ]
    results.sort(key=lambda r: (-r["total_revenue"], r["payment_method"]))
    return results


# 5. Sales by Customer
async def sales_by_customer(
    client: BaseDBAsyncClient,
    date_range: DateRange,
    tz_name: str,
    limit: int,
    rank_by_orders: bool = False,
) -> list[dict]:
    orders = await (
        _completed_orders(date_range, tz_name)
        .filter(customer_id__isnull=False)
        .using_db(client)
        .values("customer_id", "total_amount")
    )

    totals: dict[int, dict] = {}
    for order in orders:
        entry = totals.setdefault(order["customer_id"], {"order_count": 0, "total_spent": 0.0})
        entry["order_count"] += 1
        entry["total_spent"] += order["total_amount"] or 0.0

    metric = "order_count" if rank_by_orders else "total_spent"
    ranked = sorted(totals.items(), key=lambda kv: (-kv[1][metric], kv[0]))[:limit]
    if not ranked:
        return []

    customers = {
        row["id"]: row
        for row in await Customer.filter(id__in=[cid for cid, _ in ranked])
        .using_db(client)
        .values("id", "name", "email")
    }
    return [
        {
            "customer_id": customer_id,
            "name": customers.get(customer_id, {}).get("name", f"Customer #{customer_id}"),
            "email": customers.get(customer_id, {}).get("email"),
            **entry,
        }
        for customer_id, entry in ranked
    ]


# 6. Gross Profit
async def gross_profit_by_product(
    client: BaseDBAsyncClient, date_range: DateRange, tz_name: str, limit: int
) -> list[dict]:
    lines = await _completed_order_lines(date_range, tz_name).using_db(client).values(
        "product_id", "quantity", "total_price"
    )
    products = await _products_by_id(client, (line["product_id"] for line in lines))

    groups: dict[int, dict] = {}
    for line in lines:
        product = products.get(line["product_id"])
        label = product["name"] if product else f"Product #{line['product_id']}"
        group = groups.setdefault(line["product_id"], _new_profit_group(line["product_id"], label))
        _add_line(group, line, product)

    ranked = sorted(_finish_profit_groups(groups.values()), key=lambda g: (-g["profit"], g["id"]))
    return ranked[:limit]


async def gross_profit_by_category(
    client: BaseDBAsyncClient, date_range: DateRange, tz_name: str, limit: int
) -> list[dict]:
    lines = await _completed_order_lines(date_range, tz_name).using_db(client).values(
        "product_id", "quantity", "total_price"
    )
    products = await _products_by_id(client, (line["product_id"] for line in lines))

    category_ids = {p["category_id"] for p in products.values() if p["category_id"] is not None}
    names: dict[int, str] = {}
    if category_ids:
        names = {
            row["id"]: row["name"]
            for row in await Category.filter(id__in=sorted(category_ids)).using_db(client).values("id", "name")
        }

    groups: dict[Optional[int], dict] = {}
    for line in lines:
        product = products.get(line["product_id"])
        category_id = product["category_id"] if product else None
        label = names.get(category_id, UNCATEGORIZED_LABEL) if category_id is not None else UNCATEGORIZED_LABEL
        group = groups.setdefault(category_id, _new_profit_group(category_id, label))
        _add_line(group, line, product)

    # Uncategorized has no id and sorts after every real category on equal profit
    ranked = sorted(
        _finish_profit_groups(groups.values()),
        key=lambda g: (-g["profit"], g["id"] if g["id"] is not None else math.inf),
    )
    return ranked[:limit]


async def gross_profit_per_order(
    client: BaseDBAsyncClient, date_range: DateRange, tz_name: str
) -> list[dict]:
    orders = await _completed_orders(date_range, tz_name).using_db(client).values(
        "id", "order_number", "created_at"
    )
    if not orders:
        return []

    lines = await _completed_order_lines(date_range, tz_name).using_db(client).values(
        "order_id", "product_id", "quantity", "total_price"
    )
    products = await _products_by_id(client, (line["product_id"] for line in lines))
    by_id = {o["id"]: o for o in orders}

    groups: dict[int, dict] = {}
    for line in lines:
        order = by_id.get(line["order_id"])
        if order is None:
            continue
        group = groups.setdefault(order["id"], _new_profit_group(order["id"], order["order_number"]))
        _add_line(group, line, products.get(line["product_id"]))

    # Newest orders first, like the order list in the back office
    finished = sorted(_finish_profit_groups(groups.values()), key=lambda g: g["id"])
    finished.sort(key=lambda g: by_id[g["id"]]["created_at"], reverse=True)
    return finished
