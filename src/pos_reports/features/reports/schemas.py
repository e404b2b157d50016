"""Sales and Gross Profit Reports API Schemas

This module defines the Pydantic models returned by the reporting endpoints:

1. Sales Summary
2. Sales Trend
3. Top Selling Products
4. Sales by Payment Method
5. Sales by Customer
6. Gross Profit (by product, category or order)

Every endpoint wraps its records in the same ReportEnvelope, so clients always
read `success` and then `data` (or `error`)."""
from enum import Enum
from typing import Generic, Optional, TypeVar
import datetime

from pydantic import BaseModel, Field

T = TypeVar("T")


class ReportEnvelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: str
    fallback: Optional[bool] = None


# Helper schema for the report period, both days inclusive
class TimePeriodQuery(BaseModel):
    start_date: datetime.date = Field(..., description="Start date for the report period (YYYY-MM-DD)")
    end_date: datetime.date = Field(..., description="End date for the report period (YYYY-MM-DD)")


class ReportKind(str, Enum):
    SALES_SUMMARY = "sales-summary"
    SALES_TREND = "sales-trend"
    TOP_PRODUCTS = "top-products"
    SALES_BY_PAYMENT_METHOD = "sales-by-payment-method"
    SALES_BY_CUSTOMER = "sales-by-customer"
    GROSS_PROFIT_BY_PRODUCT = "gross-profit-by-product"
    GROSS_PROFIT_BY_CATEGORY = "gross-profit-by-category"
    GROSS_PROFIT_PER_ORDER = "gross-profit-per-order"


class TopProductsMetric(str, Enum):
    REVENUE = "revenue"
    QUANTITY = "quantity"


class TopCustomersMetric(str, Enum):
    SPENT = "spent"
    ORDERS = "orders"


class GrossProfitDimension(str, Enum):
    PRODUCT = "product"
    CATEGORY = "category"
    ORDER = "order"


# 1. Sales Summary
class SalesSummary(BaseModel):
    start_date: datetime.date
    end_date: datetime.date
    total_revenue: float = 0.0
    order_count: int = 0
    average_order_value: float = 0.0
    items_sold: int = 0
    total_refunds: float = 0.0
    net_sales: float = 0.0
    gross_profit: float = 0.0


# 2. Sales Trend
class SalesTrendPoint(BaseModel):
    bucket: str = Field(..., description="2024-01-05, 2024-W01, 2024-01 or 2024 depending on the interval")
    period_start: datetime.date
    revenue: float
    order_count: int


# 3. Top Selling Products
class TopSellingProduct(BaseModel):
    product_id: int
    name: str
    sku: Optional[str] = None
    quantity_sold: int
    revenue: float


# 4. Sales by Payment Method
class SalesByPaymentMethod(BaseModel):
    payment_method: str
    order_count: int
    total_revenue: float


# 5. Sales by Customer
class SalesByCustomer(BaseModel):
    customer_id: int
    name: str
    email: Optional[str] = None
    order_count: int
    total_spent: float


# 6. Gross Profit
class GrossProfitRecord(BaseModel):
    dimension: GrossProfitDimension
    id: Optional[int] = Field(None, description="Product, category or order id. None for uncategorized products")
    label: str
    quantity_sold: int
    revenue: float
    cost: float = Field(..., ge=0)
    profit: float
    has_unknown_cost: bool = Field(
        False, description="At least one line had no usable cost price and was costed at 0"
    )
