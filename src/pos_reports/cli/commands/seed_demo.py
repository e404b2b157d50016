"""Demo data for trying the reports against an empty database."""

import datetime
import logging
import random

from ...features.catalog.models import Category, Product
from ...features.customers.models import Customer
from ...features.orders.models import Order, OrderItem

logger = logging.getLogger(__name__)

DEMO_CATALOG = {
    "Beverages": [
        ("Espresso", "BEV-001", 2.50, 0.60),
        ("Cappuccino", "BEV-002", 3.50, 0.90),
        ("Iced Tea", "BEV-003", 2.80, 0.50),
    ],
    "Bakery": [
        ("Croissant", "BAK-001", 2.20, 0.80),
        ("Blueberry Muffin", "BAK-002", 2.60, 0.95),
    ],
    "Merchandise": [
        ("Travel Mug", "MER-001", 14.00, 6.50),
        # No cost price on purpose, shows up flagged in the gross profit reports
        ("Gift Card", "MER-002", 25.00, None),
    ],
}

DEMO_CUSTOMERS = [
    ("Ada Lovelace", "ada@example.com"),
    ("Grace Hopper", "grace@example.com"),
    ("Alan Turing", "alan@example.com"),
]

PAYMENT_METHODS = ["cash", "card", "mobile"]
TAX_RATE = 0.08


async def seed_demo_data(days: int, orders_per_day: int = 4, seed: int = 42) -> int:
    """
    Fills the catalog, customers and `days` days of completed orders ending today.

    The same seed always produces the same data. Returns the number of orders created.
    """
    rng = random.Random(seed)

    products = []
    for category_name, items in DEMO_CATALOG.items():
        category = await Category.create(name=category_name)
        for name, sku, retail_price, cost_price in items:
            products.append(
                await Product.create(
                    name=name, sku=sku, retail_price=retail_price, cost_price=cost_price,
                    stock_quantity=100, category=category,
                )
            )
    # Sold but never categorized
    products.append(await Product.create(name="Daily Special", sku="SPC-001", retail_price=6.00, cost_price=2.40))

    customers = [await Customer.create(name=name, email=email) for name, email in DEMO_CUSTOMERS]

    today = datetime.datetime.now(datetime.timezone.utc).replace(hour=9, minute=0, second=0, microsecond=0)
    created = 0
    for day_offset in range(days - 1, -1, -1):
        day = today - datetime.timedelta(days=day_offset)
        for n in range(orders_per_day):
            lines = [(product, rng.randint(1, 3)) for product in rng.sample(products, rng.randint(1, 3))]
            subtotal = round(sum(p.retail_price * qty for p, qty in lines), 2)
            tax = round(subtotal * TAX_RATE, 2)
            order = await Order.create(
                order_number=f"{day.year}{created + 1:04d}",
                customer=rng.choice(customers + [None]),  # None is a walk-in sale
                subtotal=subtotal,
                tax_amount=tax,
                total_amount=round(subtotal + tax, 2),
                payment_method=rng.choice(PAYMENT_METHODS),
                created_at=day + datetime.timedelta(minutes=37 * n),
            )
            for product, qty in lines:
                await OrderItem.create(
                    order=order, product=product, quantity=qty,
                    unit_price=product.retail_price, total_price=round(product.retail_price * qty, 2),
                )
            created += 1

    logger.info(f"Seeded {len(products)} products, {len(customers)} customers and {created} orders")
    return created
