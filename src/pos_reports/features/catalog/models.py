"""Data models for the product catalog, Category and Product."""

from tortoise import fields
from ...common.models import TimestampMixin


class Category(TimestampMixin):
    id = fields.IntField(primary_key=True)
    name = fields.CharField(max_length=100, unique=True)
    description = fields.TextField(null=True)

    products: fields.ReverseRelation["Product"]

    def __str__(self):
        return self.name

    class Meta:
        table = "categories"


class Product(TimestampMixin):
    id = fields.IntField(primary_key=True)
    name = fields.CharField(max_length=255)
    sku = fields.CharField(max_length=64, null=True, db_index=True)
    retail_price = fields.FloatField(default=0.0)
    # Null means the cost is unknown; gross profit reports flag it instead of guessing
    cost_price = fields.FloatField(null=True, default=None)
    stock_quantity = fields.IntField(default=0)
    is_active = fields.BooleanField(default=True)

    category: fields.ForeignKeyRelation[Category] = fields.ForeignKeyField(
        "models.Category",
        related_name="products",
        on_delete=fields.SET_NULL,
        null=True,
    )

    order_items: fields.ReverseRelation["OrderItem"]

    def __str__(self):
        return f"{self.name} (SKU: {self.sku or '-'}, Price: {self.retail_price:.2f})"

    class Meta:
        table = "products"
