from tortoise import fields
from ...common.models import TimestampMixin

# Only orders in this state count as sales in the reports
ORDER_STATUS_COMPLETED = "completed"


class Order(TimestampMixin):
    id = fields.IntField(primary_key=True)
    order_number = fields.CharField(
        max_length=50, unique=True, description="Pattern: <year+0000> e.g. 20250001"
    )

    customer: fields.ForeignKeyRelation["Customer"] = fields.ForeignKeyField(
        "models.Customer", related_name="orders", on_delete=fields.SET_NULL, null=True
    )

    subtotal = fields.FloatField(default=0.0)
    tax_amount = fields.FloatField(default=0.0)
    discount_amount = fields.FloatField(default=0.0)
    total_amount = fields.FloatField(default=0.0)
    refund_amount = fields.FloatField(default=0.0)

    payment_method = fields.CharField(max_length=50, default="cash")
    payment_status = fields.CharField(max_length=50, default="completed")
    order_status = fields.CharField(max_length=50, default=ORDER_STATUS_COMPLETED, db_index=True)

    items: fields.ReverseRelation["OrderItem"]

    def __str__(self):
        return f"Order {self.order_number} - {self.total_amount:.2f} ({self.order_status})"

    class Meta:
        table = "orders"


class OrderItem(TimestampMixin):
    id = fields.IntField(primary_key=True)

    order: fields.ForeignKeyRelation[Order] = fields.ForeignKeyField(
        "models.Order",
        related_name="items",
        on_delete=fields.CASCADE,
    )
    product: fields.ForeignKeyRelation["Product"] = fields.ForeignKeyField(
        "models.Product",
        related_name="order_items",
        on_delete=fields.RESTRICT,
    )

    quantity = fields.IntField()
    unit_price = fields.FloatField()
    total_price = fields.FloatField()

    def __str__(self):
        return f"{self.quantity} x product #{self.product_id} for order #{self.order_id}"

    class Meta:
        table = "order_items"
