from tortoise import fields
from ...common.models import TimestampMixin


class Customer(TimestampMixin):
    id = fields.IntField(primary_key=True)
    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255, null=True)
    phone = fields.CharField(max_length=32, null=True)

    orders: fields.ReverseRelation["Order"]

    def __str__(self):
        return f"{self.name} <{self.email or 'no email'}>"

    class Meta:
        table = "customers"
