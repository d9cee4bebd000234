from __future__ import annotations

from ..extensions import db
from posboard.time_utils import to_utc_z, utcnow

class Order(db.Model):
    """
    Online-shop order. Read by the revenue and financial reports.

    total_price already includes shipping_fee.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    items = db.Column(db.JSON, nullable=False)
    total_price = db.Column(db.Integer, nullable=False, default=0)
    shipping_fee = db.Column(db.Integer, nullable=False, default=0)

    # Either may identify the customer; anonymous checkouts only leave an email
    user_id = db.Column(db.String(128), nullable=True, index=True)
    customer_email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "items": [dict(item) for item in self.items or []],
            "total_price": self.total_price,
            "shipping_fee": self.shipping_fee,
            "user_id": self.user_id,
            "customer_email": self.customer_email,
            "created_at": to_utc_z(self.created_at),
        }
