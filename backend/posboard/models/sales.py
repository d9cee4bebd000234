from __future__ import annotations

import uuid

from ..extensions import db
from posboard.time_utils import to_utc_z, utcnow


def _new_transaction_id() -> str:
    return uuid.uuid4().hex


class PosTransaction(db.Model):
    """
    A completed POS checkout.

    Line items are stored as one JSON document (product_id, name, price,
    quantity, category) so the record reads exactly as it was rung up, even
    if the product is later renamed or repriced. Rows are written once by
    checkout and never updated.
    """
    __tablename__ = "pos_transactions"
    __table_args__ = (
        db.Index("ix_pos_transactions_timestamp", "timestamp"),
    )

    id = db.Column(db.String(32), primary_key=True, default=_new_transaction_id)

    items = db.Column(db.JSON, nullable=False)
    total = db.Column(db.Integer, nullable=False)

    cashier_name = db.Column(db.String(255), nullable=False)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)

    payment_method = db.Column(db.String(16), nullable=False)  # Cash, Non-Cash
    cash_amount = db.Column(db.Integer, nullable=True)
    change_amount = db.Column(db.Integer, nullable=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "items": [dict(item) for item in self.items or []],
            "total": self.total,
            "cashier_name": self.cashier_name,
            "cashier_id": self.cashier_id,
            "customer_name": self.customer_name,
            "payment_method": self.payment_method,
            "timestamp": to_utc_z(self.timestamp),
        }
        if self.cash_amount is not None:
            data["cash_amount"] = self.cash_amount
            data["change_amount"] = self.change_amount
        return data
