from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


DIRECTION_DEBIT = "DEBIT"    # stock decreases, revenue in
DIRECTION_CREDIT = "CREDIT"  # stock increases, refund or buyback out


class Transaction(db.Model):
    """
    Immutable record of a sale, bulk sale, swap or buyback.

    WHY: Stock movement and money movement are recorded separately; the
    transaction is the document tying products, customer and payment plan
    together. Rows are written once and never updated.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_company_type", "company_id", "type"),
        db.Index("ix_transactions_company_occurred", "company_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    # SALE, BULK_SALE, SWAP, BUYBACK
    type = db.Column(db.String(16), nullable=False, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))
    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        lazy=True,
        order_by="TransactionItem.position",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "company_id": self.company_id,
            "type": self.type,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_by_user_id": self.created_by_user_id,
            "customer_id": self.customer_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """
    Line item on a transaction.

    total_price_cents == quantity * price_per_unit_cents at creation; the
    price-correction path rewrites both columns together.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Submission order within the transaction
    position = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False)
    direction = db.Column(db.String(8), nullable=False, default=DIRECTION_DEBIT)
    price_per_unit_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "sku": self.product.sku if self.product else None,
            "position": self.position,
            "quantity": self.quantity,
            "direction": self.direction,
            "price_per_unit_cents": self.price_per_unit_cents,
            "total_price_cents": self.total_price_cents,
            "created_at": to_utc_z(self.created_at),
        }
