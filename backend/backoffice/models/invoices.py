from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


INVOICE_STATUS_DRAFT = "DRAFT"
INVOICE_STATUS_PART_PAID = "PART_PAID"
INVOICE_STATUS_PAID = "PAID"
INVOICE_STATUS_OVERDUE = "OVERDUE"


class Invoice(db.Model):
    """
    Invoice issued for a transaction.

    NUMBERING: invoice_no is <Initials><YY>-<MM><NNNN>, unique per tenant.
    The unique constraint is the backstop; numbers come from
    InvoiceSequence under the enclosing unit of work.

    STATUS: PAID iff the plan's latest balance is zero, PART_PAID while a
    balance remains. DRAFT invoices (billed, nothing paid) turn OVERDUE
    once payment_date has passed.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "invoice_no", name="uq_invoices_tenant_invoice_no"),
        db.UniqueConstraint("transaction_id", name="uq_invoices_transaction"),
        db.Index("ix_invoices_status_payment_date", "status", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    invoice_no = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_DRAFT)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    transaction = db.relationship("Transaction", backref=db.backref("invoice", uselist=False))
    customer = db.relationship("Customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "company_id": self.company_id,
            "transaction_id": self.transaction_id,
            "customer_id": self.customer_id,
            "invoice_no": self.invoice_no,
            "status": self.status,
            "payment_date": to_utc_z(self.payment_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceSequence(db.Model):
    """
    Counter row per (tenant, number prefix) for gap-free invoice numbers.

    prefix is the rendered <Initials><YY>-<MM>; companies of one tenant that
    share initials share the row. next_number is the number the next
    allocation hands out. Incremented only through a single
    UPDATE ... SET next_number = next_number + 1.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "prefix", name="uq_invoice_sequences_tenant_prefix"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    prefix = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
