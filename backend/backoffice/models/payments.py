from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class PaymentPlan(db.Model):
    """
    Installment plan attached to exactly one transaction.

    DESIGN:
    - The plan holds no balance column. The balance is always the
      balance_owed_cents of the most recent Payment (see
      payment_plan_service.current_balance).
    - Payments are append-only; a new installment appends a Payment and
      bumps installment_count/customer_type in the same unit of work.
    """
    __tablename__ = "payment_plans"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_payment_plans_transaction"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    installment_count = db.Column(db.Integer, nullable=False, default=1)
    # ONE_TIME, WEEKLY, BI_WEEKLY, MONTHLY, QUARTERLY, CUSTOM
    frequency = db.Column(db.String(16), nullable=False, default="ONE_TIME")
    # CUSTOMER (settled) or DEBTOR (balance outstanding)
    customer_type = db.Column(db.String(16), nullable=False, default="CUSTOMER", index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    transaction = db.relationship("Transaction", backref=db.backref("payment_plan", uselist=False))
    customer = db.relationship("Customer", backref=db.backref("payment_plans", lazy=True))
    payments = db.relationship(
        "Payment",
        backref="plan",
        lazy=True,
        order_by="[Payment.created_at, Payment.id]",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_payments: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "company_id": self.company_id,
            "transaction_id": self.transaction_id,
            "customer_id": self.customer_id,
            "installment_count": self.installment_count,
            "frequency": self.frequency,
            "customer_type": self.customer_type,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class Payment(db.Model):
    """
    One money movement against a plan (an installment).

    AMOUNTS (all cents):
    - total_amount_cents: invoiced total at the time of this payment
    - balance_owed_cents: remaining after this payment, never negative
    - balance_paid_cents: this payment's amount
    - total_pay_cents: cumulative paid to date

    IMMUTABLE except total_amount_cents on the latest row, which the
    price-correction path shifts by the corrected delta.
    """
    __tablename__ = "plan_payments"
    __table_args__ = (
        db.CheckConstraint("balance_owed_cents >= 0", name="ck_plan_payments_balance_non_negative"),
        db.Index("ix_plan_payments_plan_created", "payment_plan_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_plan_id = db.Column(db.Integer, db.ForeignKey("payment_plans.id"), nullable=False, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    balance_owed_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    total_pay_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_cents = db.Column(db.Integer, nullable=False, default=0)

    # CASH, BANK_TRANSFER
    method = db.Column(db.String(16), nullable=False, default="CASH")
    bank_account_id = db.Column(db.Integer, db.ForeignKey("bank_accounts.id"), nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bank_account = db.relationship("BankAccount")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_plan_id": self.payment_plan_id,
            "total_amount_cents": self.total_amount_cents,
            "balance_owed_cents": self.balance_owed_cents,
            "balance_paid_cents": self.balance_paid_cents,
            "total_pay_cents": self.total_pay_cents,
            "vat_cents": self.vat_cents,
            "method": self.method,
            "bank_account": self.bank_account.to_dict() if self.bank_account else None,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
        }


class BankAccount(db.Model):
    """Company account a bank-transfer payment was paid into."""
    __tablename__ = "bank_accounts"
    __table_args__ = (
        db.UniqueConstraint("company_id", "tenant_id", "account_number", name="uq_bank_accounts_scope_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    bank_name = db.Column(db.String(128), nullable=False)
    account_number = db.Column(db.String(64), nullable=False)
    account_name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "account_name": self.account_name,
        }
