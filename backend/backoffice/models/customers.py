from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


CUSTOMER_TYPE_CUSTOMER = "CUSTOMER"
CUSTOMER_TYPE_DEBTOR = "DEBTOR"


class Customer(db.Model):
    """
    Customer directory entry.

    MULTI-TENANT: (name, phone) is unique per company and tenant; the
    engine upserts on that key and never touches other fields.

    customer_type is derived: DEBTOR while any of the customer's payment
    plans has a non-zero latest balance, CUSTOMER otherwise.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("name", "phone", "company_id", "tenant_id", name="uq_customers_name_phone_scope"),
        db.Index("ix_customers_company_type", "company_id", "customer_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    customer_type = db.Column(db.String(16), nullable=False, default=CUSTOMER_TYPE_CUSTOMER)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "company_id": self.company_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "customer_type": self.customer_type,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
