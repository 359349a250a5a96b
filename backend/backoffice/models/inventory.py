from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PRODUCT_CONDITIONS = ("NEW", "USED")


class Product(db.Model):
    """
    Product master data with its on-hand quantity.

    MULTI-TENANT: (sku, company_id, tenant_id) is the product key.

    STOCK RULES:
    - quantity is set to an absolute value only on creation
    - afterwards it moves only by signed deltas (see stock_service.adjust)
    - quantity >= 0 is enforced by a check constraint as a last line
    - products are never hard-deleted while referenced; is_active=False instead
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", "company_id", "tenant_id", name="uq_products_sku_company_tenant"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.Index("ix_products_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    brand = db.Column(db.String(128), nullable=True)
    product_type = db.Column(db.String(128), nullable=True)
    serial_no = db.Column(db.String(128), nullable=True)
    condition = db.Column(db.String(8), nullable=False, default="NEW")

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents
    selling_price_cents = db.Column(db.Integer, nullable=True)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    # Weak reference: deleting a supplier nulls this, never deletes the product
    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True, passive_deletes=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} quantity={self.quantity} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "company_id": self.company_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "product_type": self.product_type,
            "serial_no": self.serial_no,
            "condition": self.condition,
            "quantity": self.quantity,
            "selling_price_cents": self.selling_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "supplier_id": self.supplier_id,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """Supplier directory entry; (name, contact) is unique per company."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("name", "contact", "company_id", "tenant_id", name="uq_suppliers_name_contact_scope"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    contact = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "company_id": self.company_id,
            "name": self.name,
            "contact": self.contact,
            "email": self.email,
            "created_at": to_utc_z(self.created_at),
        }
