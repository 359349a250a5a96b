# Overview: Supplier directory (get-or-create for swaps and buybacks, weak-reference removal).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import MissingRequiredField, NotFound
from ..extensions import db
from ..models import Product, Supplier


def _find(name: str, contact: str, company_id: int, tenant_id: int) -> Supplier | None:
    return (
        db.session.query(Supplier)
        .filter_by(name=name, contact=contact, company_id=company_id, tenant_id=tenant_id)
        .first()
    )


def get_or_create_supplier(
    *,
    name: str,
    phone: str,
    company_id: int,
    tenant_id: int,
    email: str | None = None,
) -> Supplier:
    missing = [field for field, value in (("name", name), ("phone", phone)) if not value]
    if missing:
        raise MissingRequiredField.for_fields(missing)

    existing = _find(name, phone, company_id, tenant_id)
    if existing is not None:
        return existing

    nested = db.session.begin_nested()
    supplier = Supplier(tenant_id=tenant_id, company_id=company_id, name=name, contact=phone, email=email)
    db.session.add(supplier)
    try:
        db.session.flush()
    except IntegrityError:
        nested.rollback()
        existing = _find(name, phone, company_id, tenant_id)
        if existing is None:
            raise
        return existing
    nested.commit()
    return supplier


def delete_supplier(*, supplier_id: int, company_id: int, tenant_id: int) -> None:
    """
    Remove a supplier. Products keep existing with supplier_id set to NULL.

    The reference is cleared explicitly so the outcome does not depend on
    the backend enforcing ON DELETE SET NULL.
    """
    supplier = (
        db.session.query(Supplier)
        .filter_by(id=supplier_id, company_id=company_id, tenant_id=tenant_id)
        .first()
    )
    if supplier is None:
        raise NotFound("Supplier not found", details={"supplier_id": supplier_id})

    db.session.execute(
        update(Product)
        .where(Product.supplier_id == supplier_id)
        .values(supplier_id=None, version_id=Product.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.delete(supplier)
    db.session.flush()
