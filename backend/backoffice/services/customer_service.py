# Overview: Customer directory used by the engine (upsert on name + phone, debtor listing).

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import MissingRequiredField, NotFound
from ..extensions import db
from ..models import Customer
from ..models.customers import CUSTOMER_TYPE_CUSTOMER, CUSTOMER_TYPE_DEBTOR


def _find(name: str, phone: str, company_id: int, tenant_id: int) -> Customer | None:
    return (
        db.session.query(Customer)
        .filter_by(name=name, phone=phone, company_id=company_id, tenant_id=tenant_id)
        .first()
    )


def upsert_customer(
    *,
    name: str,
    phone: str,
    company_id: int,
    tenant_id: int,
    email: str | None = None,
    address: str | None = None,
) -> Customer:
    """
    Return the customer keyed by (name, phone) in the company, creating it
    if absent. An existing customer's other fields are left as they are.
    """
    missing = [field for field, value in (("name", name), ("phone", phone)) if not value]
    if missing:
        raise MissingRequiredField.for_fields(missing)

    existing = _find(name, phone, company_id, tenant_id)
    if existing is not None:
        return existing

    nested = db.session.begin_nested()
    customer = Customer(
        tenant_id=tenant_id,
        company_id=company_id,
        name=name,
        phone=phone,
        email=email,
        address=address,
        customer_type=CUSTOMER_TYPE_CUSTOMER,
    )
    db.session.add(customer)
    try:
        db.session.flush()
    except IntegrityError:
        # Concurrent insert of the same key won; use that row.
        nested.rollback()
        existing = _find(name, phone, company_id, tenant_id)
        if existing is None:
            raise
        return existing
    nested.commit()
    return customer


def get_customer(*, customer_id: int, company_id: int, tenant_id: int) -> Customer:
    customer = (
        db.session.query(Customer)
        .filter_by(id=customer_id, company_id=company_id, tenant_id=tenant_id)
        .first()
    )
    if customer is None:
        raise NotFound("Customer not found", details={"customer_id": customer_id})
    return customer


def list_debtors(*, company_id: int, tenant_id: int) -> list[Customer]:
    return (
        db.session.query(Customer)
        .filter_by(company_id=company_id, tenant_id=tenant_id, customer_type=CUSTOMER_TYPE_DEBTOR)
        .order_by(Customer.name.asc(), Customer.id.asc())
        .all()
    )
