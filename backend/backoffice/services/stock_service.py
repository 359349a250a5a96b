# Overview: Stock ledger; the only code path that changes Product.quantity.

from __future__ import annotations

import random
from dataclasses import dataclass

from sqlalchemy import and_, or_, select, update

from ..errors import InsufficientStock, InvalidValue, MissingRequiredField, NotFound
from ..extensions import db
from ..models import Product
from ..models.inventory import PRODUCT_CONDITIONS
from .concurrency import lock_for_update
"""
Stock Ledger Invariants

- Product.quantity >= 0 at every commit.
- quantity is absolute only at creation; afterwards it moves by signed deltas.
- The sufficiency check and the write are one conditional UPDATE, so two
  concurrent sales can never both pass a stale check.
- Callers retry by resending the same delta, never by recomputing one from
  a refreshed read.
"""

SKU_GENERATION_ATTEMPTS = 20


@dataclass(frozen=True)
class ProductKey:
    sku: str
    company_id: int
    tenant_id: int


def _key_filter(key: ProductKey):
    return and_(
        Product.sku == key.sku,
        Product.company_id == key.company_id,
        Product.tenant_id == key.tenant_id,
    )


def get_product(key: ProductKey, *, include_inactive: bool = False) -> Product:
    query = db.session.query(Product).filter(_key_filter(key))
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    product = query.first()
    if product is None:
        raise NotFound(f"Product {key.sku} not found", details={"sku": key.sku})
    return product


def find_product(key: ProductKey) -> Product | None:
    return (
        db.session.query(Product)
        .filter(_key_filter(key), Product.is_active.is_(True))
        .first()
    )


def _reload(key: ProductKey) -> Product:
    stmt = (
        select(Product)
        .where(_key_filter(key))
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one()


def adjust(key: ProductKey, delta: int) -> Product:
    """
    Apply a signed delta to one product's quantity.

    Raises NotFound when no active product matches the key, and
    InsufficientStock when quantity + delta would drop below zero. The
    stored quantity is untouched in both cases.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidValue("delta must be an integer", details={"sku": key.sku})

    stmt = (
        update(Product)
        .where(
            _key_filter(key),
            Product.is_active.is_(True),
            Product.quantity + delta >= 0,
        )
        .values(
            quantity=Product.quantity + delta,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount == 0:
        product = find_product(key)
        if product is None:
            raise NotFound(f"Product {key.sku} not found", details={"sku": key.sku})
        raise InsufficientStock(
            f"Insufficient stock for {key.sku}",
            details={"lines": [{"sku": key.sku, "available": product.quantity, "requested": -delta}]},
        )
    return _reload(key)


def adjust_many(lines: list[tuple[ProductKey, int]]) -> list[Product]:
    """
    Batch admission: net every key's deltas, lock all involved rows, check
    the whole batch against that one snapshot, then apply.

    Any shortfall rejects the entire batch with a single InsufficientStock
    listing every short line. Returns products in first-seen key order.
    """
    if not lines:
        raise InvalidValue("At least one stock line is required")

    net: dict[ProductKey, int] = {}
    for key, delta in lines:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidValue("delta must be an integer", details={"sku": key.sku})
        net[key] = net.get(key, 0) + delta

    query = (
        db.session.query(Product)
        .filter(or_(*[_key_filter(key) for key in net]))
        .filter(Product.is_active.is_(True))
        .order_by(Product.id.asc())
    )
    locked = lock_for_update(query).populate_existing().all()
    by_key = {ProductKey(p.sku, p.company_id, p.tenant_id): p for p in locked}

    missing = [key.sku for key in net if key not in by_key]
    if missing:
        raise NotFound(f"Products not found: {', '.join(missing)}", details={"skus": missing})

    short = []
    for key, delta in net.items():
        available = by_key[key].quantity
        if available + delta < 0:
            short.append({"sku": key.sku, "available": available, "requested": -delta})
    if short:
        raise InsufficientStock(
            "Insufficient stock for " + ", ".join(line["sku"] for line in short),
            details={"lines": short},
        )

    return [adjust(key, delta) for key, delta in net.items()]


def generate_sku(product_type: str, *, company_id: int, tenant_id: int) -> str:
    """<TYP>-<4 digits>, unique within the company."""
    prefix = (product_type or "").strip()[:3].upper()
    if not prefix:
        raise MissingRequiredField.for_fields(["type"])
    for _ in range(SKU_GENERATION_ATTEMPTS):
        candidate = f"{prefix}-{random.randint(1000, 9999)}"
        taken = (
            db.session.query(Product.id)
            .filter_by(sku=candidate, company_id=company_id, tenant_id=tenant_id)
            .first()
        )
        if taken is None:
            return candidate
    raise InvalidValue(f"Could not generate a free SKU for type {product_type!r}")


def create_product(
    *,
    tenant_id: int,
    company_id: int,
    name: str,
    quantity: int,
    sku: str | None = None,
    brand: str | None = None,
    product_type: str | None = None,
    description: str | None = None,
    serial_no: str | None = None,
    condition: str = "NEW",
    selling_price_cents: int | None = None,
    cost_price_cents: int = 0,
    supplier_id: int | None = None,
    created_by_user_id: int | None = None,
) -> Product:
    """
    Inbound supply: the only place a quantity is set absolutely.
    """
    if not name:
        raise MissingRequiredField.for_fields(["name"])
    if quantity < 0:
        raise InvalidValue("quantity must be >= 0", details={"quantity": quantity})
    if condition not in PRODUCT_CONDITIONS:
        raise InvalidValue(
            f"condition must be one of: {', '.join(PRODUCT_CONDITIONS)}",
            details={"condition": condition},
        )

    if sku is None:
        sku = generate_sku(product_type or name, company_id=company_id, tenant_id=tenant_id)
    else:
        existing = (
            db.session.query(Product.id)
            .filter_by(sku=sku, company_id=company_id, tenant_id=tenant_id)
            .first()
        )
        if existing is not None:
            raise InvalidValue(f"SKU {sku} already exists", details={"sku": sku})

    product = Product(
        tenant_id=tenant_id,
        company_id=company_id,
        sku=sku,
        name=name,
        brand=brand,
        product_type=product_type,
        description=description,
        serial_no=serial_no,
        condition=condition,
        quantity=quantity,
        selling_price_cents=selling_price_cents,
        cost_price_cents=cost_price_cents,
        supplier_id=supplier_id,
        is_active=True,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(product)
    db.session.flush()
    return product


def restock(key: ProductKey, quantity: int) -> Product:
    if quantity <= 0:
        raise InvalidValue("quantity must be > 0", details={"quantity": quantity})
    return adjust(key, quantity)


def deactivate_product(key: ProductKey) -> Product:
    """Soft delete; transactions keep referencing the row."""
    product = get_product(key)
    product.is_active = False
    db.session.flush()
    return product
