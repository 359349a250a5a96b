# Overview: Transaction recorder; immutable transaction + line item rows with kind-specific shape rules.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..errors import InvalidTransactionShape, InvalidValue, NotFound
from ..extensions import db
from ..models import Transaction, TransactionItem
from ..models.transactions import DIRECTION_CREDIT, DIRECTION_DEBIT
from ..time_utils import utcnow


@dataclass(frozen=True)
class ItemSpec:
    product_id: int
    quantity: int
    price_per_unit_cents: int
    direction: str = DIRECTION_DEBIT

    @property
    def total_price_cents(self) -> int:
        return self.quantity * self.price_per_unit_cents


class TransactionKind(Enum):
    """
    Closed set of transaction kinds. Each member validates its own item shape:

    - SALE: exactly one DEBIT item
    - BUYBACK: exactly one CREDIT item
    - BULK_SALE: one or more items, all DEBIT
    - SWAP: exactly one DEBIT item plus one or more CREDIT items
    """

    SALE = "SALE"
    BULK_SALE = "BULK_SALE"
    SWAP = "SWAP"
    BUYBACK = "BUYBACK"

    @classmethod
    def parse(cls, value) -> "TransactionKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise InvalidValue(f"Unknown transaction kind {value!r}", details={"kind": value})

    def validate_shape(self, items: list[ItemSpec]) -> None:
        debits = sum(1 for item in items if item.direction == DIRECTION_DEBIT)
        credits = sum(1 for item in items if item.direction == DIRECTION_CREDIT)
        details = {"kind": self.value, "debit_items": debits, "credit_items": credits}

        if debits + credits != len(items):
            raise InvalidTransactionShape("Item direction must be DEBIT or CREDIT", details=details)

        if self is TransactionKind.SALE:
            ok = len(items) == 1 and debits == 1
            rule = "SALE requires exactly one DEBIT item"
        elif self is TransactionKind.BUYBACK:
            ok = len(items) == 1 and credits == 1
            rule = "BUYBACK requires exactly one CREDIT item"
        elif self is TransactionKind.BULK_SALE:
            ok = len(items) >= 1 and credits == 0
            rule = "BULK_SALE requires at least one item, all DEBIT"
        else:
            ok = debits == 1 and credits >= 1
            rule = "SWAP requires exactly one DEBIT item and at least one CREDIT item"

        if not ok:
            raise InvalidTransactionShape(rule, details=details)


SOLD_KINDS = (TransactionKind.SALE, TransactionKind.BULK_SALE)


def _validate_items(items: list[ItemSpec]) -> None:
    for index, item in enumerate(items):
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity <= 0:
            raise InvalidValue("Item quantity must be a positive integer", details={"position": index})
        if item.price_per_unit_cents is None or item.price_per_unit_cents < 0:
            raise InvalidValue("Item price must be >= 0", details={"position": index})


def record(
    kind,
    *,
    company_id: int,
    tenant_id: int,
    created_by_user_id: int | None,
    customer_id: int | None,
    items: list[ItemSpec],
    occurred_at: datetime | None = None,
) -> Transaction:
    """
    Persist a transaction and its items in one flush.

    Never touches stock: the orchestrator adjusts quantities first so a
    stock failure aborts before any transaction row exists.
    """
    kind = TransactionKind.parse(kind)
    items = list(items)
    kind.validate_shape(items)
    _validate_items(items)

    txn = Transaction(
        tenant_id=tenant_id,
        company_id=company_id,
        type=kind.value,
        occurred_at=occurred_at or utcnow(),
        created_by_user_id=created_by_user_id,
        customer_id=customer_id,
    )
    db.session.add(txn)
    for position, spec in enumerate(items):
        txn.items.append(
            TransactionItem(
                product_id=spec.product_id,
                position=position,
                quantity=spec.quantity,
                direction=spec.direction,
                price_per_unit_cents=spec.price_per_unit_cents,
                total_price_cents=spec.total_price_cents,
            )
        )
    db.session.flush()
    return txn


def _kind_values(kinds) -> list[str] | None:
    if not kinds:
        return None
    return [TransactionKind.parse(k).value for k in kinds]


def get_transaction(ctx, transaction_id: int, kinds=None) -> Transaction:
    query = db.session.query(Transaction).filter_by(
        id=transaction_id,
        company_id=ctx.company_id,
        tenant_id=ctx.tenant_id,
    )
    values = _kind_values(kinds)
    if values:
        query = query.filter(Transaction.type.in_(values))
    txn = query.first()
    if txn is None:
        raise NotFound("Transaction not found", details={"transaction_id": transaction_id})
    return txn


def list_transactions(ctx, kinds=None, *, limit: int = 100, offset: int = 0) -> list[Transaction]:
    query = db.session.query(Transaction).filter_by(company_id=ctx.company_id, tenant_id=ctx.tenant_id)
    values = _kind_values(kinds)
    if values:
        query = query.filter(Transaction.type.in_(values))

    if offset < 0:
        offset = 0
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    return (
        query.order_by(Transaction.occurred_at.desc(), Transaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_item(ctx, item_id: int) -> TransactionItem:
    item = (
        db.session.query(TransactionItem)
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(
            TransactionItem.id == item_id,
            Transaction.company_id == ctx.company_id,
            Transaction.tenant_id == ctx.tenant_id,
        )
        .first()
    )
    if item is None:
        raise NotFound("Transaction item not found", details={"item_id": item_id})
    return item
