# Overview: Invoice number allocation, invoice issue/status, and the overdue sweep.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import InvalidValue, NotFound, SequenceConflict
from ..extensions import db
from ..models import Company, Invoice, InvoiceSequence, Transaction
from ..models.invoices import (
    INVOICE_STATUS_DRAFT,
    INVOICE_STATUS_OVERDUE,
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_PART_PAID,
)
from ..time_utils import invoice_period, utcnow
"""
Invoice Numbering

Format: <Initials><YY>-<MM><NNNN>
- Initials: upper-cased first letter of each word of the company name
- NNNN: zero-padded, starting at 0000 for every (tenant, <Initials><YY>-<MM>)
  prefix; companies of one tenant that share initials share one counter

Allocation is a single UPDATE ... SET next_number = next_number + 1 on the
prefix's InvoiceSequence row, under the write lock of the enclosing unit of
work. Numbers are gap-free because a rolled-back unit of work also rolls
back its increment.
"""

INVOICE_STATUSES = (
    INVOICE_STATUS_DRAFT,
    INVOICE_STATUS_PART_PAID,
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_OVERDUE,
)


def company_initials(name: str) -> str:
    return "".join(word[0].upper() for word in name.split() if word)


def format_invoice_number(initials: str, period: str, sequence: int) -> str:
    """period is YYMM."""
    return f"{invoice_prefix(initials, period)}{sequence:04d}"


def invoice_prefix(initials: str, period: str) -> str:
    return f"{initials}{period[:2]}-{period[2:]}"


def _allocate(*, tenant_id: int, prefix: str) -> int:
    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.tenant_id == tenant_id, InvoiceSequence.prefix == prefix)
        .values(next_number=InvoiceSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _read_allocated() -> int:
        current = (
            db.session.query(InvoiceSequence.next_number)
            .filter_by(tenant_id=tenant_id, prefix=prefix)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        return _read_allocated()

    # First number of the period: insert the counter row already advanced past 0.
    nested = db.session.begin_nested()
    db.session.add(InvoiceSequence(tenant_id=tenant_id, prefix=prefix, next_number=1))
    try:
        db.session.flush()
    except IntegrityError:
        # Another unit of work created the row first.
        nested.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _read_allocated()
    nested.commit()
    return 0


def next_invoice_number(*, company_id: int, tenant_id: int, now: datetime | None = None) -> str:
    """
    Allocate the next invoice number for the company's current month.

    Must run inside a unit of work; the counter increment commits or rolls
    back together with the invoice that uses it.
    """
    company = db.session.query(Company).filter_by(id=company_id, tenant_id=tenant_id).first()
    if company is None:
        raise NotFound("Company not found", details={"company_id": company_id})

    initials = company_initials(company.name)
    if not initials:
        raise InvalidValue("Company name has no initials", details={"company_id": company_id})

    period = invoice_period(now or utcnow())
    prefix = invoice_prefix(initials, period)
    sequence = _allocate(tenant_id=tenant_id, prefix=prefix)
    return f"{prefix}{sequence:04d}"


def status_for_balance(balance_cents: int) -> str:
    return INVOICE_STATUS_PAID if balance_cents == 0 else INVOICE_STATUS_PART_PAID


def issue_invoice(
    transaction: Transaction,
    *,
    status: str,
    payment_date: datetime | None = None,
    now: datetime | None = None,
) -> Invoice:
    """
    Insert the invoice for a transaction under a freshly allocated number.

    The insert runs in a savepoint. A unique violation on
    (tenant_id, invoice_no) is a SequenceConflict: the savepoint is rolled
    back and a new number allocated, up to INVOICE_NUMBER_MAX_ATTEMPTS.
    """
    if status not in INVOICE_STATUSES:
        raise InvalidValue(f"Unknown invoice status {status!r}", details={"status": status})

    attempts = max(current_app.config.get("INVOICE_NUMBER_MAX_ATTEMPTS", 3), 1)
    last_number = None
    for attempt in range(attempts):
        invoice_no = next_invoice_number(
            company_id=transaction.company_id,
            tenant_id=transaction.tenant_id,
            now=now,
        )
        last_number = invoice_no
        nested = db.session.begin_nested()
        invoice = Invoice(
            tenant_id=transaction.tenant_id,
            company_id=transaction.company_id,
            transaction_id=transaction.id,
            customer_id=transaction.customer_id,
            invoice_no=invoice_no,
            status=status,
            payment_date=payment_date,
        )
        db.session.add(invoice)
        try:
            db.session.flush()
        except IntegrityError:
            nested.rollback()
            current_app.logger.warning(
                "Invoice number %s already taken (attempt %s/%s)",
                invoice_no,
                attempt + 1,
                attempts,
            )
            continue
        nested.commit()
        return invoice

    raise SequenceConflict(
        "Could not allocate a unique invoice number",
        details={"invoice_no": last_number, "attempts": attempts},
    )


def default_payment_date(now: datetime | None = None) -> datetime:
    days = current_app.config.get("INVOICE_DUE_DAYS", 14)
    return (now or utcnow()) + timedelta(days=days)


def get_invoice_for_transaction(transaction_id: int) -> Invoice | None:
    return db.session.query(Invoice).filter_by(transaction_id=transaction_id).first()


def sync_invoice_status(invoice: Invoice | None, balance_cents: int) -> Invoice | None:
    """PAID iff the balance is zero, PART_PAID otherwise."""
    if invoice is None:
        return None
    new_status = status_for_balance(balance_cents)
    if invoice.status != new_status:
        invoice.status = new_status
        db.session.flush()
    return invoice


def get_invoice(ctx, invoice_no: str) -> Invoice:
    invoice = (
        db.session.query(Invoice)
        .filter_by(invoice_no=invoice_no, company_id=ctx.company_id, tenant_id=ctx.tenant_id)
        .first()
    )
    if invoice is None:
        raise NotFound(f"Invoice {invoice_no} not found", details={"invoice_no": invoice_no})
    return invoice


def list_invoices(ctx, *, status: str | None = None, limit: int = 100, offset: int = 0) -> list[Invoice]:
    query = db.session.query(Invoice).filter_by(company_id=ctx.company_id, tenant_id=ctx.tenant_id)
    if status:
        status = status.upper()
        if status not in INVOICE_STATUSES:
            raise InvalidValue(f"Unknown invoice status {status!r}", details={"status": status})
        query = query.filter(Invoice.status == status)

    if offset < 0:
        offset = 0
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    return query.order_by(Invoice.id.desc()).offset(offset).limit(limit).all()


def mark_overdue(now: datetime | None = None) -> int:
    """
    Flip DRAFT invoices whose payment_date has passed to OVERDUE.

    Runs across all tenants (scheduled sweep); returns the number of
    invoices updated.
    """
    now = now or utcnow()
    stmt = (
        update(Invoice)
        .where(
            Invoice.status == INVOICE_STATUS_DRAFT,
            Invoice.payment_date.isnot(None),
            Invoice.payment_date < now,
        )
        .values(status=INVOICE_STATUS_OVERDUE)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return result.rowcount or 0
