"""
Transaction Orchestrator: sell, bulk sell, swap, buyback, installments,
price correction and drafted invoices.

WHY: Stock, transaction rows, payment plan and invoice must change together.
Each public operation runs in ONE unit of work, writing in the order

    Stock Ledger -> Transaction Recorder -> Payment Plan -> Invoice

so a stock failure aborts before any transaction row exists, and any later
failure rolls back the stock change with everything else.

Validation failures surface as BackOfficeError kinds and are never
retried; transient storage failures re-run the whole operation with the
same input (see concurrency.run_in_unit_of_work).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..errors import InvalidValue, MissingRequiredField
from ..extensions import db
from ..models import BankAccount, Customer, Invoice, PaymentPlan, Product, Transaction, TransactionItem
from ..models.invoices import INVOICE_STATUS_DRAFT
from ..models.transactions import DIRECTION_CREDIT, DIRECTION_DEBIT
from . import (
    customer_service,
    invoice_service,
    ledger_service,
    notification_service,
    payment_plan_service,
    stock_service,
    supplier_service,
    transaction_service,
)
from .concurrency import run_in_unit_of_work
from .stock_service import ProductKey
from .tenant_service import CompanyContext
from .transaction_service import ItemSpec, TransactionKind


@dataclass(frozen=True)
class CustomerInput:
    name: str
    phone: str
    email: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class BankDetails:
    bank_name: str
    account_number: str
    account_name: str | None = None


@dataclass(frozen=True)
class PaymentInput:
    """
    Checkout payment terms.

    amount_cents is the plan's total amount; when omitted it is the
    transaction total (sales) or the outgoing minus incoming value (swaps).
    """
    balance_owed_cents: int = 0
    method: str = "CASH"
    frequency: str = "ONE_TIME"
    vat_cents: int = 0
    amount_cents: int | None = None
    total_pay_cents: int | None = None
    bank: BankDetails | None = None
    paid_at: datetime | None = None


@dataclass(frozen=True)
class SaleLine:
    sku: str
    quantity: int
    price_per_unit_cents: int


@dataclass(frozen=True)
class SupplierInput:
    name: str
    phone: str
    email: str | None = None


@dataclass(frozen=True)
class IncomingItem:
    """Product received in a swap or buyback; sku=None means a new product."""
    quantity: int
    sku: str | None = None
    name: str | None = None
    brand: str | None = None
    product_type: str | None = None
    description: str | None = None
    serial_no: str | None = None
    condition: str = "USED"
    price_per_unit_cents: int | None = None
    cost_price_cents: int = 0
    supplier: SupplierInput | None = None


@dataclass
class TransactionResult:
    transaction: Transaction
    payment_plan: PaymentPlan | None = None
    invoice: Invoice | None = None
    customer: Customer | None = None
    products: list[Product] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "transaction": self.transaction.to_dict(),
            "payment_plan": self.payment_plan.to_dict() if self.payment_plan else None,
            "invoice": self.invoice.to_dict() if self.invoice else None,
            "customer": self.customer.to_dict() if self.customer else None,
        }


@dataclass
class PaymentResult:
    payment_plan: PaymentPlan
    invoice: Invoice | None
    balance_owed_cents: int

    def to_dict(self) -> dict:
        return {
            "payment_plan": self.payment_plan.to_dict(),
            "invoice": self.invoice.to_dict() if self.invoice else None,
            "balance_owed_cents": self.balance_owed_cents,
        }


# =============================================================================
# Helpers (run inside the caller's unit of work)
# =============================================================================

def _key(ctx: CompanyContext, sku: str) -> ProductKey:
    if not sku:
        raise MissingRequiredField.for_fields(["sku"])
    return ProductKey(sku=sku, company_id=ctx.company_id, tenant_id=ctx.tenant_id)


def _positive_quantity(quantity, field_name: str = "quantity") -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidValue(f"{field_name} must be a positive integer", details={"field": field_name})
    return quantity


def _non_negative_cents(value, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidValue(f"{field_name} must be a non-negative integer", details={"field": field_name})
    return value


def _upsert_customer(ctx: CompanyContext, customer: CustomerInput | None) -> Customer | None:
    if customer is None:
        return None
    return customer_service.upsert_customer(
        name=customer.name,
        phone=customer.phone,
        company_id=ctx.company_id,
        tenant_id=ctx.tenant_id,
        email=customer.email,
        address=customer.address,
    )


def _resolve_bank_account(ctx: CompanyContext, payment: PaymentInput) -> BankAccount | None:
    if (payment.method or "CASH").upper() != "BANK_TRANSFER":
        return None
    bank = payment.bank
    missing = []
    if bank is None or not bank.bank_name:
        missing.append("bank_name")
    if bank is None or not bank.account_number:
        missing.append("account_number")
    if missing:
        raise MissingRequiredField.for_fields(missing)

    account = (
        db.session.query(BankAccount)
        .filter_by(company_id=ctx.company_id, tenant_id=ctx.tenant_id, account_number=bank.account_number)
        .first()
    )
    if account is None:
        account = BankAccount(
            tenant_id=ctx.tenant_id,
            company_id=ctx.company_id,
            bank_name=bank.bank_name,
            account_number=bank.account_number,
            account_name=bank.account_name or "",
        )
        db.session.add(account)
        db.session.flush()
    return account


def _open_plan(
    ctx: CompanyContext,
    txn: Transaction,
    customer: Customer | None,
    payment: PaymentInput,
    total_amount_cents: int,
) -> PaymentPlan:
    plan = payment_plan_service.open_plan(
        txn,
        customer_id=customer.id if customer else None,
        total_amount_cents=total_amount_cents,
        balance_owed_cents=payment.balance_owed_cents,
        method=payment.method,
        frequency=payment.frequency,
        vat_cents=payment.vat_cents,
        total_pay_cents=payment.total_pay_cents,
        bank_account=_resolve_bank_account(ctx, payment),
        paid_at=payment.paid_at,
    )
    if customer is not None:
        payment_plan_service.reclassify_customer(customer.id)
    return plan


def _log_transaction(ctx: CompanyContext, txn: Transaction, note: str) -> None:
    ledger_service.append_ledger_event(
        tenant_id=ctx.tenant_id,
        company_id=ctx.company_id,
        event_type="transaction.recorded",
        entity_type="transaction",
        entity_id=txn.id,
        actor_user_id=ctx.user_id,
        occurred_at=txn.occurred_at,
        note=note,
        payload={
            "type": txn.type,
            "items": [
                {
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "direction": item.direction,
                    "total_price_cents": item.total_price_cents,
                }
                for item in txn.items
            ],
        },
    )


def _log_invoice(ctx: CompanyContext, invoice: Invoice) -> None:
    ledger_service.append_ledger_event(
        tenant_id=ctx.tenant_id,
        company_id=ctx.company_id,
        event_type="invoice.issued",
        entity_type="invoice",
        entity_id=invoice.id,
        actor_user_id=ctx.user_id,
        note=f"Invoice {invoice.invoice_no} issued",
        payload={"invoice_no": invoice.invoice_no, "status": invoice.status},
    )


def _notify(ctx: CompanyContext, result: TransactionResult) -> None:
    if result.invoice is None or result.customer is None or not result.customer.email:
        return
    notification_service.dispatch_invoice_issued(
        invoice_no=result.invoice.invoice_no,
        email=result.customer.email,
        tenant_id=ctx.tenant_id,
        company_id=ctx.company_id,
    )


def _receive_incoming(ctx: CompanyContext, item: IncomingItem, *, supplier_id: int | None = None) -> tuple[Product, int]:
    """
    Restock an existing product or create a new one for an incoming item.

    Returns the product and the unit price the item is recorded at.
    """
    quantity = _positive_quantity(item.quantity)
    if item.price_per_unit_cents is not None:
        _non_negative_cents(item.price_per_unit_cents, "price")

    existing = stock_service.find_product(_key(ctx, item.sku)) if item.sku else None
    if existing is not None:
        product = stock_service.restock(_key(ctx, item.sku), quantity)
        price = item.price_per_unit_cents
        if price is None:
            price = product.selling_price_cents or 0
        return product, price

    missing = [
        name
        for name, value in (("name", item.name), ("brand", item.brand), ("type", item.product_type))
        if not value
    ]
    if missing:
        raise MissingRequiredField.for_fields(missing)

    if supplier_id is None and item.supplier is not None:
        supplier_id = supplier_service.get_or_create_supplier(
            name=item.supplier.name,
            phone=item.supplier.phone,
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
            email=item.supplier.email,
        ).id

    product = stock_service.create_product(
        tenant_id=ctx.tenant_id,
        company_id=ctx.company_id,
        sku=item.sku,
        name=item.name,
        brand=item.brand,
        product_type=item.product_type,
        description=item.description,
        serial_no=item.serial_no,
        condition=item.condition,
        quantity=quantity,
        selling_price_cents=item.price_per_unit_cents,
        cost_price_cents=item.cost_price_cents,
        supplier_id=supplier_id,
        created_by_user_id=ctx.user_id,
    )
    ledger_service.append_ledger_event(
        tenant_id=ctx.tenant_id,
        company_id=ctx.company_id,
        event_type="product.created",
        entity_type="product",
        entity_id=product.id,
        actor_user_id=ctx.user_id,
        note=f"Product {product.sku} received",
    )
    return product, item.price_per_unit_cents or 0


# =============================================================================
# Sales
# =============================================================================

def sell(
    ctx: CompanyContext,
    *,
    sku: str,
    quantity: int,
    price_per_unit_cents: int,
    payment: PaymentInput,
    customer: CustomerInput | None = None,
) -> TransactionResult:
    """Single-product sale: stock -> SALE transaction -> plan -> invoice."""
    quantity = _positive_quantity(quantity)
    price_per_unit_cents = _non_negative_cents(price_per_unit_cents, "price_per_unit_cents")

    def _op() -> TransactionResult:
        product = stock_service.adjust(_key(ctx, sku), -quantity)
        buyer = _upsert_customer(ctx, customer)
        txn = transaction_service.record(
            TransactionKind.SALE,
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
            created_by_user_id=ctx.user_id,
            customer_id=buyer.id if buyer else None,
            items=[ItemSpec(product.id, quantity, price_per_unit_cents, DIRECTION_DEBIT)],
        )
        total = quantity * price_per_unit_cents
        amount = total if payment.amount_cents is None else payment.amount_cents
        plan = _open_plan(ctx, txn, buyer, payment, amount)
        invoice = invoice_service.issue_invoice(
            txn,
            status=invoice_service.status_for_balance(payment.balance_owed_cents),
            payment_date=payment.paid_at,
        )
        _log_transaction(ctx, txn, f"Sold {quantity} x {sku}")
        _log_invoice(ctx, invoice)
        return TransactionResult(txn, plan, invoice, buyer, [product])

    result = run_in_unit_of_work(_op)
    _notify(ctx, result)
    return result


def bulk_sell(
    ctx: CompanyContext,
    *,
    lines: list[SaleLine],
    payment: PaymentInput,
    customer: CustomerInput | None = None,
) -> TransactionResult:
    """
    Multi-product sale. The whole batch is admitted against one stock
    snapshot before any quantity changes; one BULK_SALE item per line.
    """
    if not lines:
        raise MissingRequiredField.for_fields(["items"])
    for line in lines:
        _positive_quantity(line.quantity)
        _non_negative_cents(line.price_per_unit_cents, "price_per_unit_cents")

    def _op() -> TransactionResult:
        products = stock_service.adjust_many([(_key(ctx, line.sku), -line.quantity) for line in lines])
        by_sku = {product.sku: product for product in products}
        buyer = _upsert_customer(ctx, customer)
        txn = transaction_service.record(
            TransactionKind.BULK_SALE,
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
            created_by_user_id=ctx.user_id,
            customer_id=buyer.id if buyer else None,
            items=[
                ItemSpec(by_sku[line.sku].id, line.quantity, line.price_per_unit_cents, DIRECTION_DEBIT)
                for line in lines
            ],
        )
        total = sum(line.quantity * line.price_per_unit_cents for line in lines)
        amount = total if payment.amount_cents is None else payment.amount_cents
        plan = _open_plan(ctx, txn, buyer, payment, amount)
        invoice = invoice_service.issue_invoice(
            txn,
            status=invoice_service.status_for_balance(payment.balance_owed_cents),
            payment_date=payment.paid_at,
        )
        _log_transaction(ctx, txn, f"Bulk sale of {len(lines)} lines")
        _log_invoice(ctx, invoice)
        return TransactionResult(txn, plan, invoice, buyer, products)

    result = run_in_unit_of_work(_op)
    _notify(ctx, result)
    return result


def draft_invoice(
    ctx: CompanyContext,
    *,
    lines: list[SaleLine],
    customer: CustomerInput,
    payment_date: datetime | None = None,
    method: str = "CASH",
    frequency: str = "ONE_TIME",
    vat_cents: int = 0,
) -> TransactionResult:
    """
    Billed sale with nothing paid yet: stock leaves as in a bulk sale, the
    plan opens with balance = total + vat and the invoice starts as DRAFT
    with a due date. The overdue sweep acts on these invoices.
    """
    if customer is None:
        raise MissingRequiredField.for_fields(["customer"])
    if not lines:
        raise MissingRequiredField.for_fields(["items"])
    for line in lines:
        _positive_quantity(line.quantity)
        _non_negative_cents(line.price_per_unit_cents, "price_per_unit_cents")
    _non_negative_cents(vat_cents, "vat_cents")

    def _op() -> TransactionResult:
        products = stock_service.adjust_many([(_key(ctx, line.sku), -line.quantity) for line in lines])
        by_sku = {product.sku: product for product in products}
        buyer = _upsert_customer(ctx, customer)
        txn = transaction_service.record(
            TransactionKind.BULK_SALE,
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
            created_by_user_id=ctx.user_id,
            customer_id=buyer.id,
            items=[
                ItemSpec(by_sku[line.sku].id, line.quantity, line.price_per_unit_cents, DIRECTION_DEBIT)
                for line in lines
            ],
        )
        total = sum(line.quantity * line.price_per_unit_cents for line in lines)
        terms = PaymentInput(
            balance_owed_cents=total + vat_cents,
            method=method,
            frequency=frequency,
            vat_cents=vat_cents,
            total_pay_cents=0,
        )
        plan = _open_plan(ctx, txn, buyer, terms, total)
        invoice = invoice_service.issue_invoice(
            txn,
            status=INVOICE_STATUS_DRAFT,
            payment_date=payment_date or invoice_service.default_payment_date(),
        )
        _log_transaction(ctx, txn, f"Invoice drafted for {len(lines)} lines")
        _log_invoice(ctx, invoice)
        return TransactionResult(txn, plan, invoice, buyer, products)

    result = run_in_unit_of_work(_op)
    _notify(ctx, result)
    return result


# =============================================================================
# Swap / Buyback
# =============================================================================

def swap(
    ctx: CompanyContext,
    *,
    outgoing_sku: str,
    outgoing_quantity: int,
    incoming: list[IncomingItem],
    payment: PaymentInput | None = None,
    customer: CustomerInput | None = None,
    outgoing_price_per_unit_cents: int | None = None,
) -> TransactionResult:
    """
    Trade one outgoing product for one or more incoming items.

    Outgoing is a DEBIT item priced at its selling price; each incoming
    item is a CREDIT item. A plan is opened only when payment terms are
    given; swaps issue no invoice.
    """
    outgoing_quantity = _positive_quantity(outgoing_quantity, "outgoing.quantity")
    if not incoming:
        raise MissingRequiredField.for_fields(["incoming"])
    if outgoing_price_per_unit_cents is not None:
        _non_negative_cents(outgoing_price_per_unit_cents, "outgoing.price")

    def _op() -> TransactionResult:
        outgoing = stock_service.adjust(_key(ctx, outgoing_sku), -outgoing_quantity)
        out_price = outgoing_price_per_unit_cents
        if out_price is None:
            out_price = outgoing.selling_price_cents or 0

        items = [ItemSpec(outgoing.id, outgoing_quantity, out_price, DIRECTION_DEBIT)]
        products = [outgoing]
        for entry in incoming:
            product, price = _receive_incoming(ctx, entry)
            items.append(ItemSpec(product.id, entry.quantity, price, DIRECTION_CREDIT))
            products.append(product)

        buyer = _upsert_customer(ctx, customer)
        txn = transaction_service.record(
            TransactionKind.SWAP,
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
            created_by_user_id=ctx.user_id,
            customer_id=buyer.id if buyer else None,
            items=items,
        )

        plan = None
        if payment is not None:
            difference = sum(i.total_price_cents for i in items if i.direction == DIRECTION_DEBIT) - sum(
                i.total_price_cents for i in items if i.direction == DIRECTION_CREDIT
            )
            amount = max(difference, 0) if payment.amount_cents is None else payment.amount_cents
            plan = _open_plan(ctx, txn, buyer, payment, amount)

        _log_transaction(ctx, txn, f"Swapped {outgoing_quantity} x {outgoing_sku}")
        return TransactionResult(txn, plan, None, buyer, products)

    return run_in_unit_of_work(_op)


def buyback(
    ctx: CompanyContext,
    *,
    item: IncomingItem,
    seller: CustomerInput,
    price_per_unit_cents: int = 0,
) -> TransactionResult:
    """
    Buy a product from a customer. The seller is recorded both as supplier
    and as customer; one CREDIT item, no plan and no invoice.
    """
    if seller is None:
        raise MissingRequiredField.for_fields(["seller"])
    _non_negative_cents(price_per_unit_cents, "price_per_unit_cents")

    def _op() -> TransactionResult:
        supplier = supplier_service.get_or_create_supplier(
            name=seller.name,
            phone=seller.phone,
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
            email=seller.email,
        )
        seller_customer = _upsert_customer(ctx, seller)
        product, _ = _receive_incoming(ctx, item, supplier_id=supplier.id)
        txn = transaction_service.record(
            TransactionKind.BUYBACK,
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
            created_by_user_id=ctx.user_id,
            customer_id=seller_customer.id,
            items=[ItemSpec(product.id, item.quantity, price_per_unit_cents, DIRECTION_CREDIT)],
        )
        _log_transaction(ctx, txn, f"Bought back {item.quantity} x {product.sku}")
        return TransactionResult(txn, None, None, seller_customer, [product])

    return run_in_unit_of_work(_op)


# =============================================================================
# Installments and corrections
# =============================================================================

def _apply_payment(
    ctx: CompanyContext,
    txn: Transaction,
    amount_cents: int,
    method: str,
    bank: BankDetails | None,
) -> PaymentResult:
    plan = payment_plan_service.get_plan_for_transaction(txn.id, lock=True)
    payment = payment_plan_service.record_payment(
        plan,
        amount_cents=amount_cents,
        method=method,
        bank_account=_resolve_bank_account(ctx, PaymentInput(method=method, bank=bank)),
    )
    invoice = invoice_service.sync_invoice_status(
        invoice_service.get_invoice_for_transaction(txn.id),
        payment.balance_owed_cents,
    )
    payment_plan_service.reclassify_customer(plan.customer_id)
    ledger_service.append_ledger_event(
        tenant_id=ctx.tenant_id,
        company_id=ctx.company_id,
        event_type="payment.recorded",
        entity_type="payment_plan",
        entity_id=plan.id,
        actor_user_id=ctx.user_id,
        payload={
            "transaction_id": txn.id,
            "amount_cents": amount_cents,
            "balance_owed_cents": payment.balance_owed_cents,
        },
    )
    return PaymentResult(plan, invoice, payment.balance_owed_cents)


def record_payment(
    ctx: CompanyContext,
    *,
    transaction_id: int,
    amount_cents: int,
    method: str = "CASH",
    bank: BankDetails | None = None,
) -> PaymentResult:
    """Pay down a transaction's plan; never touches stock."""
    def _op() -> PaymentResult:
        txn = transaction_service.get_transaction(ctx, transaction_id)
        return _apply_payment(ctx, txn, amount_cents, method, bank)

    return run_in_unit_of_work(_op)


def record_invoice_payment(
    ctx: CompanyContext,
    *,
    invoice_no: str,
    amount_cents: int,
    method: str = "CASH",
    bank: BankDetails | None = None,
) -> PaymentResult:
    def _op() -> PaymentResult:
        invoice = invoice_service.get_invoice(ctx, invoice_no)
        txn = transaction_service.get_transaction(ctx, invoice.transaction_id)
        return _apply_payment(ctx, txn, amount_cents, method, bank)

    return run_in_unit_of_work(_op)


def resend_invoice(ctx: CompanyContext, *, invoice_no: str) -> Invoice:
    """Send the invoice-issued notification again for an existing invoice."""
    invoice = invoice_service.get_invoice(ctx, invoice_no)
    email = invoice.customer.email if invoice.customer is not None else None
    if not email:
        raise MissingRequiredField(
            f"Invoice {invoice_no} has no customer email",
            details={"fields": ["email"], "invoice_no": invoice_no},
        )

    notification_service.dispatch_invoice_issued(
        invoice_no=invoice.invoice_no,
        email=email,
        tenant_id=ctx.tenant_id,
        company_id=ctx.company_id,
    )
    return invoice


def correct_price(ctx: CompanyContext, *, item_id: int, new_total_price_cents: int) -> TransactionItem:
    """Rewrite a line's total price once its plan is settled."""
    def _op() -> TransactionItem:
        item = transaction_service.get_item(ctx, item_id)
        old_total = item.total_price_cents
        payment_plan_service.correct_price(item, new_total_price_cents)
        ledger_service.append_ledger_event(
            tenant_id=ctx.tenant_id,
            company_id=ctx.company_id,
            event_type="price.corrected",
            entity_type="transaction_item",
            entity_id=item.id,
            actor_user_id=ctx.user_id,
            payload={"old_total_cents": old_total, "new_total_cents": new_total_price_cents},
        )
        return item

    return run_in_unit_of_work(_op)


# =============================================================================
# Inbound supply
# =============================================================================

def receive_product(ctx: CompanyContext, *, item: IncomingItem) -> Product:
    """Create a product from inbound supply (absolute starting quantity)."""
    if item.quantity is None or isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity < 0:
        raise InvalidValue("quantity must be a non-negative integer", details={"field": "quantity"})
    if not item.name:
        raise MissingRequiredField.for_fields(["name"])

    def _op() -> Product:
        supplier_id = None
        if item.supplier is not None:
            supplier_id = supplier_service.get_or_create_supplier(
                name=item.supplier.name,
                phone=item.supplier.phone,
                company_id=ctx.company_id,
                tenant_id=ctx.tenant_id,
                email=item.supplier.email,
            ).id
        product = stock_service.create_product(
            tenant_id=ctx.tenant_id,
            company_id=ctx.company_id,
            sku=item.sku,
            name=item.name,
            brand=item.brand,
            product_type=item.product_type,
            description=item.description,
            serial_no=item.serial_no,
            condition=item.condition,
            quantity=item.quantity,
            selling_price_cents=item.price_per_unit_cents,
            cost_price_cents=item.cost_price_cents,
            supplier_id=supplier_id,
            created_by_user_id=ctx.user_id,
        )
        ledger_service.append_ledger_event(
            tenant_id=ctx.tenant_id,
            company_id=ctx.company_id,
            event_type="product.created",
            entity_type="product",
            entity_id=product.id,
            actor_user_id=ctx.user_id,
            payload={"sku": product.sku, "quantity": product.quantity},
        )
        return product

    return run_in_unit_of_work(_op)


def restock_product(ctx: CompanyContext, *, sku: str, quantity: int) -> Product:
    quantity = _positive_quantity(quantity)

    def _op() -> Product:
        product = stock_service.restock(_key(ctx, sku), quantity)
        ledger_service.append_ledger_event(
            tenant_id=ctx.tenant_id,
            company_id=ctx.company_id,
            event_type="product.restocked",
            entity_type="product",
            entity_id=product.id,
            actor_user_id=ctx.user_id,
            payload={"sku": sku, "delta": quantity},
        )
        return product

    return run_in_unit_of_work(_op)


def remove_product(ctx: CompanyContext, *, sku: str) -> Product:
    def _op() -> Product:
        product = stock_service.deactivate_product(_key(ctx, sku))
        ledger_service.append_ledger_event(
            tenant_id=ctx.tenant_id,
            company_id=ctx.company_id,
            event_type="product.deactivated",
            entity_type="product",
            entity_id=product.id,
            actor_user_id=ctx.user_id,
        )
        return product

    return run_in_unit_of_work(_op)
