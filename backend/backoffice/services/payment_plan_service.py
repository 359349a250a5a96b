# Overview: Payment plan state machine; installment history, derived balance and debtor classification.

from __future__ import annotations

from datetime import datetime

from ..errors import InvalidValue, NoOutstandingBalance, NotFound, OutstandingBalance, Overpayment
from ..extensions import db
from ..models import BankAccount, Customer, Payment, PaymentPlan, Transaction, TransactionItem
from ..models.customers import CUSTOMER_TYPE_CUSTOMER, CUSTOMER_TYPE_DEBTOR
from ..time_utils import as_utc_naive, utcnow
from ..validation import PAYMENT_FREQUENCIES, PAYMENT_METHODS
"""
Payment Plan Invariants

States: NO_PLAN -> OPEN (balance > 0, DEBTOR) -> SETTLED (balance == 0, CUSTOMER).

- The plan's balance is ALWAYS the latest Payment's balance_owed_cents;
  current_balance() is the only accessor for it.
- Payment rows are append-only. Balances never increase along the history
  and never drop below zero.
- installment_count and customer_type change only together with a new Payment.
- A price correction is allowed only on a settled plan and leaves the
  balance untouched.
"""

PLAN_STATE_NO_PLAN = "NO_PLAN"
PLAN_STATE_OPEN = "OPEN"
PLAN_STATE_SETTLED = "SETTLED"


def _customer_type_for(balance_cents: int) -> str:
    return CUSTOMER_TYPE_CUSTOMER if balance_cents == 0 else CUSTOMER_TYPE_DEBTOR


def _check_method(method: str | None) -> str:
    method = (method or "CASH").upper()
    if method not in PAYMENT_METHODS:
        raise InvalidValue(
            f"method must be one of: {', '.join(PAYMENT_METHODS)}",
            details={"method": method},
        )
    return method


def latest_payment(plan: PaymentPlan) -> Payment | None:
    return (
        db.session.query(Payment)
        .filter(Payment.payment_plan_id == plan.id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .first()
    )


def current_balance(plan: PaymentPlan) -> int:
    """Outstanding balance in cents, read from the latest Payment."""
    latest = latest_payment(plan)
    return latest.balance_owed_cents if latest else 0


def plan_state(plan: PaymentPlan | None) -> str:
    if plan is None:
        return PLAN_STATE_NO_PLAN
    return PLAN_STATE_OPEN if current_balance(plan) > 0 else PLAN_STATE_SETTLED


def get_plan_for_transaction(transaction_id: int, *, lock: bool = False) -> PaymentPlan:
    query = db.session.query(PaymentPlan).filter_by(transaction_id=transaction_id)
    if lock:
        query = query.with_for_update()
    plan = query.first()
    if plan is None:
        raise NotFound("Payment plan not found", details={"transaction_id": transaction_id})
    return plan


def open_plan(
    transaction: Transaction,
    *,
    customer_id: int | None,
    total_amount_cents: int,
    balance_owed_cents: int,
    method: str = "CASH",
    frequency: str = "ONE_TIME",
    vat_cents: int = 0,
    total_pay_cents: int | None = None,
    bank_account: BankAccount | None = None,
    paid_at: datetime | None = None,
) -> PaymentPlan:
    """
    Create a plan with installment_count=1 and its first Payment.

    total_pay_cents defaults to what was paid at checkout:
    total_amount + vat - balance_owed.
    """
    method = _check_method(method)
    frequency = (frequency or "ONE_TIME").upper()
    if frequency not in PAYMENT_FREQUENCIES:
        raise InvalidValue(
            f"frequency must be one of: {', '.join(PAYMENT_FREQUENCIES)}",
            details={"frequency": frequency},
        )
    if total_amount_cents < 0 or vat_cents < 0:
        raise InvalidValue("Amounts must be >= 0")
    if balance_owed_cents < 0 or balance_owed_cents > total_amount_cents + vat_cents:
        raise InvalidValue(
            "balance_owed must be between 0 and the transaction total",
            details={
                "balance_owed_cents": balance_owed_cents,
                "total_amount_cents": total_amount_cents,
                "vat_cents": vat_cents,
            },
        )
    if total_pay_cents is None:
        total_pay_cents = total_amount_cents + vat_cents - balance_owed_cents
    if total_pay_cents < 0:
        raise InvalidValue("total_pay must be >= 0", details={"total_pay_cents": total_pay_cents})

    customer_type = _customer_type_for(balance_owed_cents)
    plan = PaymentPlan(
        tenant_id=transaction.tenant_id,
        company_id=transaction.company_id,
        transaction_id=transaction.id,
        customer_id=customer_id,
        installment_count=1,
        frequency=frequency,
        customer_type=customer_type,
    )
    db.session.add(plan)
    db.session.flush()

    now = utcnow()
    db.session.add(
        Payment(
            payment_plan_id=plan.id,
            total_amount_cents=total_amount_cents,
            balance_owed_cents=balance_owed_cents,
            balance_paid_cents=total_pay_cents,
            total_pay_cents=total_pay_cents,
            vat_cents=vat_cents,
            method=method,
            bank_account_id=bank_account.id if bank_account else None,
            paid_at=paid_at or now,
            created_at=now,
        )
    )
    db.session.flush()
    return plan


def record_payment(
    plan: PaymentPlan,
    *,
    amount_cents: int,
    method: str = "CASH",
    bank_account: BankAccount | None = None,
    paid_at: datetime | None = None,
) -> Payment:
    """
    Append an installment.

    NoOutstandingBalance when the plan is settled, Overpayment when the
    amount exceeds the balance. On failure nothing is written.
    """
    method = _check_method(method)
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise InvalidValue("amount must be a positive integer", details={"amount_cents": amount_cents})

    latest = latest_payment(plan)
    balance = latest.balance_owed_cents if latest else 0
    if balance == 0:
        raise NoOutstandingBalance(
            "Payment plan has no outstanding balance",
            details={"payment_plan_id": plan.id},
        )
    if amount_cents > balance:
        raise Overpayment(
            "Payment exceeds the outstanding balance",
            details={"payment_plan_id": plan.id, "balance_owed_cents": balance, "amount_cents": amount_cents},
        )

    new_balance = balance - amount_cents
    now = utcnow()
    # Never sort before the previous installment
    previous = as_utc_naive(latest.created_at)
    created_at = max(now, previous) if previous else now
    payment = Payment(
        payment_plan_id=plan.id,
        total_amount_cents=latest.total_amount_cents,
        balance_owed_cents=new_balance,
        balance_paid_cents=amount_cents,
        total_pay_cents=latest.total_pay_cents + amount_cents,
        vat_cents=latest.vat_cents,
        method=method,
        bank_account_id=bank_account.id if bank_account else None,
        paid_at=paid_at or now,
        created_at=created_at,
    )
    db.session.add(payment)

    plan.installment_count = plan.installment_count + 1
    plan.customer_type = _customer_type_for(new_balance)
    db.session.flush()
    return payment


def correct_price(item: TransactionItem, new_total_price_cents: int) -> TransactionItem:
    """
    Rewrite an item's price on a settled plan.

    price_per_unit = new_total / quantity rounded half-up to the cent; the
    latest Payment's total_amount moves by (new_total - old_total). The
    balance stays as it is.
    """
    if isinstance(new_total_price_cents, bool) or not isinstance(new_total_price_cents, int) or new_total_price_cents < 0:
        raise InvalidValue("price must be a non-negative integer", details={"price_cents": new_total_price_cents})

    plan = get_plan_for_transaction(item.transaction_id, lock=True)
    latest = latest_payment(plan)
    balance = latest.balance_owed_cents if latest else 0
    if balance != 0:
        raise OutstandingBalance(
            "Price can only be corrected once the balance is settled",
            details={"payment_plan_id": plan.id, "balance_owed_cents": balance},
        )

    old_total = item.total_price_cents
    item.price_per_unit_cents = (2 * new_total_price_cents + item.quantity) // (2 * item.quantity)
    item.total_price_cents = new_total_price_cents
    if latest is not None:
        latest.total_amount_cents = latest.total_amount_cents + (new_total_price_cents - old_total)
    db.session.flush()
    return item


def customer_has_outstanding_balance(customer_id: int) -> bool:
    """True when any of the customer's plans has a non-zero latest balance."""
    plans = db.session.query(PaymentPlan).filter(PaymentPlan.customer_id == customer_id).order_by(PaymentPlan.id)
    return any(current_balance(plan) != 0 for plan in plans)


def reclassify_customer(customer_id: int | None) -> str | None:
    """Set Customer.customer_type from the customer's plans; returns the new type."""
    if customer_id is None:
        return None
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise NotFound("Customer not found", details={"customer_id": customer_id})
    new_type = CUSTOMER_TYPE_DEBTOR if customer_has_outstanding_balance(customer_id) else CUSTOMER_TYPE_CUSTOMER
    if customer.customer_type != new_type:
        customer.customer_type = new_type
        db.session.flush()
    return new_type
