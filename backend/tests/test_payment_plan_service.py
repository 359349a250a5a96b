# Overview: Pytest coverage for the payment plan state machine.

from datetime import datetime

import pytest

from backoffice.errors import InvalidValue, NoOutstandingBalance, OutstandingBalance, Overpayment
from backoffice.extensions import db
from backoffice.models import Customer, Payment, PaymentPlan, TransactionItem
from backoffice.models.customers import CUSTOMER_TYPE_CUSTOMER, CUSTOMER_TYPE_DEBTOR
from backoffice.services import customer_service, payment_plan_service, transaction_service
from backoffice.services.payment_plan_service import PLAN_STATE_NO_PLAN, PLAN_STATE_OPEN, PLAN_STATE_SETTLED
from backoffice.services.transaction_service import ItemSpec, TransactionKind

from conftest import in_unit_of_work


def _sale(ctx, product, *, quantity=3, price=500, customer_id=None):
    return in_unit_of_work(
        transaction_service.record,
        TransactionKind.SALE,
        company_id=ctx.company_id,
        tenant_id=ctx.tenant_id,
        created_by_user_id=ctx.user_id,
        customer_id=customer_id,
        items=[ItemSpec(product.id, quantity, price)],
    )


def _customer(ctx, name="Jane Doe", phone="555-0101"):
    return in_unit_of_work(
        customer_service.upsert_customer,
        name=name,
        phone=phone,
        company_id=ctx.company_id,
        tenant_id=ctx.tenant_id,
    )


def _plan(ctx, product, *, balance, total=1500, vat=0, customer_id=None, **kwargs):
    txn = _sale(ctx, product, customer_id=customer_id)
    plan = in_unit_of_work(
        payment_plan_service.open_plan,
        txn,
        customer_id=customer_id,
        total_amount_cents=total,
        balance_owed_cents=balance,
        vat_cents=vat,
        **kwargs,
    )
    return db.session.get(PaymentPlan, plan.id)


def _pay(plan, amount, method="CASH"):
    return in_unit_of_work(payment_plan_service.record_payment, plan, amount_cents=amount, method=method)


def _balances(plan):
    db.session.expire_all()
    payments = (
        db.session.query(Payment)
        .filter_by(payment_plan_id=plan.id)
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )
    return [p.balance_owed_cents for p in payments]


class TestOpenPlan:
    def test_fully_paid_plan(self, db_session, ctx, product):
        plan = _plan(ctx, product, balance=0)
        assert plan.installment_count == 1
        assert plan.customer_type == CUSTOMER_TYPE_CUSTOMER
        assert payment_plan_service.current_balance(plan) == 0
        assert payment_plan_service.plan_state(plan) == PLAN_STATE_SETTLED

        first = payment_plan_service.latest_payment(plan)
        assert first.total_amount_cents == 1500
        assert first.total_pay_cents == 1500
        assert first.balance_paid_cents == 1500

    def test_plan_with_balance_is_open(self, db_session, ctx, product):
        plan = _plan(ctx, product, balance=400, vat=100)
        assert plan.customer_type == CUSTOMER_TYPE_DEBTOR
        assert payment_plan_service.plan_state(plan) == PLAN_STATE_OPEN
        first = payment_plan_service.latest_payment(plan)
        assert first.total_pay_cents == 1500 + 100 - 400

    def test_no_plan_state(self):
        assert payment_plan_service.plan_state(None) == PLAN_STATE_NO_PLAN

    def test_balance_above_total_rejected(self, db_session, ctx, product):
        with pytest.raises(InvalidValue):
            _plan(ctx, product, balance=1501)
        assert db.session.query(PaymentPlan).count() == 0

    def test_unknown_frequency_rejected(self, db_session, ctx, product):
        with pytest.raises(InvalidValue):
            _plan(ctx, product, balance=0, frequency="YEARLY")

    def test_unknown_method_rejected(self, db_session, ctx, product):
        with pytest.raises(InvalidValue):
            _plan(ctx, product, balance=0, method="CHEQUE")


class TestRecordPayment:
    def test_overpayment_leaves_plan_unchanged(self, db_session, ctx, product):
        plan = _plan(ctx, product, balance=100)
        with pytest.raises(Overpayment):
            _pay(plan, 150)
        db.session.expire_all()
        assert payment_plan_service.current_balance(plan) == 100
        assert plan.installment_count == 1
        assert _balances(plan) == [100]

    def test_exact_payment_settles(self, db_session, ctx, product):
        plan = _plan(ctx, product, balance=100)
        payment = _pay(plan, 100)
        assert payment.balance_owed_cents == 0
        db.session.expire_all()
        assert plan.installment_count == 2
        assert plan.customer_type == CUSTOMER_TYPE_CUSTOMER
        assert payment_plan_service.plan_state(plan) == PLAN_STATE_SETTLED

    def test_installments_append_and_balance_only_falls(self, db_session, ctx, product):
        plan = _plan(ctx, product, balance=1000)
        for amount in (300, 200, 500):
            _pay(plan, amount)
        assert _balances(plan) == [1000, 700, 500, 0]

        latest = payment_plan_service.latest_payment(plan)
        assert latest.total_amount_cents == 1500
        assert latest.balance_paid_cents == 500
        assert latest.total_pay_cents == 500 + 1000
        assert plan.installment_count == 4

    def test_settled_plan_rejects_payment(self, db_session, ctx, product):
        plan = _plan(ctx, product, balance=0)
        with pytest.raises(NoOutstandingBalance):
            _pay(plan, 1)

    @pytest.mark.parametrize("amount", [0, -5, True])
    def test_non_positive_amount_rejected(self, db_session, ctx, product, amount):
        plan = _plan(ctx, product, balance=100)
        with pytest.raises(InvalidValue):
            _pay(plan, amount)
        assert _balances(plan) == [100]


class TestCorrectPrice:
    def test_correction_on_settled_plan(self, db_session, ctx, product):
        plan = _plan(ctx, product, balance=0)
        item_id = plan.transaction.items[0].id

        def _correct():
            item = db.session.get(TransactionItem, item_id)
            return payment_plan_service.correct_price(item, 1300)

        in_unit_of_work(_correct)
        db.session.expire_all()
        item = db.session.get(TransactionItem, item_id)
        assert item.total_price_cents == 1300
        # 1300 / 3 = 433.33 -> 433
        assert item.price_per_unit_cents == 433
        latest = payment_plan_service.latest_payment(plan)
        assert latest.total_amount_cents == 1500 + (1300 - 1500)
        assert latest.balance_owed_cents == 0

    def test_half_cent_rounds_up(self, db_session, ctx, product):
        txn = _sale(ctx, product, quantity=2, price=500)
        in_unit_of_work(
            payment_plan_service.open_plan,
            txn,
            customer_id=None,
            total_amount_cents=1000,
            balance_owed_cents=0,
        )
        item_id = txn.items[0].id

        def _correct():
            item = db.session.get(TransactionItem, item_id)
            return payment_plan_service.correct_price(item, 1001)

        in_unit_of_work(_correct)
        db.session.expire_all()
        item = db.session.get(TransactionItem, item_id)
        # 1001 / 2 = 500.5 -> 501
        assert item.price_per_unit_cents == 501
        assert item.total_price_cents == 1001

    def test_outstanding_balance_blocks_correction(self, db_session, ctx, product):
        plan = _plan(ctx, product, balance=100)
        item_id = plan.transaction.items[0].id

        def _correct():
            item = db.session.get(TransactionItem, item_id)
            return payment_plan_service.correct_price(item, 1300)

        with pytest.raises(OutstandingBalance):
            in_unit_of_work(_correct)
        db.session.expire_all()
        assert db.session.get(TransactionItem, item_id).total_price_cents == 1500


class TestDebtorClassification:
    def test_customer_flips_with_balance(self, db_session, ctx, product):
        customer_id = _customer(ctx).id
        plan = _plan(ctx, product, balance=200, customer_id=customer_id)
        assert in_unit_of_work(payment_plan_service.reclassify_customer, customer_id) == CUSTOMER_TYPE_DEBTOR
        assert [c.id for c in customer_service.list_debtors(company_id=ctx.company_id, tenant_id=ctx.tenant_id)] == [customer_id]

        _pay(plan, 200)
        assert in_unit_of_work(payment_plan_service.reclassify_customer, customer_id) == CUSTOMER_TYPE_CUSTOMER
        db.session.expire_all()
        assert db.session.get(Customer, customer_id).customer_type == CUSTOMER_TYPE_CUSTOMER

    def test_any_open_plan_keeps_debtor(self, db_session, ctx, product):
        customer_id = _customer(ctx).id
        _plan(ctx, product, balance=0, customer_id=customer_id)
        open_plan = _plan(ctx, product, balance=50, customer_id=customer_id)
        assert payment_plan_service.customer_has_outstanding_balance(customer_id) is True

        _pay(open_plan, 50)
        assert payment_plan_service.customer_has_outstanding_balance(customer_id) is False

    def test_classification_reads_same_latest_payment_as_balance(self, db_session, ctx, product):
        """Latest means newest created_at (then id), for the balance and for classification alike."""
        customer_id = _customer(ctx).id
        plan = _plan(ctx, product, balance=50, customer_id=customer_id)
        _pay(plan, 50)

        opening = (
            db.session.query(Payment)
            .filter_by(payment_plan_id=plan.id)
            .order_by(Payment.id.asc())
            .first()
        )
        opening.created_at = datetime(2099, 1, 1)
        db_session.commit()
        db.session.expire_all()

        assert payment_plan_service.current_balance(plan) == 50
        assert payment_plan_service.customer_has_outstanding_balance(customer_id) is True

    def test_reclassify_without_customer(self, db_session):
        assert payment_plan_service.reclassify_customer(None) is None
