# Overview: Thread-based concurrency tests against a file-backed SQLite database.

"""
Concurrency Tests

Each worker thread pushes its own application context, so it runs on its
own session and connection and really contends for the database write
lock. Verifies:
1. Concurrent sales never oversell and never lose an update
2. Concurrent invoice allocations are distinct and gap-free
3. Concurrent installments never drive a balance below zero
"""

import threading

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from backoffice.errors import BackOfficeError, InsufficientStock, NoOutstandingBalance, Overpayment
from backoffice.extensions import db
from backoffice.models import Invoice, Payment, PaymentPlan, Product, Transaction
from backoffice.services import invoice_service, sales_service
from backoffice.services.concurrency import run_in_unit_of_work, unit_of_work
from backoffice.services.sales_service import PaymentInput


def _run_threads(app, count, work):
    """Start `count` threads running work(index) inside their own app context; collect outcomes."""
    results = [None] * count
    barrier = threading.Barrier(count)

    def _worker(index):
        with app.app_context():
            barrier.wait()
            try:
                results[index] = ("ok", work(index))
            except BackOfficeError as e:
                results[index] = ("error", e)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


class TestConcurrentStock:
    def test_no_oversell(self, file_app, file_ctx):
        """12 buyers of 5 units each compete for 50 units: exactly 10 win."""
        def _buy(index):
            result = sales_service.sell(
                file_ctx, sku="TV-1001", quantity=5, price_per_unit_cents=500, payment=PaymentInput()
            )
            return result.transaction.id

        results = _run_threads(file_app, 12, _buy)
        won = [value for status, value in results if status == "ok"]
        lost = [value for status, value in results if status == "error"]

        assert len(won) == 10
        assert len(lost) == 2
        assert all(isinstance(e, InsufficientStock) for e in lost)

        with file_app.app_context():
            product = db.session.query(Product).filter_by(sku="TV-1001").one()
            assert product.quantity == 0
            assert db.session.query(Transaction).count() == 10
            assert db.session.query(Invoice).count() == 10

    def test_concurrent_deltas_all_land(self, file_app, file_ctx):
        def _restock(index):
            return sales_service.restock_product(file_ctx, sku="TV-1001", quantity=index + 1).id

        results = _run_threads(file_app, 8, _restock)
        assert all(status == "ok" for status, _ in results)

        with file_app.app_context():
            product = db.session.query(Product).filter_by(sku="TV-1001").one()
            assert product.quantity == 50 + sum(range(1, 9))


class TestConcurrentInvoiceNumbers:
    def test_numbers_distinct_and_gap_free(self, file_app, file_ctx):
        def _allocate(index):
            return run_in_unit_of_work(
                lambda: invoice_service.next_invoice_number(
                    company_id=file_ctx.company_id, tenant_id=file_ctx.tenant_id
                )
            )

        results = _run_threads(file_app, 10, _allocate)
        numbers = [value for status, value in results if status == "ok"]
        assert len(numbers) == 10
        assert len(set(numbers)) == 10
        assert sorted(int(n[-4:]) for n in numbers) == list(range(10))

    def test_concurrent_sales_get_sequential_invoices(self, file_app, file_ctx):
        def _sell(index):
            result = sales_service.sell(
                file_ctx, sku="TV-1001", quantity=1, price_per_unit_cents=500, payment=PaymentInput()
            )
            return result.transaction.id

        _run_threads(file_app, 8, _sell)

        with file_app.app_context():
            invoices = db.session.query(Invoice).order_by(Invoice.id.asc()).all()
            # Allocation order is commit order, so ids and numbers agree.
            assert [int(i.invoice_no[-4:]) for i in invoices] == list(range(8))


class TestConcurrentInstallments:
    @pytest.mark.parametrize("amount, expected_wins", [(100, 3), (40, 7)])
    def test_balance_never_negative(self, file_app, file_ctx, amount, expected_wins):
        with file_app.app_context():
            sale = sales_service.sell(
                file_ctx,
                sku="TV-1001",
                quantity=1,
                price_per_unit_cents=500,
                payment=PaymentInput(balance_owed_cents=300),
            )
            transaction_id = sale.transaction.id

        def _pay(index):
            return sales_service.record_payment(file_ctx, transaction_id=transaction_id, amount_cents=amount).balance_owed_cents

        results = _run_threads(file_app, 8, _pay)
        wins = [value for status, value in results if status == "ok"]
        losses = [value for status, value in results if status == "error"]

        assert len(wins) == expected_wins
        assert all(isinstance(e, (Overpayment, NoOutstandingBalance)) for e in losses)

        with file_app.app_context():
            plan = db.session.query(PaymentPlan).filter_by(transaction_id=transaction_id).one()
            balances = [
                p.balance_owed_cents
                for p in db.session.query(Payment)
                .filter_by(payment_plan_id=plan.id)
                .order_by(Payment.created_at.asc(), Payment.id.asc())
            ]
            assert balances == sorted(balances, reverse=True)
            assert balances[-1] == 300 - amount * expected_wins
            assert all(b >= 0 for b in balances)
            assert plan.installment_count == expected_wins + 1


class TestWriteLockWait:
    def test_busy_timeout_follows_budget(self, file_app, file_ctx):
        file_app.config["UNIT_OF_WORK_TIMEOUT_SECONDS"] = 2.5
        with file_app.app_context():
            with unit_of_work() as session:
                assert session.execute(text("PRAGMA busy_timeout")).scalar() == 2500

    def test_blocked_writer_gives_up(self, file_app, file_ctx):
        """A writer waiting on a held lock fails after the budget instead of hanging."""
        file_app.config["UNIT_OF_WORK_TIMEOUT_SECONDS"] = 0.2
        file_app.config["RETRY_ATTEMPTS"] = 1
        with file_app.app_context():
            holder = db.engine.connect()
            holder.exec_driver_sql("BEGIN IMMEDIATE")
            try:
                with pytest.raises(OperationalError):
                    run_in_unit_of_work(
                        lambda: invoice_service.next_invoice_number(
                            company_id=file_ctx.company_id, tenant_id=file_ctx.tenant_id
                        )
                    )
            finally:
                holder.rollback()
                holder.close()
            db.session.remove()
