# Overview: Pytest coverage for the transaction recorder and its kind shape rules.

import pytest

from backoffice.errors import InvalidTransactionShape, InvalidValue, NotFound
from backoffice.extensions import db
from backoffice.models import Transaction, TransactionItem
from backoffice.models.transactions import DIRECTION_CREDIT, DIRECTION_DEBIT
from backoffice.services import transaction_service
from backoffice.services.transaction_service import SOLD_KINDS, ItemSpec, TransactionKind

from conftest import in_unit_of_work, make_product, quantity_of


def _debit(product_id, quantity=1, price=100):
    return ItemSpec(product_id, quantity, price, DIRECTION_DEBIT)


def _credit(product_id, quantity=1, price=100):
    return ItemSpec(product_id, quantity, price, DIRECTION_CREDIT)


def _record(ctx, kind, items):
    return in_unit_of_work(
        transaction_service.record,
        kind,
        company_id=ctx.company_id,
        tenant_id=ctx.tenant_id,
        created_by_user_id=ctx.user_id,
        customer_id=None,
        items=items,
    )


class TestKindShapes:
    @pytest.mark.parametrize(
        "kind, directions",
        [
            (TransactionKind.SALE, [DIRECTION_DEBIT]),
            (TransactionKind.BUYBACK, [DIRECTION_CREDIT]),
            (TransactionKind.BULK_SALE, [DIRECTION_DEBIT]),
            (TransactionKind.BULK_SALE, [DIRECTION_DEBIT, DIRECTION_DEBIT, DIRECTION_DEBIT]),
            (TransactionKind.SWAP, [DIRECTION_DEBIT, DIRECTION_CREDIT]),
            (TransactionKind.SWAP, [DIRECTION_DEBIT, DIRECTION_CREDIT, DIRECTION_CREDIT]),
        ],
    )
    def test_valid_shapes(self, kind, directions):
        kind.validate_shape([ItemSpec(1, 1, 100, d) for d in directions])

    @pytest.mark.parametrize(
        "kind, directions",
        [
            (TransactionKind.SALE, []),
            (TransactionKind.SALE, [DIRECTION_DEBIT, DIRECTION_DEBIT]),
            (TransactionKind.SALE, [DIRECTION_CREDIT]),
            (TransactionKind.BUYBACK, [DIRECTION_DEBIT]),
            (TransactionKind.BUYBACK, [DIRECTION_CREDIT, DIRECTION_CREDIT]),
            (TransactionKind.BULK_SALE, []),
            (TransactionKind.BULK_SALE, [DIRECTION_DEBIT, DIRECTION_CREDIT]),
            (TransactionKind.SWAP, [DIRECTION_DEBIT]),
            (TransactionKind.SWAP, [DIRECTION_CREDIT, DIRECTION_CREDIT]),
            (TransactionKind.SWAP, [DIRECTION_DEBIT, DIRECTION_DEBIT, DIRECTION_CREDIT]),
            (TransactionKind.SALE, ["SIDEWAYS"]),
        ],
    )
    def test_invalid_shapes(self, kind, directions):
        with pytest.raises(InvalidTransactionShape):
            kind.validate_shape([ItemSpec(1, 1, 100, d) for d in directions])

    def test_parse(self):
        assert TransactionKind.parse("sale") is TransactionKind.SALE
        assert TransactionKind.parse(TransactionKind.SWAP) is TransactionKind.SWAP
        with pytest.raises(InvalidValue):
            TransactionKind.parse("REFUND")


class TestRecord:
    def test_items_keep_submission_order(self, db_session, ctx, product):
        radio = make_product(db_session, ctx, sku="RAD-2001", quantity=5)
        txn = _record(ctx, TransactionKind.BULK_SALE, [_debit(radio.id, 2, 250), _debit(product.id, 1, 500)])

        db.session.expire_all()
        stored = db.session.get(Transaction, txn.id)
        assert stored.type == "BULK_SALE"
        assert [(i.product_id, i.position) for i in stored.items] == [(radio.id, 0), (product.id, 1)]
        assert [i.total_price_cents for i in stored.items] == [500, 500]

    def test_record_never_touches_stock(self, db_session, ctx, product):
        _record(ctx, TransactionKind.SALE, [_debit(product.id, 4, 500)])
        assert quantity_of("TV-1001", ctx) == 10

    def test_invalid_shape_writes_nothing(self, db_session, ctx, product):
        with pytest.raises(InvalidTransactionShape):
            _record(ctx, TransactionKind.SALE, [_credit(product.id)])
        assert db.session.query(Transaction).count() == 0
        assert db.session.query(TransactionItem).count() == 0

    @pytest.mark.parametrize("quantity, price", [(0, 100), (-1, 100), (1, -1)])
    def test_bad_quantity_or_price_rejected(self, db_session, ctx, product, quantity, price):
        with pytest.raises(InvalidValue):
            _record(ctx, TransactionKind.SALE, [_debit(product.id, quantity, price)])
        assert db.session.query(Transaction).count() == 0

    def test_kind_given_as_string(self, db_session, ctx, product):
        txn = _record(ctx, "buyback", [_credit(product.id)])
        assert txn.type == "BUYBACK"


class TestReads:
    def test_get_transaction_filters_by_kind(self, db_session, ctx, product):
        txn = _record(ctx, TransactionKind.SALE, [_debit(product.id)])
        assert transaction_service.get_transaction(ctx, txn.id, SOLD_KINDS).id == txn.id
        with pytest.raises(NotFound):
            transaction_service.get_transaction(ctx, txn.id, [TransactionKind.SWAP])

    def test_other_company_cannot_read(self, db_session, ctx, other_ctx, product):
        txn = _record(ctx, TransactionKind.SALE, [_debit(product.id)])
        with pytest.raises(NotFound):
            transaction_service.get_transaction(other_ctx, txn.id)
        with pytest.raises(NotFound):
            transaction_service.get_item(other_ctx, txn.items[0].id)
        assert transaction_service.list_transactions(other_ctx) == []

    def test_list_by_kind(self, db_session, ctx, product):
        sale = _record(ctx, TransactionKind.SALE, [_debit(product.id)])
        bulk = _record(ctx, TransactionKind.BULK_SALE, [_debit(product.id)])
        _record(ctx, TransactionKind.BUYBACK, [_credit(product.id)])

        sold = transaction_service.list_transactions(ctx, SOLD_KINDS)
        assert {t.id for t in sold} == {sale.id, bulk.id}
        assert len(transaction_service.list_transactions(ctx)) == 3
        assert len(transaction_service.list_transactions(ctx, limit=1)) == 1

    def test_get_item(self, db_session, ctx, product):
        txn = _record(ctx, TransactionKind.SALE, [_debit(product.id, 2, 300)])
        item = transaction_service.get_item(ctx, txn.items[0].id)
        assert item.transaction_id == txn.id
        assert item.total_price_cents == 600
