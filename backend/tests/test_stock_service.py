# Overview: Pytest coverage for the stock ledger.

import pytest

from backoffice.errors import InsufficientStock, InvalidValue, MissingRequiredField, NotFound
from backoffice.extensions import db
from backoffice.models import Product, Supplier
from backoffice.services import stock_service, supplier_service
from backoffice.services.stock_service import ProductKey

from conftest import in_unit_of_work, make_product, quantity_of


def _key(ctx, sku="TV-1001"):
    return ProductKey(sku=sku, company_id=ctx.company_id, tenant_id=ctx.tenant_id)


class TestAdjust:
    def test_negative_delta_decrements(self, db_session, ctx, product):
        updated = in_unit_of_work(stock_service.adjust, _key(ctx), -3)
        assert updated.quantity == 7
        assert quantity_of("TV-1001", ctx) == 7

    def test_positive_delta_increments(self, db_session, ctx, product):
        in_unit_of_work(stock_service.adjust, _key(ctx), 5)
        assert quantity_of("TV-1001", ctx) == 15

    def test_delta_to_exactly_zero_is_allowed(self, db_session, ctx, product):
        in_unit_of_work(stock_service.adjust, _key(ctx), -10)
        assert quantity_of("TV-1001", ctx) == 0

    def test_insufficient_stock_leaves_quantity(self, db_session, ctx, product):
        with pytest.raises(InsufficientStock) as exc:
            in_unit_of_work(stock_service.adjust, _key(ctx), -11)
        assert exc.value.details["lines"] == [{"sku": "TV-1001", "available": 10, "requested": 11}]
        assert quantity_of("TV-1001", ctx) == 10

    def test_unknown_sku_is_not_found(self, db_session, ctx, product):
        with pytest.raises(NotFound):
            in_unit_of_work(stock_service.adjust, _key(ctx, "NOPE-1"), -1)

    def test_other_company_cannot_touch_product(self, db_session, ctx, other_ctx, product):
        with pytest.raises(NotFound):
            in_unit_of_work(stock_service.adjust, _key(other_ctx), -1)
        assert quantity_of("TV-1001", ctx) == 10

    def test_inactive_product_is_not_found(self, db_session, ctx, product):
        in_unit_of_work(stock_service.deactivate_product, _key(ctx))
        with pytest.raises(NotFound):
            in_unit_of_work(stock_service.adjust, _key(ctx), 1)

    def test_non_integer_delta_rejected(self, db_session, ctx, product):
        with pytest.raises(InvalidValue):
            in_unit_of_work(stock_service.adjust, _key(ctx), 1.5)

    def test_committed_deltas_sum(self, db_session, ctx, product):
        for delta in (-2, 4, -7, 1):
            in_unit_of_work(stock_service.adjust, _key(ctx), delta)
        assert quantity_of("TV-1001", ctx) == 10 - 2 + 4 - 7 + 1


class TestAdjustMany:
    def test_applies_every_line(self, db_session, ctx, product):
        make_product(db_session, ctx, sku="RAD-2001", quantity=4)
        products = in_unit_of_work(
            stock_service.adjust_many,
            [(_key(ctx), -3), (_key(ctx, "RAD-2001"), -4)],
        )
        assert [p.sku for p in products] == ["TV-1001", "RAD-2001"]
        assert quantity_of("TV-1001", ctx) == 7
        assert quantity_of("RAD-2001", ctx) == 0

    def test_repeated_key_is_netted(self, db_session, ctx, product):
        """Two lines of 6 for a 10-unit product fail together, not one by one."""
        with pytest.raises(InsufficientStock) as exc:
            in_unit_of_work(stock_service.adjust_many, [(_key(ctx), -6), (_key(ctx), -6)])
        assert exc.value.details["lines"] == [{"sku": "TV-1001", "available": 10, "requested": 12}]
        assert quantity_of("TV-1001", ctx) == 10

    def test_one_short_line_rejects_whole_batch(self, db_session, ctx, product):
        make_product(db_session, ctx, sku="RAD-2001", quantity=1)
        make_product(db_session, ctx, sku="CAM-3001", quantity=0)
        with pytest.raises(InsufficientStock) as exc:
            in_unit_of_work(
                stock_service.adjust_many,
                [(_key(ctx), -2), (_key(ctx, "RAD-2001"), -2), (_key(ctx, "CAM-3001"), -1)],
            )
        short = {line["sku"] for line in exc.value.details["lines"]}
        assert short == {"RAD-2001", "CAM-3001"}
        assert quantity_of("TV-1001", ctx) == 10
        assert quantity_of("RAD-2001", ctx) == 1

    def test_missing_product_rejects_batch(self, db_session, ctx, product):
        with pytest.raises(NotFound) as exc:
            in_unit_of_work(stock_service.adjust_many, [(_key(ctx), -1), (_key(ctx, "GONE-1"), -1)])
        assert exc.value.details["skus"] == ["GONE-1"]
        assert quantity_of("TV-1001", ctx) == 10

    def test_empty_batch_rejected(self, db_session, ctx):
        with pytest.raises(InvalidValue):
            in_unit_of_work(stock_service.adjust_many, [])


class TestInboundSupply:
    def test_create_product_sets_absolute_quantity(self, db_session, ctx):
        product = in_unit_of_work(
            stock_service.create_product,
            tenant_id=ctx.tenant_id,
            company_id=ctx.company_id,
            sku="LAP-0001",
            name="Laptop",
            quantity=3,
        )
        assert product.quantity == 3
        assert quantity_of("LAP-0001", ctx) == 3

    def test_generated_sku_uses_type_prefix(self, db_session, ctx):
        product = in_unit_of_work(
            stock_service.create_product,
            tenant_id=ctx.tenant_id,
            company_id=ctx.company_id,
            name="Phone",
            product_type="phone",
            quantity=1,
        )
        prefix, digits = product.sku.split("-")
        assert prefix == "PHO"
        assert len(digits) == 4 and digits.isdigit()

    def test_duplicate_sku_rejected(self, db_session, ctx, product):
        with pytest.raises(InvalidValue):
            in_unit_of_work(
                stock_service.create_product,
                tenant_id=ctx.tenant_id,
                company_id=ctx.company_id,
                sku="TV-1001",
                name="Another TV",
                quantity=1,
            )

    def test_same_sku_allowed_in_other_company(self, db_session, ctx, other_ctx, product):
        other = in_unit_of_work(
            stock_service.create_product,
            tenant_id=other_ctx.tenant_id,
            company_id=other_ctx.company_id,
            sku="TV-1001",
            name="TV",
            quantity=2,
        )
        assert other.id != product.id

    def test_negative_starting_quantity_rejected(self, db_session, ctx):
        with pytest.raises(InvalidValue):
            in_unit_of_work(
                stock_service.create_product,
                tenant_id=ctx.tenant_id,
                company_id=ctx.company_id,
                sku="BAD-1",
                name="Bad",
                quantity=-1,
            )

    def test_generate_sku_requires_type(self, db_session, ctx):
        with pytest.raises(MissingRequiredField):
            stock_service.generate_sku("  ", company_id=ctx.company_id, tenant_id=ctx.tenant_id)

    def test_restock_requires_positive_quantity(self, db_session, ctx, product):
        with pytest.raises(InvalidValue):
            in_unit_of_work(stock_service.restock, _key(ctx), 0)

    def test_deactivate_keeps_row(self, db_session, ctx, product):
        in_unit_of_work(stock_service.deactivate_product, _key(ctx))
        db.session.expire_all()
        row = db.session.get(Product, product.id)
        assert row is not None
        assert row.is_active is False
        assert stock_service.find_product(_key(ctx)) is None
        assert stock_service.get_product(_key(ctx), include_inactive=True).id == product.id


class TestSupplierReference:
    def test_deleting_supplier_keeps_products(self, db_session, ctx):
        supplier = in_unit_of_work(
            supplier_service.get_or_create_supplier,
            name="Gadget Wholesale",
            phone="555-0100",
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
        )
        supplier_id = supplier.id
        product_id = make_product(db_session, ctx, sku="RAD-2001", quantity=2, supplier_id=supplier_id).id

        in_unit_of_work(
            supplier_service.delete_supplier,
            supplier_id=supplier_id,
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
        )
        db.session.expire_all()
        assert db.session.get(Supplier, supplier_id) is None
        row = db.session.get(Product, product_id)
        assert row is not None
        assert row.supplier_id is None

    def test_get_or_create_reuses_name_and_contact(self, db_session, ctx):
        first = in_unit_of_work(
            supplier_service.get_or_create_supplier,
            name="Gadget Wholesale",
            phone="555-0100",
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
        )
        second = in_unit_of_work(
            supplier_service.get_or_create_supplier,
            name="Gadget Wholesale",
            phone="555-0100",
            company_id=ctx.company_id,
            tenant_id=ctx.tenant_id,
        )
        assert first.id == second.id
