# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that one company can neither read nor change another
company's products, transactions, invoices or customers.

These tests create two tenants with one company each and verify that:
1. A company id is only accepted together with its own tenant
2. Lookups by SKU, transaction id, item id and invoice number are scoped
3. Cross-tenant requests return NotFound (existence is not revealed)
4. Invoice numbering is independent per company
"""

import pytest

from backoffice.errors import NotFound, TenantScopeError
from backoffice.extensions import db
from backoffice.models import Company
from backoffice.services import customer_service, invoice_service, sales_service
from backoffice.services.sales_service import CustomerInput, PaymentInput
from backoffice.services.tenant_service import get_company, resolve_company_context

from conftest import context_headers, make_product, quantity_of


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_resolve_valid_context(self, db_session, ctx):
        resolved = resolve_company_context(tenant_id=ctx.tenant_id, company_id=ctx.company_id, user_id=3)
        assert resolved.company_id == ctx.company_id
        assert resolved.user_id == 3
        assert get_company(resolved).name == "Acme Retail Store"

    def test_resolve_cross_tenant(self, db_session, ctx, other_ctx):
        """Company from a different tenant raises TenantScopeError."""
        with pytest.raises(TenantScopeError):
            resolve_company_context(tenant_id=ctx.tenant_id, company_id=other_ctx.company_id)

    def test_resolve_nonexistent(self, db_session, ctx):
        with pytest.raises(TenantScopeError):
            resolve_company_context(tenant_id=ctx.tenant_id, company_id=99999)

    def test_resolve_inactive_company(self, db_session, ctx):
        company = db.session.get(Company, ctx.company_id)
        company.is_active = False
        db_session.commit()
        with pytest.raises(TenantScopeError):
            resolve_company_context(tenant_id=ctx.tenant_id, company_id=ctx.company_id)


class TestScopedOperations:
    def test_same_sku_in_two_tenants(self, db_session, ctx, other_ctx, product):
        make_product(db_session, other_ctx, sku="TV-1001", quantity=3)

        sales_service.sell(other_ctx, sku="TV-1001", quantity=3, price_per_unit_cents=500, payment=PaymentInput())

        assert quantity_of("TV-1001", ctx) == 10
        assert quantity_of("TV-1001", other_ctx) == 0

    def test_sell_foreign_sku_not_found(self, db_session, ctx, other_ctx, product):
        with pytest.raises(NotFound):
            sales_service.sell(other_ctx, sku="TV-1001", quantity=1, price_per_unit_cents=500, payment=PaymentInput())
        assert quantity_of("TV-1001", ctx) == 10

    def test_invoice_lookup_scoped(self, db_session, ctx, other_ctx, product):
        invoice_no = sales_service.sell(
            ctx, sku="TV-1001", quantity=1, price_per_unit_cents=500, payment=PaymentInput(balance_owed_cents=100)
        ).invoice.invoice_no

        with pytest.raises(NotFound):
            invoice_service.get_invoice(other_ctx, invoice_no)
        with pytest.raises(NotFound):
            sales_service.record_invoice_payment(other_ctx, invoice_no=invoice_no, amount_cents=100)
        assert invoice_service.list_invoices(other_ctx) == []

    def test_price_correction_scoped(self, db_session, ctx, other_ctx, product):
        txn = sales_service.sell(ctx, sku="TV-1001", quantity=1, price_per_unit_cents=500, payment=PaymentInput()).transaction
        with pytest.raises(NotFound):
            sales_service.correct_price(other_ctx, item_id=txn.items[0].id, new_total_price_cents=1)

    def test_customers_scoped(self, db_session, ctx, other_ctx, product):
        make_product(db_session, other_ctx, sku="TV-1001", quantity=3)
        jane = CustomerInput(name="Jane Doe", phone="555-0101")
        sales_service.sell(ctx, sku="TV-1001", quantity=1, price_per_unit_cents=500, payment=PaymentInput(), customer=jane)
        sales_service.sell(
            other_ctx,
            sku="TV-1001",
            quantity=1,
            price_per_unit_cents=500,
            payment=PaymentInput(balance_owed_cents=500),
            customer=jane,
        )

        assert customer_service.list_debtors(company_id=ctx.company_id, tenant_id=ctx.tenant_id) == []
        debtors = customer_service.list_debtors(company_id=other_ctx.company_id, tenant_id=other_ctx.tenant_id)
        assert [c.name for c in debtors] == ["Jane Doe"]

    def test_invoice_numbers_per_company(self, db_session, ctx, other_ctx, product):
        make_product(db_session, other_ctx, sku="TV-1001", quantity=3)
        ours = sales_service.sell(ctx, sku="TV-1001", quantity=1, price_per_unit_cents=500, payment=PaymentInput())
        theirs = sales_service.sell(other_ctx, sku="TV-1001", quantity=1, price_per_unit_cents=500, payment=PaymentInput())
        assert ours.invoice.invoice_no.startswith("ARS")
        assert theirs.invoice.invoice_no.startswith("BT")
        assert ours.invoice.invoice_no[-4:] == theirs.invoice.invoice_no[-4:] == "0000"


class TestScopedRoutes:
    def test_cross_tenant_transaction_read(self, client, db_session, ctx, other_ctx, product):
        sold = client.post('/api/transactions/sell/TV-1001', headers=context_headers(ctx), json={
            'quantity': 1,
            'price_per_unit_cents': 500,
        }).json
        txn_id = sold['transaction']['id']
        item_id = sold['transaction']['items'][0]['id']

        assert client.get(f'/api/transactions/{txn_id}', headers=context_headers(other_ctx)).status_code == 404
        assert client.get(f'/api/transactions/items/{item_id}', headers=context_headers(other_ctx)).status_code == 404
        response = client.patch(
            f'/api/transactions/items/{item_id}/balance',
            headers=context_headers(other_ctx),
            json={'amount_cents': 1},
        )
        assert response.status_code == 404

    def test_cross_tenant_product_read(self, client, db_session, ctx, other_ctx, product):
        response = client.get('/api/products/TV-1001', headers=context_headers(other_ctx))
        assert response.status_code == 404
