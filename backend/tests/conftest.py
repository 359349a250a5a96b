"""
Pytest fixtures for backoffice tests.

Provides an in-memory application, per-test table wipe, tenant/company/product
fixtures, request headers and a file-backed application for thread tests.
"""

import os
import tempfile

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Company, Product, Tenant
from backoffice.services.concurrency import run_in_unit_of_work
from backoffice.services.tenant_service import CompanyContext


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_BACKOFF_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant(db_session):
    tenant = Tenant(name="Acme Holdings")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def company(db_session, tenant):
    """Company whose initials (ARS) prefix invoice numbers."""
    company = Company(tenant_id=tenant.id, name="Acme Retail Store", email="billing@acme.test", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def ctx(company):
    return CompanyContext(tenant_id=company.tenant_id, company_id=company.id, user_id=7, email="clerk@acme.test")


@pytest.fixture(scope='function')
def other_ctx(db_session):
    """A second tenant with its own company."""
    tenant = Tenant(name="Beta Holdings")
    db_session.add(tenant)
    db_session.commit()
    company = Company(tenant_id=tenant.id, name="Beta Trading", is_active=True)
    db_session.add(company)
    db_session.commit()
    return CompanyContext(tenant_id=tenant.id, company_id=company.id, user_id=9)


@pytest.fixture(scope='function')
def twin_ctx(db_session, tenant):
    """A second company in the same tenant sharing the ARS initials."""
    company = Company(tenant_id=tenant.id, name="Apex Retail Shop", is_active=True)
    db_session.add(company)
    db_session.commit()
    return CompanyContext(tenant_id=tenant.id, company_id=company.id, user_id=8)


def make_product(db_session, ctx, sku="TV-1001", quantity=10, selling_price_cents=500, **fields):
    product = Product(
        tenant_id=ctx.tenant_id,
        company_id=ctx.company_id,
        sku=sku,
        name=fields.pop("name", "Television"),
        brand=fields.pop("brand", "Sony"),
        product_type=fields.pop("product_type", "TV"),
        quantity=quantity,
        selling_price_cents=selling_price_cents,
        is_active=True,
        **fields,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session, ctx):
    """TV-1001 with 10 units at 500 cents."""
    return make_product(db_session, ctx)


def quantity_of(sku, ctx):
    db.session.expire_all()
    product = db.session.query(Product).filter_by(sku=sku, company_id=ctx.company_id, tenant_id=ctx.tenant_id).one()
    return product.quantity


def in_unit_of_work(func, *args, **kwargs):
    """Run a service call the way the orchestrator does."""
    return run_in_unit_of_work(lambda: func(*args, **kwargs))


def context_headers(ctx) -> dict:
    headers = {
        'X-Tenant-Id': str(ctx.tenant_id),
        'X-Company-Id': str(ctx.company_id),
    }
    if ctx.user_id is not None:
        headers['X-User-Id'] = str(ctx.user_id)
    if ctx.email:
        headers['X-User-Email'] = ctx.email
    return headers


@pytest.fixture(scope='function')
def file_app():
    """
    Application on a temporary SQLite file.

    Each worker thread pushes its own app context and therefore gets its own
    session and connection, so writers really contend for the database lock.
    """
    fd, path = tempfile.mkstemp(suffix='.sqlite3')
    os.close(fd)
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{path}',
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
        'RETRY_ATTEMPTS': 5,
        'RETRY_BACKOFF_SECONDS': 0.01,
        'UNIT_OF_WORK_TIMEOUT_SECONDS': 30,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()
        db.engine.dispose()
    os.remove(path)


@pytest.fixture(scope='function')
def file_ctx(file_app):
    """Tenant, company and a 50-unit product committed in the file-backed app."""
    with file_app.app_context():
        tenant = Tenant(name="Acme Holdings")
        db.session.add(tenant)
        db.session.commit()
        company = Company(tenant_id=tenant.id, name="Acme Retail Store", is_active=True)
        db.session.add(company)
        db.session.commit()
        ctx = CompanyContext(tenant_id=tenant.id, company_id=company.id, user_id=1)
        make_product(db.session, ctx, sku="TV-1001", quantity=50)
        return ctx
