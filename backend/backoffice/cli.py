# Overview: Flask CLI command groups for bootstrap, tenancy setup and maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenancy:
# - python -m flask tenants create --name "Acme Holdings"
# - python -m flask companies create --tenant-id 1 --name "Acme Retail Store" [--email billing@acme.test]
#
# Invoices:
# - python -m flask invoices mark-overdue
#   Flip DRAFT invoices past their payment date to OVERDUE (run daily from cron).
#
# Customers:
# - python -m flask customers debtors --tenant-id 1 --company-id 1
#   List customers with an outstanding balance.

import click
from flask.cli import with_appcontext

from .errors import BackOfficeError
from .extensions import db
from .services import customer_service, invoice_service, tenant_service
from .services.concurrency import run_in_unit_of_work


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (idempotent)."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    click.echo("PASS Database ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('tenants')
def tenants_group():
    """Tenant management."""


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@with_appcontext
def create_tenant(name):
    tenant = run_in_unit_of_work(lambda: tenant_service.create_tenant(name))
    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id})")


@click.group('companies')
def companies_group():
    """Company management within a tenant."""


@companies_group.command('create')
@click.option('--tenant-id', required=True, type=int, help='Owning tenant ID')
@click.option('--name', required=True, help='Company name (its initials prefix invoice numbers)')
@click.option('--email', default=None, help='Company contact email')
@with_appcontext
def create_company(tenant_id, name, email):
    try:
        company = run_in_unit_of_work(
            lambda: tenant_service.create_company(tenant_id=tenant_id, name=name, email=email)
        )
    except BackOfficeError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created company: {company.name} (ID: {company.id}, Tenant: {company.tenant_id})")


@click.group('invoices')
def invoices_group():
    """Invoice maintenance."""


@invoices_group.command('mark-overdue')
@with_appcontext
def mark_overdue():
    """Flip DRAFT invoices past their payment date to OVERDUE."""
    count = run_in_unit_of_work(invoice_service.mark_overdue)
    click.echo(f"PASS Marked {count} invoice(s) overdue")


@click.group('customers')
def customers_group():
    """Customer inspection."""


@customers_group.command('debtors')
@click.option('--tenant-id', required=True, type=int)
@click.option('--company-id', required=True, type=int)
@with_appcontext
def list_debtors(tenant_id, company_id):
    debtors = customer_service.list_debtors(company_id=company_id, tenant_id=tenant_id)
    if not debtors:
        click.echo("No debtors")
        return
    for customer in debtors:
        click.echo(f"{customer.id}\t{customer.name}\t{customer.phone}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(invoices_group)
    app.cli.add_command(customers_group)
