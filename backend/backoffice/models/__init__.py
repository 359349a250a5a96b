from .tenancy import Tenant, Company
from .inventory import Product, Supplier
from .customers import Customer
from .transactions import Transaction, TransactionItem
from .payments import PaymentPlan, Payment, BankAccount
from .invoices import Invoice, InvoiceSequence
from .ledger import LedgerEvent

__all__ = [
    'Tenant', 'Company',
    'Product', 'Supplier',
    'Customer',
    'Transaction', 'TransactionItem',
    'PaymentPlan', 'Payment', 'BankAccount',
    'Invoice', 'InvoiceSequence',
    'LedgerEvent',
]
