from .base import AuditMixin
from .catalog import Category, Supplier, Product, SupplierTransaction
from .organization import Store, Department, Employee
from .customers import Customer
from .sales import Sale, SaleDetail
from .expenses import Expense
from .service_tickets import TechnicalService
from .documents import DocumentSequence

__all__ = [
    'AuditMixin',
    'Category', 'Supplier', 'Product', 'SupplierTransaction',
    'Store', 'Department', 'Employee',
    'Customer',
    'Sale', 'SaleDetail',
    'Expense',
    'TechnicalService',
    'DocumentSequence',
]
