from __future__ import annotations

import enum


class StockStatus(str, enum.Enum):
    SUFFICIENT = "SUFFICIENT"
    CRITICAL = "CRITICAL"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class SaleStatus(str, enum.Enum):
    PENDING = "PENDING"
    PREPARING = "PREPARING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentType(str, enum.Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"


class Currency(str, enum.Enum):
    TRY = "TRY"
    USD = "USD"
    EUR = "EUR"


class ExpenseType(str, enum.Enum):
    EMPLOYEE_PAYMENT = "EMPLOYEE_PAYMENT"
    TECHNICAL_INFRASTRUCTURE = "TECHNICAL_INFRASTRUCTURE"
    BILL = "BILL"
    OTHER = "OTHER"


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    UNSPECIFIED = "UNSPECIFIED"


class EmployeeRole(str, enum.Enum):
    BRANCH_MANAGER = "BRANCH_MANAGER"
    CASHIER = "CASHIER"
    WAREHOUSE = "WAREHOUSE"
    ACCOUNTING = "ACCOUNTING"
    TECHNICAL_SERVICE = "TECHNICAL_SERVICE"


class TicketStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    UNRESOLVABLE = "UNRESOLVABLE"


CLOSED_TICKET_STATUSES = {TicketStatus.RESOLVED.value, TicketStatus.UNRESOLVABLE.value}


def parse_enum(enum_cls, value, field: str):
    """Coerce a raw string into an enum member, raising ValidationError on mismatch."""
    from ..errors import ValidationError

    if isinstance(value, enum_cls):
        return value
    if value is None:
        raise ValidationError(f"{field} is required")
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}")
