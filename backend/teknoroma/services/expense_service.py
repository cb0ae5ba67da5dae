# backend/teknoroma/services/expense_service.py
"""
Expense tracking.

Foreign-currency expenses are converted once, at creation: the rate is the
one supplied by the caller or today's TCMB rate, and
amount_in_try_cents = round_half_up(amount_cents * rate). TRY expenses keep
exchange_rate NULL. Changing amount, currency or rate on update recomputes
the TRY amount with the same rule.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Employee, Expense, Store
from ..models.enums import Currency, ExpenseType, parse_enum
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    coerce_decimal,
    require_date_range,
    validate_payload,
)
from . import document_service
from .concurrency import run_with_retry
from .exchange_rate_service import exchange_rates

logger = logging.getLogger(__name__)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "expense_date", "expense_type", "store_id", "employee_id", "amount_cents",
        "currency", "exchange_rate", "description", "document_number", "is_paid", "payment_date",
    },
    required_on_create={"expense_type", "store_id", "amount_cents"},
)

RATE_PLACES = Decimal("0.0001")


def amount_in_try(amount_cents: int, exchange_rate: Decimal | None) -> int:
    if exchange_rate is None:
        return amount_cents
    value = Decimal(amount_cents) * exchange_rate
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _resolve_rate(currency: Currency, supplied) -> Decimal | None:
    if currency == Currency.TRY:
        return None
    if supplied is not None:
        rate = coerce_decimal("exchange_rate", supplied)
        if rate <= 0:
            raise ValidationError("exchange_rate must be > 0")
        return rate.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)
    return exchange_rates.get_current_rate(currency.value)


def _validate_rules(expense_type: ExpenseType, employee_id, amount_cents: int) -> None:
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("amount_cents must be > 0")
    if expense_type == ExpenseType.EMPLOYEE_PAYMENT and not employee_id:
        raise ValidationError("employee_id is required for EMPLOYEE_PAYMENT expenses")


def _ensure_references(store_id, employee_id) -> None:
    if Store.visible().filter(Store.id == store_id).first() is None:
        raise NotFoundError("Store not found", details={"store_id": store_id})
    if employee_id is not None:
        if Employee.visible().filter(Employee.id == employee_id).first() is None:
            raise NotFoundError("Employee not found", details={"employee_id": employee_id})


def get_expense(expense_id: int, *, include_deleted: bool = False) -> Expense:
    expense = Expense.visible(include_deleted).filter(Expense.id == expense_id).first()
    if expense is None:
        raise NotFoundError("Expense not found", details={"expense_id": expense_id})
    return expense


def list_expenses(
    *,
    store_id: int | None = None,
    expense_type=None,
    start=None,
    end=None,
    is_paid: bool | None = None,
    include_deleted: bool = False,
) -> list[Expense]:
    start, end = require_date_range(start, end)
    query = Expense.visible(include_deleted)
    if store_id is not None:
        query = query.filter(Expense.store_id == store_id)
    if expense_type:
        query = query.filter(Expense.expense_type == parse_enum(ExpenseType, expense_type, "expense_type").value)
    if start is not None:
        query = query.filter(Expense.expense_date >= start)
    if end is not None:
        query = query.filter(Expense.expense_date < end)
    if is_paid is not None:
        query = query.filter(Expense.is_paid.is_(is_paid))
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()


def create_expense(payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    expense_type = parse_enum(ExpenseType, patch["expense_type"], "expense_type")
    currency = parse_enum(Currency, patch.get("currency") or Currency.TRY.value, "currency")
    _validate_rules(expense_type, patch.get("employee_id"), patch["amount_cents"])
    expense_date = patch.get("expense_date") or utcnow()

    def _op():
        _ensure_references(patch["store_id"], patch.get("employee_id"))
        rate = _resolve_rate(currency, patch.get("exchange_rate"))

        document_type, prefix = document_service.EXPENSE
        expense = Expense(
            expense_number=document_service.next_document_number(
                document_type=document_type, prefix=prefix, year=expense_date.year,
            ),
            expense_date=expense_date,
            expense_type=expense_type.value,
            store_id=patch["store_id"],
            employee_id=patch.get("employee_id"),
            amount_cents=patch["amount_cents"],
            currency=currency.value,
            exchange_rate=rate,
            amount_in_try_cents=amount_in_try(patch["amount_cents"], rate),
            description=patch.get("description"),
            document_number=patch.get("document_number"),
            is_paid=bool(patch.get("is_paid", False)),
            payment_date=patch.get("payment_date"),
        )
        if expense.is_paid and expense.payment_date is None:
            expense.payment_date = utcnow()
        db.session.add(expense)
        db.session.commit()
        return expense

    expense = run_with_retry(_op)
    logger.info(
        "Expense %s created: %s %s (%s TRY cents)",
        expense.expense_number, expense.amount_cents, expense.currency, expense.amount_in_try_cents,
    )
    return expense


def update_expense(expense_id: int, payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)

    def _op():
        expense = get_expense(expense_id)
        expense_type = parse_enum(ExpenseType, patch.get("expense_type", expense.expense_type), "expense_type")
        currency = parse_enum(Currency, patch.get("currency") or expense.currency, "currency")
        employee_id = patch.get("employee_id", expense.employee_id)
        amount_cents = patch.get("amount_cents", expense.amount_cents)
        _validate_rules(expense_type, employee_id, amount_cents)
        _ensure_references(patch.get("store_id", expense.store_id), employee_id)

        rate = expense.exchange_rate
        if "exchange_rate" in patch or currency.value != expense.currency:
            rate = _resolve_rate(currency, patch.get("exchange_rate"))
        elif currency == Currency.TRY:
            rate = None

        for key in ("expense_date", "store_id", "description", "document_number", "is_paid", "payment_date"):
            if key in patch:
                setattr(expense, key, patch[key])
        expense.expense_type = expense_type.value
        expense.employee_id = employee_id
        expense.amount_cents = amount_cents
        expense.currency = currency.value
        expense.exchange_rate = rate
        expense.amount_in_try_cents = amount_in_try(amount_cents, None if rate is None else Decimal(rate))
        db.session.commit()
        return expense

    return run_with_retry(_op)


def mark_expense_paid(expense_id: int, payment_date=None) -> Expense:
    def _op():
        expense = get_expense(expense_id)
        if expense.is_paid:
            raise ValidationError("Expense is already paid", details={"expense_id": expense.id})
        expense.is_paid = True
        expense.payment_date = payment_date or utcnow()
        db.session.commit()
        return expense

    return run_with_retry(_op)


def delete_expense(expense_id: int) -> Expense:
    def _op():
        expense = get_expense(expense_id)
        expense.soft_delete()
        db.session.commit()
        return expense

    expense = run_with_retry(_op)
    logger.info("Expense soft-deleted: id=%s", expense.id)
    return expense
