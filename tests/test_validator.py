from datetime import date
from decimal import Decimal

import pytest

from errors import NotFoundError, ValidationError
from models import AccountType, CategoryType
from schemas import TransactionIn
from services import TransactionService, TransactionValidator


def _payload(**overrides) -> dict:
    values = {
        "description": "Groceries",
        "amount": Decimal("25.00"),
        "type": "expense",
        "account_id": 1,
        "category_id": 1,
        "transaction_date": date(2026, 3, 10),
    }
    values.update(overrides)
    return values


def test_field_errors_are_collected_together() -> None:
    errors = TransactionValidator.field_errors({}, today=date(2026, 3, 10))

    assert errors == [
        "Description must be at least 2 characters long",
        "Amount must be greater than 0",
        "Invalid transaction type",
        "Account ID is required",
        "Category ID is required",
    ]


@pytest.mark.parametrize(
    "amount, message",
    [
        (Decimal("0"), "Amount must be greater than 0"),
        (Decimal("-5"), "Amount must be greater than 0"),
        (Decimal("0.004"), "Amount must be greater than 0"),
        (Decimal("999999.995"), "Amount cannot exceed 999,999.99"),
        (Decimal("1000000.00"), "Amount cannot exceed 999,999.99"),
    ],
)
def test_amount_outside_bounds_is_rejected(amount, message) -> None:
    errors = TransactionValidator.field_errors(
        _payload(amount=amount), today=date(2026, 3, 10)
    )
    assert errors == [message]


def test_amount_upper_bound_is_inclusive() -> None:
    errors = TransactionValidator.field_errors(
        _payload(amount=Decimal("999999.99")), today=date(2026, 3, 10)
    )
    assert errors == []


def test_type_is_case_insensitive() -> None:
    errors = TransactionValidator.field_errors(
        _payload(type="EXPENSE"), today=date(2026, 3, 10)
    )
    assert errors == []


def test_short_description_after_trimming_is_rejected() -> None:
    errors = TransactionValidator.field_errors(
        _payload(description="  a  "), today=date(2026, 3, 10)
    )
    assert errors == ["Description must be at least 2 characters long"]


def test_date_may_be_tomorrow_but_not_later() -> None:
    today = date(2026, 3, 10)
    assert TransactionValidator.field_errors(
        _payload(transaction_date=date(2026, 3, 11)), today=today
    ) == []
    assert TransactionValidator.field_errors(
        _payload(transaction_date="2026-03-12"), today=today
    ) == ["Transaction date cannot be more than 1 day in the future"]


@pytest.mark.parametrize("raw", ["2026-13-40", "2026-01-01garbage", "yesterday"])
def test_unparseable_date_is_rejected(raw) -> None:
    errors = TransactionValidator.field_errors(
        _payload(transaction_date=raw), today=date(2026, 3, 10)
    )
    assert errors == ["Invalid transaction date"]


def test_category_type_mismatch_names_both_types(
    session, user, make_account, make_category
) -> None:
    account = make_account()
    salary = make_category("Salary", CategoryType.income)

    with pytest.raises(ValidationError) as excinfo:
        TransactionService(session, user.id).create(
            TransactionIn(
                account_id=account.id,
                category_id=salary.id,
                type="expense",
                amount=Decimal("10"),
                description="Coffee",
                transaction_date=date(2026, 3, 1),
            )
        )

    assert excinfo.value.messages == [
        "Category type 'income' does not match transaction type 'expense'"
    ]


def test_transfer_to_same_account_is_rejected(
    session, user, make_account, make_category
) -> None:
    account = make_account()
    category = make_category("Moves", CategoryType.expense)

    with pytest.raises(ValidationError) as excinfo:
        TransactionService(session, user.id).create(
            TransactionIn(
                account_id=account.id,
                category_id=category.id,
                type="transfer",
                amount=Decimal("100"),
                description="Shuffle",
                transfer_account_id=account.id,
                transaction_date=date(2026, 3, 1),
            )
        )

    assert "Cannot transfer to the same account" in excinfo.value.messages


def test_transfer_requires_target_account(
    session, user, make_account, make_category
) -> None:
    account = make_account()
    category = make_category("Moves", CategoryType.expense)

    with pytest.raises(ValidationError) as excinfo:
        TransactionService(session, user.id).create(
            TransactionIn(
                account_id=account.id,
                category_id=category.id,
                type="transfer",
                amount=Decimal("100"),
                description="To savings",
                transaction_date=date(2026, 3, 1),
            )
        )

    assert excinfo.value.messages == [
        "Transfer account is required for transfer transactions"
    ]


def test_transfer_ignores_category_type(
    session, user, make_account, make_category
) -> None:
    checking = make_account("Checking")
    savings = make_account("Savings", AccountType.savings)
    category = make_category("Salary", CategoryType.income)

    txn = TransactionService(session, user.id).create(
        TransactionIn(
            account_id=checking.id,
            category_id=category.id,
            type="transfer",
            amount=Decimal("100"),
            description="To savings",
            transfer_account_id=savings.id,
            transaction_date=date(2026, 3, 1),
        )
    )

    assert txn.transfer_account.name == "Savings"


def test_only_missing_references_raise_not_found(
    session, user, make_category
) -> None:
    category = make_category()

    with pytest.raises(NotFoundError) as excinfo:
        TransactionService(session, user.id).create(
            TransactionIn(
                account_id=999,
                category_id=category.id,
                type="expense",
                amount=Decimal("10"),
                description="Lunch",
                transaction_date=date(2026, 3, 1),
            )
        )

    assert excinfo.value.messages == ["Account not found or inactive"]


def test_rule_violations_take_precedence_over_missing_references(
    session, user, make_category
) -> None:
    category = make_category()

    with pytest.raises(ValidationError) as excinfo:
        TransactionService(session, user.id).create(
            TransactionIn(
                account_id=999,
                category_id=category.id,
                type="expense",
                amount=Decimal("10"),
                description="L",
                transaction_date=date(2026, 3, 1),
            )
        )

    assert excinfo.value.messages == [
        "Description must be at least 2 characters long",
        "Account not found or inactive",
    ]


def test_inactive_and_foreign_references_are_not_found(
    session, user, make_user, make_account, make_category
) -> None:
    stranger = make_user("bo@example.com")
    foreign_account = make_account("Theirs", user_id=stranger.id)
    archived = make_category("Old", active=False)

    with pytest.raises(NotFoundError) as excinfo:
        TransactionService(session, user.id).create(
            TransactionIn(
                account_id=foreign_account.id,
                category_id=archived.id,
                type="expense",
                amount=Decimal("10"),
                description="Lunch",
                transaction_date=date(2026, 3, 1),
            )
        )

    assert excinfo.value.messages == [
        "Account not found or inactive",
        "Category not found or inactive",
    ]
