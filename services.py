from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, contains_eager, joinedload
from sqlalchemy.sql import Select

from auth import hash_password, issue_token, resolve_user_id, verify_password
from config import get_settings
from errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from models import (
    MAX_AMOUNT,
    Account,
    AccountType,
    Category,
    CategoryType,
    Transaction,
    TransactionType,
    User,
)
from periods import month_period, parse_date, today_local, trailing_months
from schemas import (
    AccountIn,
    AccountUpdate,
    CategoryIn,
    CategoryUpdate,
    LoginIn,
    ProfileUpdate,
    QuickEntryIn,
    RegisterIn,
    TransactionIn,
    TransactionUpdate,
)


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# (markers found in the driver message, user-facing message); order matters
# because SQLite reports the partial default index as just "accounts.user_id".
_UNIQUE_VIOLATIONS = (
    (
        ("uq_accounts_user_name", "accounts.user_id, accounts.name"),
        "Account with this name already exists.",
    ),
    (
        ("uq_categories_user_name", "categories.user_id, categories.name"),
        "Category with this name already exists.",
    ),
    (("uq_users_email", "users.email"), "User with this email already exists"),
    (
        ("uq_accounts_user_default", "accounts.user_id"),
        "Another account was set as default at the same time",
    ),
)


def _conflict_from(exc: IntegrityError) -> Optional[ConflictError]:
    detail = str(exc.orig)
    for markers, message in _UNIQUE_VIOLATIONS:
        if any(marker in detail for marker in markers):
            return ConflictError(message)
    return None


def _commit_or_conflict(session: Session) -> None:
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        conflict = _conflict_from(exc)
        if conflict is None:
            raise
        raise conflict from exc


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _clean_tags(tags: Optional[list[str]]) -> list[str]:
    return [t.strip() for t in (tags or []) if t and t.strip()]


def _type_value(value) -> Optional[str]:
    if isinstance(value, TransactionType):
        return value.value
    if isinstance(value, str):
        return value.strip().lower()
    return None


def _coerce_transaction_type(value) -> Optional[TransactionType]:
    if value is None or value == "":
        return None
    try:
        return TransactionType(_type_value(value))
    except ValueError as exc:
        raise ValidationError("Invalid transaction type") from exc


class TransactionValidator:
    """Business rules for a proposed transaction.

    Field checks need nothing but the payload. Reference checks look up the
    account, category and transfer account and must run against the same
    session that will persist the write. Every problem is reported at once.
    """

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    @staticmethod
    def field_errors(values: dict, *, today: Optional[date] = None) -> list[str]:
        errors: list[str] = []

        description = values.get("description")
        if not description or len(description.strip()) < 2:
            errors.append("Description must be at least 2 characters long")

        # bounds apply to the value that will be stored, not the raw input
        amount = values.get("amount")
        try:
            amount = _money(amount) if amount is not None else None
        except InvalidOperation:
            amount = None
        if amount is not None and not amount.is_finite():
            amount = None
        if amount is None or not amount > 0:
            errors.append("Amount must be greater than 0")
        elif amount > MAX_AMOUNT:
            errors.append("Amount cannot exceed 999,999.99")

        if _type_value(values.get("type")) not in {t.value for t in TransactionType}:
            errors.append("Invalid transaction type")

        if not values.get("account_id"):
            errors.append("Account ID is required")
        if not values.get("category_id"):
            errors.append("Category ID is required")

        raw_date = values.get("transaction_date")
        if raw_date is not None and raw_date != "":
            try:
                txn_date = parse_date(raw_date)
            except ValueError:
                errors.append("Invalid transaction date")
            else:
                tomorrow = (today or today_local()) + timedelta(days=1)
                if txn_date > tomorrow:
                    errors.append(
                        "Transaction date cannot be more than 1 day in the future"
                    )
        return errors

    def _active_account(self, account_id: int) -> Optional[Account]:
        return self.session.scalar(
            select(Account).where(
                Account.id == account_id,
                Account.user_id == self.user_id,
                Account.active.is_(True),
            )
        )

    def _active_category(self, category_id: int) -> Optional[Category]:
        return self.session.scalar(
            select(Category).where(
                Category.id == category_id,
                Category.user_id == self.user_id,
                Category.active.is_(True),
            )
        )

    def reference_errors(self, values: dict) -> tuple[list[str], list[str]]:
        """Returns ``(missing, violations)``."""
        missing: list[str] = []
        violations: list[str] = []
        txn_type = _type_value(values.get("type"))
        account_id = values.get("account_id")

        if account_id and self._active_account(account_id) is None:
            missing.append("Account not found or inactive")

        category_id = values.get("category_id")
        if category_id:
            category = self._active_category(category_id)
            if category is None:
                missing.append("Category not found or inactive")
            elif (
                txn_type in {t.value for t in CategoryType}
                and category.type.value != txn_type
            ):
                violations.append(
                    f"Category type '{category.type.value}' does not match "
                    f"transaction type '{txn_type}'"
                )

        if txn_type == TransactionType.transfer.value:
            transfer_account_id = values.get("transfer_account_id")
            if not transfer_account_id:
                violations.append(
                    "Transfer account is required for transfer transactions"
                )
            else:
                if transfer_account_id == account_id:
                    violations.append("Cannot transfer to the same account")
                if self._active_account(transfer_account_id) is None:
                    missing.append("Transfer account not found or inactive")

        return missing, violations

    def validate(
        self,
        values: dict,
        *,
        today: Optional[date] = None,
        check_references: bool = True,
    ) -> None:
        errors = self.field_errors(values, today=today)
        missing: list[str] = []
        if check_references:
            missing, violations = self.reference_errors(values)
            errors.extend(violations)
        if errors:
            raise ValidationError(errors + missing)
        if missing:
            raise NotFoundError(missing)


SORTABLE_FIELDS = {
    "transaction_date": Transaction.transaction_date,
    "amount": Transaction.amount,
    "description": Transaction.description,
    "type": Transaction.type,
    "created_at": Transaction.created_at,
    "updated_at": Transaction.updated_at,
}
SORT_ALIASES = {
    "transactionDate": "transaction_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
SORT_DIRECTIONS = ("asc", "desc")

FILTERABLE_FIELDS = {
    "id": Transaction.id,
    "type": Transaction.type,
    "account_id": Transaction.account_id,
    "category_id": Transaction.category_id,
    "transaction_date": Transaction.transaction_date,
    "amount": Transaction.amount,
}


class TransactionQuery:
    """User-scoped transaction lookup assembled from named predicates.

    Predicates combine with AND and a ``None`` value adds no constraint.
    Sorting only accepts ``SORTABLE_FIELDS`` and ``asc``/``desc``; values never
    reach the SQL text. Each row comes back with its account, category and
    transfer account joined in.
    """

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        self._predicates: list = []
        self._search: Optional[str] = None
        self._order_column = Transaction.transaction_date
        self._descending = True
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    @staticmethod
    def _column(field: str):
        try:
            return FILTERABLE_FIELDS[field]
        except KeyError as exc:
            raise ValidationError(f"Cannot filter by '{field}'") from exc

    def equals(self, field: str, value) -> "TransactionQuery":
        if value is not None:
            self._predicates.append(self._column(field) == value)
        return self

    def at_least(self, field: str, value) -> "TransactionQuery":
        if value is not None:
            self._predicates.append(self._column(field) >= value)
        return self

    def at_most(self, field: str, value) -> "TransactionQuery":
        if value is not None:
            self._predicates.append(self._column(field) <= value)
        return self

    def between(self, field: str, low, high) -> "TransactionQuery":
        return self.at_least(field, low).at_most(field, high)

    def contains(self, text: Optional[str]) -> "TransactionQuery":
        if text and text.strip():
            self._search = text.strip()
        return self

    def order_by(
        self, field: Optional[str] = None, direction: Optional[str] = None
    ) -> "TransactionQuery":
        errors: list[str] = []
        key = SORT_ALIASES.get(field, field) if field else "transaction_date"
        column = SORTABLE_FIELDS.get(key)
        if column is None:
            errors.append(
                f"Cannot sort by '{field}'; allowed: {', '.join(SORTABLE_FIELDS)}"
            )
        normalized = (direction or "desc").strip().lower()
        if normalized not in SORT_DIRECTIONS:
            errors.append(f"Sort direction must be ASC or DESC, got '{direction}'")
        if errors:
            raise ValidationError(errors)
        self._order_column = column
        self._descending = normalized == "desc"
        return self

    def paginate(
        self, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> "TransactionQuery":
        errors: list[str] = []
        if limit is not None and limit < 1:
            errors.append("Limit must be at least 1")
        if offset is not None and offset < 0:
            errors.append("Offset cannot be negative")
        if errors:
            raise ValidationError(errors)
        self._limit = limit
        self._offset = offset
        return self

    def statement(self) -> Select:
        stmt = (
            select(Transaction)
            .join(Account, Transaction.account_id == Account.id)
            .join(Category, Transaction.category_id == Category.id)
            .options(
                contains_eager(Transaction.account),
                contains_eager(Transaction.category),
                joinedload(Transaction.transfer_account),
            )
            .where(Transaction.user_id == self.user_id, *self._predicates)
        )
        if self._search:
            stmt = stmt.where(
                or_(
                    Transaction.description.icontains(self._search, autoescape=True),
                    Transaction.notes.icontains(self._search, autoescape=True),
                    Account.name.icontains(self._search, autoescape=True),
                    Category.name.icontains(self._search, autoescape=True),
                )
            )
        if self._descending:
            stmt = stmt.order_by(self._order_column.desc(), Transaction.id.desc())
        else:
            stmt = stmt.order_by(self._order_column.asc(), Transaction.id.asc())
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
            if self._offset:
                stmt = stmt.offset(self._offset)
        return stmt


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    account_id: Optional[int] = None
    category_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    search: Optional[str] = None
    order_by: Optional[str] = None
    order_direction: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    def to_query(self, user_id: int) -> TransactionQuery:
        return (
            TransactionQuery(user_id)
            .equals("type", _coerce_transaction_type(self.type))
            .equals("account_id", self.account_id)
            .equals("category_id", self.category_id)
            .between("transaction_date", self.start_date, self.end_date)
            .between("amount", self.min_amount, self.max_amount)
            .contains(self.search)
            .order_by(self.order_by, self.order_direction)
            .paginate(self.limit, self.offset)
        )


# Fields that cannot be cleared by an update; ``None`` means "keep".
_REQUIRED_TRANSACTION_FIELDS = {
    "account_id",
    "category_id",
    "type",
    "amount",
    "description",
    "transaction_date",
    "tags",
}
# Patching any of these re-runs the reference checks on the merged record.
_REFERENCE_TRIGGERS = {
    "description",
    "amount",
    "type",
    "account_id",
    "category_id",
    "transfer_account_id",
}


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.validator = TransactionValidator(session, user_id)

    def _fetch(self, query: TransactionQuery) -> list[Transaction]:
        return self.session.scalars(query.statement()).all()

    def query(self) -> TransactionQuery:
        return TransactionQuery(self.user_id)

    def list(self, filters: Optional[TransactionFilters] = None) -> list[Transaction]:
        filters = filters or TransactionFilters()
        return self._fetch(filters.to_query(self.user_id))

    def get(self, transaction_id: int) -> Transaction:
        rows = self._fetch(self.query().equals("id", transaction_id))
        if not rows:
            raise NotFoundError("Transaction not found")
        return rows[0]

    def recent(self, limit: int = 10) -> list[Transaction]:
        return self._fetch(self.query().order_by("created_at", "desc").paginate(limit))

    def by_date_range(self, start: date, end: date) -> list[Transaction]:
        if start > end:
            raise ValidationError("Start date must be before end date")
        return self._fetch(self.query().between("transaction_date", start, end))

    def for_account(self, account_id: int, limit: int = 50) -> list[Transaction]:
        return self._fetch(self.query().equals("account_id", account_id).paginate(limit))

    def for_category(self, category_id: int, limit: int = 50) -> list[Transaction]:
        return self._fetch(
            self.query().equals("category_id", category_id).paginate(limit)
        )

    def search(self, text: str, limit: int = 20) -> list[Transaction]:
        return self._fetch(self.query().contains(text).paginate(limit))

    def list_transactions(
        self, filters: Optional[TransactionFilters] = None
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        return self.list(
            replace(
                filters,
                limit=50 if filters.limit is None else filters.limit,
                offset=0 if filters.offset is None else filters.offset,
            )
        )

    def of_type(self, txn_type: TransactionType, limit: int = 20) -> list[Transaction]:
        return self._fetch(self.query().equals("type", txn_type).paginate(limit))

    def expenses(self, limit: int = 20) -> list[Transaction]:
        return self.of_type(TransactionType.expense, limit)

    def incomes(self, limit: int = 20) -> list[Transaction]:
        return self.of_type(TransactionType.income, limit)

    def stats(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[dict[str, object]]:
        stmt = (
            select(
                Transaction.type,
                func.count(Transaction.id).label("transaction_count"),
                func.sum(Transaction.amount).label("total_amount"),
                func.avg(Transaction.amount).label("average_amount"),
                func.min(Transaction.amount).label("min_amount"),
                func.max(Transaction.amount).label("max_amount"),
            )
            .where(Transaction.user_id == self.user_id)
            .group_by(Transaction.type)
            .order_by(Transaction.type)
        )
        if start is not None:
            stmt = stmt.where(Transaction.transaction_date >= start)
        if end is not None:
            stmt = stmt.where(Transaction.transaction_date <= end)

        return [
            {
                "type": row.type,
                "transaction_count": int(row.transaction_count),
                "total_amount": _money(row.total_amount),
                "average_amount": _money(row.average_amount),
                "min_amount": _money(row.min_amount),
                "max_amount": _money(row.max_amount),
            }
            for row in self.session.execute(stmt)
        ]

    def create(self, data: TransactionIn, *, today: Optional[date] = None) -> Transaction:
        values = data.model_dump()
        self.validator.validate(values, today=today)

        txn_type = TransactionType(_type_value(values["type"]))
        raw_date = values.get("transaction_date")
        txn = Transaction(
            user_id=self.user_id,
            account_id=values["account_id"],
            category_id=values["category_id"],
            type=txn_type,
            amount=_money(values["amount"]),
            description=values["description"].strip(),
            notes=_clean(values.get("notes")),
            transaction_date=(
                parse_date(raw_date) if raw_date else (today or today_local())
            ),
            transfer_account_id=(
                values.get("transfer_account_id")
                if txn_type == TransactionType.transfer
                else None
            ),
            reference_number=_clean(values.get("reference_number")),
            location=_clean(values.get("location")),
            tags=_clean_tags(values.get("tags")),
        )
        self.session.add(txn)
        _commit_or_conflict(self.session)
        logger.info(
            f"transaction_created: id={txn.id} user_id={self.user_id} "
            f"type={txn_type.value} amount={txn.amount}"
        )
        return self.get(txn.id)

    def update(
        self,
        transaction_id: int,
        data: TransactionUpdate,
        *,
        today: Optional[date] = None,
    ) -> Transaction:
        txn = self.get(transaction_id)
        patch = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key not in _REQUIRED_TRANSACTION_FIELDS
        }
        merged = {
            "account_id": txn.account_id,
            "category_id": txn.category_id,
            "type": txn.type.value,
            "amount": txn.amount,
            "description": txn.description,
            "transaction_date": txn.transaction_date,
            "transfer_account_id": txn.transfer_account_id,
        }
        merged.update(patch)
        self.validator.validate(
            merged,
            today=today,
            check_references=bool(_REFERENCE_TRIGGERS & patch.keys()),
        )

        for key, value in patch.items():
            if key == "type":
                value = TransactionType(_type_value(value))
            elif key == "amount":
                value = _money(value)
            elif key == "description":
                value = value.strip()
            elif key == "transaction_date":
                value = parse_date(value)
            elif key == "tags":
                value = _clean_tags(value)
            elif key in ("notes", "reference_number", "location"):
                value = _clean(value)
            setattr(txn, key, value)
        if txn.type != TransactionType.transfer:
            txn.transfer_account_id = None

        _commit_or_conflict(self.session)
        self.session.expire(txn)
        logger.info(
            f"transaction_updated: id={transaction_id} user_id={self.user_id} "
            f"fields={','.join(sorted(patch))}"
        )
        return self.get(transaction_id)

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id} user_id={self.user_id}")

    def quick_entry(
        self,
        txn_type: TransactionType,
        data: QuickEntryIn,
        *,
        today: Optional[date] = None,
    ) -> Transaction:
        account_id = data.account_id
        if not account_id:
            default = AccountService(self.session, self.user_id).get_default()
            if default is None:
                raise NotFoundError(
                    "No default account found. Please specify an account."
                )
            account_id = default.id

        payload = TransactionIn(
            account_id=account_id,
            category_id=data.category_id,
            type=txn_type.value,
            amount=data.amount,
            description=data.description,
            transaction_date=today or today_local(),
        )
        return self.create(payload, today=today)


DEFAULT_ACCOUNTS = (
    {
        "name": "Primary Checking",
        "account_type": AccountType.checking,
        "bank_name": "My Bank",
        "color": "#10b981",
        "icon": "banknote",
        "is_default": True,
        "notes": "Primary checking account",
    },
    {
        "name": "Savings Account",
        "account_type": AccountType.savings,
        "bank_name": "My Bank",
        "color": "#3b82f6",
        "icon": "piggy-bank",
        "notes": "Savings account",
    },
    {
        "name": "Cash Wallet",
        "account_type": AccountType.cash,
        "color": "#f59e0b",
        "icon": "wallet",
        "notes": "Physical cash and coins",
    },
)


class AccountService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(
        self,
        account_type: Optional[AccountType] = None,
        active: Optional[bool] = None,
    ) -> list[Account]:
        stmt = (
            select(Account)
            .where(Account.user_id == self.user_id)
            .order_by(Account.is_default.desc(), Account.name.asc())
        )
        if account_type is not None:
            stmt = stmt.where(Account.account_type == account_type)
        if active is not None:
            stmt = stmt.where(Account.active.is_(active))
        return self.session.scalars(stmt).all()

    def checking(self) -> list[Account]:
        return self.list_all(AccountType.checking, active=True)

    def savings(self) -> list[Account]:
        return self.list_all(AccountType.savings, active=True)

    def credit_cards(self) -> list[Account]:
        return self.list_all(AccountType.credit_card, active=True)

    def get(self, account_id: int) -> Account:
        account = self.session.get(Account, account_id)
        if not account or account.user_id != self.user_id:
            raise NotFoundError("Account not found")
        return account

    def get_default(self) -> Optional[Account]:
        return self.session.scalar(
            select(Account).where(
                Account.user_id == self.user_id,
                Account.is_default.is_(True),
                Account.active.is_(True),
            )
        )

    def _clear_default(self, except_id: Optional[int] = None) -> None:
        stmt = (
            update(Account)
            .where(Account.user_id == self.user_id, Account.is_default.is_(True))
            .values(is_default=False)
        )
        if except_id is not None:
            stmt = stmt.where(Account.id != except_id)
        self.session.execute(stmt)

    def create(self, data: AccountIn) -> Account:
        if data.is_default:
            self._clear_default()
        account = Account(
            user_id=self.user_id,
            name=data.name.strip(),
            account_type=data.account_type,
            bank_name=_clean(data.bank_name),
            account_number_last_four=data.account_number_last_four,
            initial_balance=_money(data.initial_balance),
            current_balance=_money(data.initial_balance),
            currency=(data.currency or get_settings().default_currency).upper(),
            color=data.color,
            icon=data.icon,
            is_default=data.is_default,
            notes=_clean(data.notes),
        )
        self.session.add(account)
        _commit_or_conflict(self.session)
        logger.info(
            f"account_created: id={account.id} user_id={self.user_id} "
            f"type={account.account_type.value} default={account.is_default}"
        )
        return account

    def update(self, account_id: int, data: AccountUpdate) -> Account:
        account = self.get(account_id)
        patch = data.model_dump(exclude_unset=True)
        becomes_active = patch.get("active", account.active)
        if patch.get("is_default") and not becomes_active:
            raise ValidationError("Cannot set an inactive account as default")

        if patch.get("is_default"):
            self._clear_default(except_id=account.id)
        for key, value in patch.items():
            if key in ("bank_name", "notes", "account_number_last_four"):
                value = _clean(value)
            elif value is None:
                continue
            elif key == "name":
                value = value.strip()
            elif key == "currency":
                value = value.upper()
            setattr(account, key, value)
        if not account.active:
            account.is_default = False

        _commit_or_conflict(self.session)
        logger.info(
            f"account_updated: id={account.id} user_id={self.user_id} "
            f"fields={','.join(sorted(patch))}"
        )
        return account

    def set_default(self, account_id: int) -> Account:
        account = self.get(account_id)
        if not account.active:
            raise ValidationError("Cannot set an inactive account as default")
        self._clear_default(except_id=account.id)
        account.is_default = True
        _commit_or_conflict(self.session)
        logger.info(f"account_default_set: id={account.id} user_id={self.user_id}")
        return account

    def deactivate(self, account_id: int) -> Account:
        account = self.get(account_id)
        account.active = False
        account.is_default = False
        self.session.commit()
        logger.info(f"account_deactivated: id={account.id} user_id={self.user_id}")
        return account

    def delete(self, account_id: int) -> None:
        account = self.get(account_id)
        postings = len(account.transactions)
        self.session.delete(account)
        self.session.commit()
        logger.info(
            f"account_deleted: id={account_id} user_id={self.user_id} "
            f"transactions_removed={postings}"
        )

    def update_balance(self, account_id: int, balance) -> Account:
        """Overwrite the stored balance. Transactions never touch it."""
        account = self.get(account_id)
        previous = account.current_balance
        account.current_balance = _money(balance)
        self.session.commit()
        logger.info(
            f"account_balance_set: id={account.id} user_id={self.user_id} "
            f"previous={previous} current={account.current_balance}"
        )
        return account

    def summary(self) -> list[dict[str, object]]:
        stmt = (
            select(
                Account.account_type,
                Account.currency,
                func.count(Account.id).label("account_count"),
                func.sum(Account.current_balance).label("total_balance"),
            )
            .where(Account.user_id == self.user_id, Account.active.is_(True))
            .group_by(Account.account_type, Account.currency)
            .order_by(Account.account_type, Account.currency)
        )
        return [
            {
                "account_type": row.account_type,
                "currency": row.currency,
                "account_count": int(row.account_count),
                "total_balance": _money(row.total_balance or 0),
            }
            for row in self.session.execute(stmt)
        ]

    def seed_defaults(self) -> list[Account]:
        currency = get_settings().default_currency
        has_default = (
            self.session.scalar(
                select(Account.id).where(
                    Account.user_id == self.user_id, Account.is_default.is_(True)
                )
            )
            is not None
        )
        created: list[Account] = []
        for defaults in DEFAULT_ACCOUNTS:
            values = dict(defaults)
            values["is_default"] = bool(values.get("is_default")) and not has_default
            account = Account(
                user_id=self.user_id,
                initial_balance=ZERO,
                current_balance=ZERO,
                currency=currency,
                **values,
            )
            self.session.add(account)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                logger.info(
                    f"seed_skip: kind=account name={defaults['name']} user_id={self.user_id}"
                )
                continue
            has_default = has_default or account.is_default
            created.append(account)
        return created


DEFAULT_CATEGORIES = (
    ("Food & Dining", "Restaurants, groceries, food delivery", "#ef4444", "utensils", CategoryType.expense),
    ("Transportation", "Gas, public transport, car maintenance", "#3b82f6", "car", CategoryType.expense),
    ("Shopping", "Clothing, electronics, general purchases", "#8b5cf6", "shopping-bag", CategoryType.expense),
    ("Entertainment", "Movies, games, hobbies, subscriptions", "#f59e0b", "gamepad-2", CategoryType.expense),
    ("Bills & Utilities", "Rent, electricity, internet, phone", "#dc2626", "receipt", CategoryType.expense),
    ("Healthcare", "Medical expenses, insurance, pharmacy", "#059669", "heart-pulse", CategoryType.expense),
    ("Other Expense", "Miscellaneous expenses", "#6b7280", "more-horizontal", CategoryType.expense),
    ("Salary", "Primary job income", "#10b981", "briefcase", CategoryType.income),
    ("Freelance", "Contract work and side projects", "#8b5cf6", "laptop", CategoryType.income),
    ("Investment Returns", "Dividends, interest, capital gains", "#f59e0b", "trending-up", CategoryType.income),
    ("Gift/Bonus", "Gifts received, work bonuses", "#ec4899", "gift", CategoryType.income),
    ("Other Income", "Miscellaneous income sources", "#6b7280", "plus", CategoryType.income),
)


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(
        self,
        category_type: Optional[CategoryType] = None,
        active: Optional[bool] = None,
    ) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.name.asc())
        )
        if category_type is not None:
            stmt = stmt.where(Category.type == category_type)
        if active is not None:
            stmt = stmt.where(Category.active.is_(active))
        return self.session.scalars(stmt).all()

    def incomes(self) -> list[Category]:
        return self.list_all(CategoryType.income, active=True)

    def expenses(self) -> list[Category]:
        return self.list_all(CategoryType.expense, active=True)

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        return category

    def _usage_count(self, category_id: int) -> int:
        return int(
            self.session.execute(
                select(func.count(Transaction.id)).where(
                    Transaction.user_id == self.user_id,
                    Transaction.category_id == category_id,
                )
            ).scalar_one()
            or 0
        )

    def create(self, data: CategoryIn) -> Category:
        category = Category(
            user_id=self.user_id,
            name=data.name.strip(),
            description=_clean(data.description),
            color=data.color,
            icon=data.icon,
            type=data.type,
        )
        self.session.add(category)
        _commit_or_conflict(self.session)
        logger.info(
            f"category_created: id={category.id} user_id={self.user_id} "
            f"type={category.type.value}"
        )
        return category

    def update(self, category_id: int, data: CategoryUpdate) -> Category:
        category = self.get(category_id)
        patch = data.model_dump(exclude_unset=True)
        new_type = patch.get("type")
        if new_type is not None and new_type != category.type:
            if self._usage_count(category.id):
                raise ValidationError(
                    "Cannot change the type of a category that has transactions"
                )

        for key, value in patch.items():
            if key == "description":
                value = _clean(value)
            elif value is None:
                continue
            elif key == "name":
                value = value.strip()
            setattr(category, key, value)

        _commit_or_conflict(self.session)
        logger.info(
            f"category_updated: id={category.id} user_id={self.user_id} "
            f"fields={','.join(sorted(patch))}"
        )
        return category

    def deactivate(self, category_id: int) -> Category:
        category = self.get(category_id)
        category.active = False
        self.session.commit()
        logger.info(f"category_deactivated: id={category.id} user_id={self.user_id}")
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        used = self._usage_count(category.id)
        if used:
            raise ConflictError(
                f"Category is used by {used} transaction(s); deactivate it instead"
            )
        self.session.delete(category)
        self.session.commit()
        logger.info(f"category_deleted: id={category_id} user_id={self.user_id}")

    def seed_defaults(self) -> list[Category]:
        created: list[Category] = []
        for name, description, color, icon, category_type in DEFAULT_CATEGORIES:
            category = Category(
                user_id=self.user_id,
                name=name,
                description=description,
                color=color,
                icon=icon,
                type=category_type,
            )
            self.session.add(category)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                logger.info(
                    f"seed_skip: kind=category name={name} user_id={self.user_id}"
                )
                continue
            created.append(category)
        return created


def summarize_transactions(transactions: list[Transaction]) -> dict[str, object]:
    """Fold transactions into monthly-summary totals.

    Transfers count towards ``transaction_count`` and the per-account ``count``
    but never towards income or expense amounts.
    """
    total_income = ZERO
    total_expenses = ZERO
    expenses_by_category: dict[str, dict[str, object]] = {}
    income_by_category: dict[str, dict[str, object]] = {}
    by_account: dict[str, dict[str, object]] = {}

    for txn in transactions:
        amount = txn.amount
        if txn.type == TransactionType.income:
            total_income += amount
            bucket = income_by_category.setdefault(
                txn.category.name,
                {"amount": ZERO, "count": 0, "color": txn.category.color},
            )
            bucket["amount"] += amount
            bucket["count"] += 1
        elif txn.type == TransactionType.expense:
            total_expenses += amount
            bucket = expenses_by_category.setdefault(
                txn.category.name,
                {"amount": ZERO, "count": 0, "color": txn.category.color},
            )
            bucket["amount"] += amount
            bucket["count"] += 1

        account = by_account.setdefault(
            txn.account.name,
            {"income": ZERO, "expenses": ZERO, "count": 0, "color": txn.account.color},
        )
        if txn.type == TransactionType.income:
            account["income"] += amount
        elif txn.type == TransactionType.expense:
            account["expenses"] += amount
        account["count"] += 1

    return {
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net_income": total_income - total_expenses,
        "transaction_count": len(transactions),
        "expenses_by_category": expenses_by_category,
        "income_by_category": income_by_category,
        "transactions_by_account": by_account,
    }


class ReportService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.transactions = TransactionService(session, user_id)

    def monthly_summary(self, year: int, month: int) -> dict[str, object]:
        try:
            period = month_period(year, month)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        rows = self.transactions.list(
            TransactionFilters(start_date=period.start, end_date=period.end)
        )
        summary = summarize_transactions(rows)
        summary["year"] = year
        summary["month"] = month
        return summary

    def spending_trends(
        self, months: int = 6, *, today: Optional[date] = None
    ) -> list[dict[str, object]]:
        trends: list[dict[str, object]] = []
        for period in trailing_months(months, today=today):
            summary = self.monthly_summary(period.start.year, period.start.month)
            trends.append(
                {
                    "period": period.label,
                    "year": period.start.year,
                    "month": period.start.month,
                    "income": summary["total_income"],
                    "expenses": summary["total_expenses"],
                    "net_income": summary["net_income"],
                    "transaction_count": summary["transaction_count"],
                }
            )
        return trends


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _by_email(self, email: str) -> Optional[User]:
        return self.session.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )

    def register(self, data: RegisterIn) -> tuple[User, str]:
        errors: list[str] = []
        if len(data.first_name.strip()) < 2:
            errors.append("First name must be at least 2 characters long")
        if len(data.last_name.strip()) < 2:
            errors.append("Last name must be at least 2 characters long")
        if not EMAIL_PATTERN.match(data.email.strip()):
            errors.append("Please provide a valid email address")
        if len(data.password) < 6:
            errors.append("Password must be at least 6 characters long")
        if errors:
            raise ValidationError(errors)

        if self._by_email(data.email):
            raise ConflictError("User with this email already exists")

        user = User(
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            email=data.email.strip().lower(),
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        _commit_or_conflict(self.session)
        logger.info(f"user_registered: id={user.id}")
        return user, issue_token(user.id, user.email)

    def login(self, data: LoginIn) -> tuple[User, str]:
        errors: list[str] = []
        if not data.email.strip():
            errors.append("Email is required")
        if not data.password:
            errors.append("Password is required")
        if errors:
            raise ValidationError(errors)

        user = self._by_email(data.email)
        if not user or not verify_password(data.password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        logger.info(f"user_login: id={user.id}")
        return user, issue_token(user.id, user.email)

    def authenticate(self, token: Optional[str]) -> User:
        if not token:
            raise AuthenticationError("Authentication required")
        user = self.session.get(User, resolve_user_id(token))
        if user is None:
            raise AuthenticationError("User not found")
        return user

    def update_profile(self, user: User, data: ProfileUpdate) -> User:
        patch = {
            key: value.strip()
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        errors: list[str] = []
        if "first_name" in patch and len(patch["first_name"]) < 2:
            errors.append("First name must be at least 2 characters long")
        if "last_name" in patch and len(patch["last_name"]) < 2:
            errors.append("Last name must be at least 2 characters long")
        if errors:
            raise ValidationError(errors)

        for key, value in patch.items():
            setattr(user, key, value)
        self.session.commit()
        logger.info(f"user_profile_updated: id={user.id} fields={','.join(sorted(patch))}")
        return user
