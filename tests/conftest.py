import os
import tempfile
from decimal import Decimal

os.environ.setdefault("LEDGER_DATA_DIR", tempfile.mkdtemp(prefix="ledger-tests-"))
os.environ.setdefault("LEDGER_SECRET_KEY", "test-secret")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from database import Base  # noqa: E402
from models import Account, AccountType, Category, CategoryType, User  # noqa: E402


@pytest.fixture
def session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture
def make_user(session):
    def _make(email: str = "ana@example.com") -> User:
        user = User(
            first_name="Ana",
            last_name="Silva",
            email=email,
            password_hash="unused",
        )
        session.add(user)
        session.commit()
        return user

    return _make


@pytest.fixture
def user(make_user) -> User:
    return make_user()


@pytest.fixture
def make_account(session, user):
    def _make(
        name: str = "Checking",
        account_type: AccountType = AccountType.checking,
        *,
        user_id=None,
        active: bool = True,
        is_default: bool = False,
        balance: str = "0",
        currency: str = "INR",
    ) -> Account:
        account = Account(
            user_id=user_id or user.id,
            name=name,
            account_type=account_type,
            initial_balance=Decimal(balance),
            current_balance=Decimal(balance),
            currency=currency,
            active=active,
            is_default=is_default,
        )
        session.add(account)
        session.commit()
        return account

    return _make


@pytest.fixture
def make_category(session, user):
    def _make(
        name: str = "Food",
        category_type: CategoryType = CategoryType.expense,
        *,
        user_id=None,
        active: bool = True,
        color: str = "#ef4444",
        icon: str = "utensils",
    ) -> Category:
        category = Category(
            user_id=user_id or user.id,
            name=name,
            type=category_type,
            active=active,
            color=color,
            icon=icon,
        )
        session.add(category)
        session.commit()
        return category

    return _make
