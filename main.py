import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response
from sqlalchemy.orm import Session

from auth import bearer_token
from config import get_settings
from database import SessionLocal
from errors import AuthenticationError, NotFoundError, ServiceError, ValidationError
from models import AccountType, CategoryType, TransactionType, User
from schemas import (
    AccountIn,
    AccountOut,
    AccountUpdate,
    AuthOut,
    BalanceIn,
    CategoryIn,
    CategoryOut,
    CategoryUpdate,
    LoginIn,
    ProfileUpdate,
    QuickEntryIn,
    RegisterIn,
    TransactionIn,
    TransactionOut,
    TransactionUpdate,
    UserOut,
)
from services import (
    AccountService,
    CategoryService,
    ReportService,
    TransactionFilters,
    TransactionService,
    UserService,
)

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Ledger")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _http_error(exc: ServiceError, operation: str) -> HTTPException:
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(
        status_code=exc.status_code, detail=exc.to_dict(operation), headers=headers
    )


def current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    try:
        return UserService(db).authenticate(bearer_token(authorization))
    except AuthenticationError as exc:
        logger.info(f"auth_rejected: reason={exc}")
        raise _http_error(exc, "authenticate") from exc


@app.post("/auth/register", response_model=AuthOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    try:
        user, token = UserService(db).register(payload)
    except ServiceError as exc:
        raise _http_error(exc, "register user") from exc
    return {"user": user, "token": token}


@app.post("/auth/login", response_model=AuthOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    try:
        user, token = UserService(db).login(payload)
    except ServiceError as exc:
        raise _http_error(exc, "log in") from exc
    return {"user": user, "token": token}


@app.get("/auth/me", response_model=UserOut)
def me(user: User = Depends(current_user)):
    return user


@app.patch("/auth/me", response_model=UserOut)
def update_me(
    payload: ProfileUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return UserService(db).update_profile(user, payload)
    except ServiceError as exc:
        raise _http_error(exc, "update profile") from exc


# Static transaction paths are registered before /transactions/{transaction_id}.


@app.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    type: Optional[str] = None,
    account_id: Optional[int] = None,
    category_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    search: Optional[str] = None,
    order_by: Optional[str] = None,
    order_direction: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    filters = TransactionFilters(
        type=type,
        account_id=account_id,
        category_id=category_id,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
        order_by=order_by,
        order_direction=order_direction,
        limit=limit,
        offset=offset,
    )
    try:
        return TransactionService(db, user.id).list_transactions(filters)
    except ServiceError as exc:
        raise _http_error(exc, "get transactions") from exc


@app.get("/transactions/recent", response_model=list[TransactionOut])
def recent_transactions(
    limit: int = Query(default=10, ge=1, le=100),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user.id).recent(limit)


@app.get("/transactions/range", response_model=list[TransactionOut])
def transactions_in_range(
    start_date: date,
    end_date: date,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return TransactionService(db, user.id).by_date_range(start_date, end_date)
    except ServiceError as exc:
        raise _http_error(exc, "get transactions by date range") from exc


@app.get("/transactions/search", response_model=list[TransactionOut])
def search_transactions(
    q: str = Query(default="", alias="q"),
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user.id).search(q, limit)


@app.get("/transactions/stats")
def transaction_stats(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user.id).stats(start_date, end_date)


@app.get("/transactions/expenses", response_model=list[TransactionOut])
def expense_transactions(
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user.id).expenses(limit)


@app.get("/transactions/incomes", response_model=list[TransactionOut])
def income_transactions(
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user.id).incomes(limit)


@app.post("/transactions/quick-expense", response_model=TransactionOut, status_code=201)
def quick_expense(
    payload: QuickEntryIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return TransactionService(db, user.id).quick_entry(
            TransactionType.expense, payload
        )
    except ServiceError as exc:
        raise _http_error(exc, "add quick expense") from exc


@app.post("/transactions/quick-income", response_model=TransactionOut, status_code=201)
def quick_income(
    payload: QuickEntryIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return TransactionService(db, user.id).quick_entry(
            TransactionType.income, payload
        )
    except ServiceError as exc:
        raise _http_error(exc, "add quick income") from exc


@app.post("/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(
    payload: TransactionIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return TransactionService(db, user.id).create(payload)
    except ServiceError as exc:
        raise _http_error(exc, "create transaction") from exc


@app.get("/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return TransactionService(db, user.id).get(transaction_id)
    except ServiceError as exc:
        raise _http_error(exc, "get transaction") from exc


@app.patch("/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return TransactionService(db, user.id).update(transaction_id, payload)
    except ServiceError as exc:
        raise _http_error(exc, "update transaction") from exc


@app.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        TransactionService(db, user.id).delete(transaction_id)
    except ServiceError as exc:
        raise _http_error(exc, "delete transaction") from exc
    return Response(status_code=204)


@app.get("/reports/monthly/{year}/{month}")
def monthly_report(
    year: int,
    month: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return ReportService(db, user.id).monthly_summary(year, month)
    except ServiceError as exc:
        raise _http_error(exc, "get monthly summary") from exc


@app.get("/reports/trends")
def spending_trends(
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return ReportService(db, user.id).spending_trends()


@app.get("/accounts", response_model=list[AccountOut])
def list_accounts(
    account_type: Optional[str] = None,
    active: Optional[bool] = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    parsed = None
    if account_type:
        try:
            parsed = AccountType(account_type.strip().lower())
        except ValueError as exc:
            raise _http_error(
                ValidationError("Invalid account type"), "get accounts"
            ) from exc
    return AccountService(db, user.id).list_all(parsed, active)


@app.get("/accounts/default", response_model=AccountOut)
def default_account(user: User = Depends(current_user), db: Session = Depends(get_db)):
    account = AccountService(db, user.id).get_default()
    if account is None:
        raise _http_error(
            NotFoundError("No default account found"), "get default account"
        )
    return account


@app.get("/accounts/summary")
def account_summary(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return AccountService(db, user.id).summary()


@app.get("/accounts/checking", response_model=list[AccountOut])
def checking_accounts(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return AccountService(db, user.id).checking()


@app.get("/accounts/savings", response_model=list[AccountOut])
def savings_accounts(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return AccountService(db, user.id).savings()


@app.get("/accounts/credit-cards", response_model=list[AccountOut])
def credit_card_accounts(
    user: User = Depends(current_user), db: Session = Depends(get_db)
):
    return AccountService(db, user.id).credit_cards()


@app.post("/accounts/seed", response_model=list[AccountOut])
def seed_accounts(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return AccountService(db, user.id).seed_defaults()


@app.post("/accounts", response_model=AccountOut, status_code=201)
def create_account(
    payload: AccountIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return AccountService(db, user.id).create(payload)
    except ServiceError as exc:
        raise _http_error(exc, "create account") from exc


@app.get("/accounts/{account_id}", response_model=AccountOut)
def get_account(
    account_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return AccountService(db, user.id).get(account_id)
    except ServiceError as exc:
        raise _http_error(exc, "get account") from exc


@app.get("/accounts/{account_id}/transactions", response_model=list[TransactionOut])
def account_transactions(
    account_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        AccountService(db, user.id).get(account_id)
        return TransactionService(db, user.id).for_account(account_id, limit)
    except ServiceError as exc:
        raise _http_error(exc, "get account transactions") from exc


@app.patch("/accounts/{account_id}", response_model=AccountOut)
def update_account(
    account_id: int,
    payload: AccountUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return AccountService(db, user.id).update(account_id, payload)
    except ServiceError as exc:
        raise _http_error(exc, "update account") from exc


@app.post("/accounts/{account_id}/default", response_model=AccountOut)
def set_default_account(
    account_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return AccountService(db, user.id).set_default(account_id)
    except ServiceError as exc:
        raise _http_error(exc, "set default account") from exc


@app.post("/accounts/{account_id}/deactivate", response_model=AccountOut)
def deactivate_account(
    account_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return AccountService(db, user.id).deactivate(account_id)
    except ServiceError as exc:
        raise _http_error(exc, "deactivate account") from exc


@app.put("/accounts/{account_id}/balance", response_model=AccountOut)
def update_account_balance(
    account_id: int,
    payload: BalanceIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return AccountService(db, user.id).update_balance(account_id, payload.balance)
    except ServiceError as exc:
        raise _http_error(exc, "update account balance") from exc


@app.delete("/accounts/{account_id}", status_code=204)
def delete_account(
    account_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        AccountService(db, user.id).delete(account_id)
    except ServiceError as exc:
        raise _http_error(exc, "delete account") from exc
    return Response(status_code=204)


@app.get("/categories", response_model=list[CategoryOut])
def list_categories(
    type: Optional[str] = None,
    active: Optional[bool] = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    parsed = None
    if type:
        try:
            parsed = CategoryType(type.strip().lower())
        except ValueError as exc:
            raise _http_error(
                ValidationError("Invalid category type"), "get categories"
            ) from exc
    return CategoryService(db, user.id).list_all(parsed, active)


@app.get("/categories/income", response_model=list[CategoryOut])
def income_categories(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return CategoryService(db, user.id).incomes()


@app.get("/categories/expense", response_model=list[CategoryOut])
def expense_categories(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return CategoryService(db, user.id).expenses()


@app.post("/categories/seed", response_model=list[CategoryOut])
def seed_categories(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return CategoryService(db, user.id).seed_defaults()


@app.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(
    payload: CategoryIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return CategoryService(db, user.id).create(payload)
    except ServiceError as exc:
        raise _http_error(exc, "create category") from exc


@app.get("/categories/{category_id}", response_model=CategoryOut)
def get_category(
    category_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return CategoryService(db, user.id).get(category_id)
    except ServiceError as exc:
        raise _http_error(exc, "get category") from exc


@app.get("/categories/{category_id}/transactions", response_model=list[TransactionOut])
def category_transactions(
    category_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        CategoryService(db, user.id).get(category_id)
        return TransactionService(db, user.id).for_category(category_id, limit)
    except ServiceError as exc:
        raise _http_error(exc, "get category transactions") from exc


@app.patch("/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return CategoryService(db, user.id).update(category_id, payload)
    except ServiceError as exc:
        raise _http_error(exc, "update category") from exc


@app.post("/categories/{category_id}/deactivate", response_model=CategoryOut)
def deactivate_category(
    category_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return CategoryService(db, user.id).deactivate(category_id)
    except ServiceError as exc:
        raise _http_error(exc, "deactivate category") from exc


@app.delete("/categories/{category_id}", status_code=204)
def delete_category(
    category_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        CategoryService(db, user.id).delete(category_id)
    except ServiceError as exc:
        raise _http_error(exc, "delete category") from exc
    return Response(status_code=204)
