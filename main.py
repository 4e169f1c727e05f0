import logging
from typing import Optional

from fastapi import Cookie, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth import AuthenticatedAccount, get_token_service, require_account
from config import get_settings
from cookies import (
    REFRESH_COOKIE,
    clear_auth_cookies,
    clear_cookie,
    set_auth_cookies,
)
from database import SessionLocal
from errors import ExpenseAppError, IdentityError, InternalError, ValidationError
from schemas import (
    AccountOut,
    AuthOut,
    ExpenseIn,
    ExpenseListOut,
    ExpenseOut,
    ExpenseQuery,
    ExpenseUpdateIn,
    InsightsOut,
    LoginIn,
    MessageOut,
    Pagination,
    RegisterIn,
    validation_details,
)
from services import ExpenseService, InsightsService
from sessions import SessionStore
from tokens import TokenService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Expense Ledger")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    # Missing or shared signing secrets stop the process here.
    app.state.token_service = TokenService.from_settings(get_settings())
    logger.info("startup: token service configured")


def error_response(exc: ExpenseAppError) -> JSONResponse:
    response = JSONResponse(status_code=exc.status_code, content=exc.payload())
    if isinstance(exc, IdentityError):
        settings = get_settings()
        for name in exc.clear_cookies:
            clear_cookie(response, name, settings)
    return response


@app.exception_handler(ExpenseAppError)
async def app_error_handler(request: Request, exc: ExpenseAppError) -> JSONResponse:
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = validation_details(exc.errors(), skip=("body", "query", "path"))
    return error_response(ValidationError(details))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(f"database_error: path={request.url.path}")
    return error_response(InternalError("Internal server error"))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"unhandled_error: path={request.url.path}")
    return error_response(InternalError("Internal server error"))


def _account_out(account) -> AccountOut:
    return AccountOut.model_validate(account)


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.post("/api/auth/register", response_model=AuthOut, status_code=201)
def register(
    payload: RegisterIn,
    response: Response,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    account, pair = SessionStore(db, tokens).register(payload)
    set_auth_cookies(response, pair, get_settings())
    return AuthOut(message="User created successfully", user=_account_out(account))


@app.post("/api/auth/login", response_model=AuthOut)
def login(
    payload: LoginIn,
    response: Response,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    account, pair = SessionStore(db, tokens).login(payload.email, payload.password)
    set_auth_cookies(response, pair, get_settings())
    return AuthOut(message="Logged in successfully", user=_account_out(account))


@app.post("/api/auth/refresh-token", response_model=MessageOut)
def refresh_token(
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    pair = SessionStore(db, tokens).refresh(refresh_cookie)
    set_auth_cookies(response, pair, get_settings())
    return MessageOut(message="Token refreshed successfully")


@app.post("/api/auth/logout", response_model=MessageOut)
@app.post("/api/auth/refresh-token/logout", response_model=MessageOut)
def logout(
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    SessionStore(db, tokens).logout(refresh_cookie)
    clear_auth_cookies(response, get_settings())
    return MessageOut(message="Logged out successfully")


@app.post("/api/expenses", response_model=ExpenseOut, status_code=201)
def create_expense(
    payload: ExpenseIn,
    account: AuthenticatedAccount = Depends(require_account),
    db: Session = Depends(get_db),
):
    return ExpenseService(db, account.account_id).create(payload)


@app.get("/api/expenses", response_model=ExpenseListOut)
def list_expenses(
    request: Request,
    account: AuthenticatedAccount = Depends(require_account),
    db: Session = Depends(get_db),
):
    query = ExpenseQuery.from_params(request.query_params)
    page = ExpenseService(db, account.account_id).list(query)
    return ExpenseListOut(
        expenses=[ExpenseOut.model_validate(item) for item in page.items],
        pagination=Pagination(
            total=page.total, page=page.page, limit=page.limit, pages=page.pages
        ),
    )


@app.get("/api/expenses/insights", response_model=InsightsOut)
def get_insights(
    account: AuthenticatedAccount = Depends(require_account),
    db: Session = Depends(get_db),
):
    return InsightsOut(**InsightsService(db, account.account_id).summarize())


@app.patch("/api/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: int,
    payload: ExpenseUpdateIn,
    account: AuthenticatedAccount = Depends(require_account),
    db: Session = Depends(get_db),
):
    return ExpenseService(db, account.account_id).update(expense_id, payload)


@app.delete("/api/expenses/{expense_id}", response_model=MessageOut)
def delete_expense(
    expense_id: int,
    account: AuthenticatedAccount = Depends(require_account),
    db: Session = Depends(get_db),
):
    ExpenseService(db, account.account_id).delete(expense_id)
    return MessageOut(message="Expense deleted successfully")
