import logging
from datetime import date
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from auth import SESSION_COOKIE, AuthService
from config import Settings, get_settings
from csrf import ANONYMOUS_USER_ID, generate_csrf_token, validate_csrf_token
from database import Database
from errors import InvalidAmount, IOFailure, NotFound, StorageUnavailable
from migrations import upgrade_database
from models import TransactionKind, User
from money import parse_amount
from periods import available_months, current_month, resolve_month, today_iso
from receipts import ReceiptStore, accepts_receipt
from schemas import (
    BudgetIn,
    CategoryIn,
    LoginIn,
    PasswordChangeIn,
    SetupIn,
    TransactionIn,
)
from services import BudgetService, CategoryService, ReportService, TransactionService
from views import (
    to_budget_view,
    to_report_category_view,
    to_report_month_view,
    to_totals_view,
    to_transaction_view,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
router = APIRouter()


class LoginRequired(Exception):
    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location


def get_db(request: Request):
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def settings_from_request(request: Request) -> Settings:
    return request.app.state.settings


def auth_service(request: Request, db: Session) -> AuthService:
    settings = settings_from_request(request)
    return AuthService(
        db,
        max_sessions=settings.max_sessions,
        min_password_length=settings.min_password_length,
    )


def current_user(request: Request, db: Session) -> Optional[User]:
    return auth_service(request, db).user_for_token(request.cookies.get(SESSION_COOKIE))


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    auth = auth_service(request, db)
    if not auth.has_users():
        raise LoginRequired("/setup")
    user = auth.user_for_token(request.cookies.get(SESSION_COOKIE))
    if not user:
        raise LoginRequired("/login")
    return user


def check_csrf(request: Request, form, user_id: int = ANONYMOUS_USER_ID) -> None:
    secret = settings_from_request(request).secret_key
    if not validate_csrf_token(secret, str(form.get("csrf_token", "")), user_id):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")


def render(
    request: Request,
    template: str,
    context: dict[str, object],
    *,
    user: Optional[User] = None,
    status_code: int = 200,
) -> HTMLResponse:
    secret = settings_from_request(request).secret_key
    ctx: dict[str, object] = {
        "username": user.username if user else None,
        "csrf_token": generate_csrf_token(
            secret, user.id if user else ANONYMOUS_USER_ID
        ),
    }
    ctx.update(context)
    return templates.TemplateResponse(request, template, ctx, status_code=status_code)


def first_error(exc: ValidationError) -> str:
    message = str(exc.errors()[0].get("msg", "Invalid input"))
    return message.removeprefix("Value error, ")


def login_redirect(token: str) -> RedirectResponse:
    response = RedirectResponse(url="/", status_code=303)
    response.set_cookie(
        SESSION_COOKIE, token, path="/", httponly=True, samesite="lax"
    )
    return response


def logout_redirect() -> RedirectResponse:
    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie(SESSION_COOKIE, path="/")
    return response


def _optional_int(value) -> Optional[int]:
    value = str(value or "").strip()
    return int(value) if value else None


def transaction_command_from_form(
    form, *, today: Optional[date] = None
) -> TransactionIn:
    occurred_on = str(form.get("occurred_on") or "").strip() or today_iso(today)
    return TransactionIn(
        kind=TransactionKind(form.get("kind")),
        amount_cents=parse_amount(str(form.get("amount") or "")),
        category_id=_optional_int(form.get("category_id")),
        occurred_on=date.fromisoformat(occurred_on),
        note=form.get("note") or None,
    )


def budget_command_from_form(form, *, today: Optional[date] = None) -> BudgetIn:
    month = str(form.get("month") or "").strip() or current_month(today)
    return BudgetIn(
        category_id=int(form["category_id"]),
        month=month,
        amount_cents=parse_amount(str(form.get("amount") or "")),
    )


@router.get("/setup", response_class=HTMLResponse)
def setup_page(request: Request, db: Session = Depends(get_db)):
    if auth_service(request, db).has_users():
        if current_user(request, db):
            return RedirectResponse(url="/", status_code=303)
        return RedirectResponse(url="/login", status_code=303)
    return render(request, "setup.html", {"error": None})


@router.post("/setup")
async def setup_submit(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    check_csrf(request, form)
    auth = auth_service(request, db)
    if auth.has_users():
        return RedirectResponse(url="/login", status_code=303)
    try:
        data = SetupIn(
            username=str(form.get("username", "")),
            password=str(form.get("password", "")),
            confirm_password=str(form.get("confirm_password", "")),
        )
        user = auth.create_user(data)
    except ValidationError as exc:
        return render(
            request, "setup.html", {"error": first_error(exc)}, status_code=400
        )
    except ValueError as exc:
        return render(request, "setup.html", {"error": str(exc)}, status_code=400)
    return login_redirect(auth.start_session(user))


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, db: Session = Depends(get_db)):
    if not auth_service(request, db).has_users():
        return RedirectResponse(url="/setup", status_code=303)
    if current_user(request, db):
        return RedirectResponse(url="/", status_code=303)
    return render(request, "login.html", {"error": None})


@router.post("/login")
async def login_submit(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    check_csrf(request, form)
    auth = auth_service(request, db)
    if not auth.has_users():
        return RedirectResponse(url="/setup", status_code=303)
    try:
        data = LoginIn(
            username=str(form.get("username", "")),
            password=str(form.get("password", "")),
        )
    except ValidationError:
        return render(
            request,
            "login.html",
            {"error": "Enter username and password"},
            status_code=400,
        )
    user = auth.authenticate(data.username, data.password)
    if not user:
        return render(
            request,
            "login.html",
            {"error": "Invalid username or password"},
            status_code=400,
        )
    return login_redirect(auth.start_session(user))


@router.get("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        auth_service(request, db).end_session(token)
    return logout_redirect()


def _render_settings(
    request: Request,
    db: Session,
    user: User,
    *,
    error: Optional[str] = None,
    notice: Optional[str] = None,
) -> HTMLResponse:
    sessions = auth_service(request, db).session_count(user.id)
    return render(
        request,
        "settings.html",
        {"active_sessions": sessions, "error": error, "notice": notice},
        user=user,
        status_code=400 if error else 200,
    )


@router.get("/settings", response_class=HTMLResponse)
def settings_page(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    return _render_settings(request, db, user)


@router.post("/settings/password")
async def settings_password(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    form = await request.form()
    check_csrf(request, form, user.id)
    try:
        data = PasswordChangeIn(
            current_password=str(form.get("current_password", "")),
            new_password=str(form.get("new_password", "")),
            confirm_password=str(form.get("confirm_password", "")),
        )
        auth_service(request, db).change_password(user, data)
    except ValidationError as exc:
        return _render_settings(request, db, user, error=first_error(exc))
    except ValueError as exc:
        return _render_settings(request, db, user, error=str(exc))
    return _render_settings(request, db, user, notice="Password updated")


@router.post("/settings/logout_all")
async def settings_logout_all(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    form = await request.form()
    check_csrf(request, form, user.id)
    auth_service(request, db).end_all_sessions(user.id)
    return logout_redirect()


@router.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request,
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    selected = resolve_month(month)
    reports = ReportService(db)
    income, expense = reports.month_totals(selected)
    budgets = [to_budget_view(b) for b in reports.budgets_for_month(selected)]
    return render(
        request,
        "dashboard.html",
        {
            "month": selected,
            "months": available_months(db),
            "totals": to_totals_view(income, expense),
            "budgets": budgets,
        },
        user=user,
    )


@router.get("/transactions", response_class=HTMLResponse)
def transactions_page(
    request: Request,
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    selected = resolve_month(month)
    items = TransactionService(db).list(selected)
    return render(
        request,
        "transactions.html",
        {
            "month": selected,
            "months": available_months(db),
            "today": today_iso(),
            "transactions": [to_transaction_view(t) for t in items],
            "categories": CategoryService(db).list_all(),
        },
        user=user,
    )


@router.post("/transactions")
async def create_transaction(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    form = await request.form()
    check_csrf(request, form, user.id)
    try:
        data = transaction_command_from_form(form)
    except (InvalidAmount, ValidationError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    categories = CategoryService(db)
    try:
        category_name = (
            categories.get(data.category_id).name
            if data.category_id is not None
            else None
        )
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    receipt_path = None
    store: ReceiptStore = request.app.state.receipts
    upload = form.get("receipt")
    settings = settings_from_request(request)
    if isinstance(upload, UploadFile) and upload.filename:
        if accepts_receipt(data.kind, category_name, settings.receipt_category):
            content = await upload.read()
            receipt_path = await run_in_threadpool(store.save, content, upload.filename)
        await upload.close()

    try:
        TransactionService(db).create(data, receipt_path=receipt_path)
    except SQLAlchemyError:
        # drop the orphaned receipt
        if receipt_path:
            store.discard(receipt_path)
        raise
    return RedirectResponse(
        url=f"/transactions?month={data.occurred_on:%Y-%m}", status_code=303
    )


@router.get("/categories", response_class=HTMLResponse)
def categories_page(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    return render(
        request,
        "categories.html",
        {"categories": CategoryService(db).list_all()},
        user=user,
    )


@router.post("/categories")
async def create_category(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    form = await request.form()
    check_csrf(request, form, user.id)
    try:
        data = CategoryIn(
            name=str(form.get("name", "")),
            kind=TransactionKind(form.get("kind")),
        )
    except (ValidationError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    CategoryService(db).create(data)
    return RedirectResponse(url="/categories", status_code=303)


@router.get("/budgets", response_class=HTMLResponse)
def budgets_page(
    request: Request,
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    selected = resolve_month(month)
    records = ReportService(db).budgets_for_month(selected)
    return render(
        request,
        "budgets.html",
        {
            "month": selected,
            "months": available_months(db),
            "budgets": [to_budget_view(r) for r in records],
            "categories": CategoryService(db).list_all(),
        },
        user=user,
    )


@router.post("/budgets")
async def create_budget(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    form = await request.form()
    check_csrf(request, form, user.id)
    try:
        data = budget_command_from_form(form)
    except (ValidationError, ValueError, KeyError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        BudgetService(db).create(data)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return RedirectResponse(url=f"/budgets?month={data.month}", status_code=303)


@router.get("/reports", response_class=HTMLResponse)
def reports_page(
    request: Request,
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    selected = resolve_month(month)
    reports = ReportService(db)
    return render(
        request,
        "reports.html",
        {
            "month": selected,
            "month_options": available_months(db),
            "months": [to_report_month_view(r) for r in reports.report_by_month(12)],
            "categories": [
                to_report_category_view(r)
                for r in reports.report_by_category(selected)
            ],
        },
        user=user,
    )


async def _login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(url=exc.location, status_code=303)


async def _storage_error_handler(request: Request, exc: Exception):
    logger.error(
        f"storage_failure: path={request.url.path}", exc_info=exc
    )
    return PlainTextResponse("Storage unavailable", status_code=500)


async def _io_error_handler(request: Request, exc: IOFailure):
    logger.error(f"io_failure: path={request.url.path}", exc_info=exc)
    return PlainTextResponse("Could not store file", status_code=500)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    settings.receipts_dir.mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="Lumen")
    app.state.settings = settings
    app.state.database = Database(settings.database_url)
    app.state.receipts = ReceiptStore(settings.receipts_dir)

    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")
    app.mount(
        "/receipts",
        StaticFiles(directory=str(settings.receipts_dir)),
        name="receipts",
    )
    app.include_router(router)

    app.add_exception_handler(LoginRequired, _login_required_handler)
    app.add_exception_handler(StorageUnavailable, _storage_error_handler)
    app.add_exception_handler(SQLAlchemyError, _storage_error_handler)
    app.add_exception_handler(IOFailure, _io_error_handler)

    @app.on_event("startup")
    def startup_event():
        app.state.database.ping()
        upgrade_database(app.state.database)

    @app.on_event("shutdown")
    def shutdown_event():
        app.state.database.dispose()

    return app


def main():
    import uvicorn

    uvicorn.run(
        "main:create_app", factory=True, host="0.0.0.0", port=8000, reload=False
    )


if __name__ == "__main__":
    main()
