import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, init_db
from models import TransactionType
from periods import PeriodFilter, local_today, parse_period_filter, resolve_period
from schemas import (
    AccountOut,
    CardIn,
    CategoryIn,
    GoalIn,
    LoginIn,
    ProfileIn,
    RegisterIn,
    ThemeIn,
    TransactionIn,
)
from security import generate_session_token, read_session_token
from services import (
    AccountService,
    CardImportService,
    CardService,
    CategoryService,
    DashboardService,
    ExportService,
    GoalService,
    ProfileService,
    ReportService,
    TransactionService,
)
from spreadsheets import XLSX_MEDIA_TYPE
from store import AccountStore, SQLAlchemyAccountStore

logging.basicConfig(level=logging.INFO)

SESSION_COOKIE = "finance_session"

app = FastAPI(title="Finance Tracker")


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> AccountStore:
    return SQLAlchemyAccountStore(db)


def current_account_id(
    request: Request, store: AccountStore = Depends(get_store)
) -> str:
    token = request.cookies.get(SESSION_COOKIE)
    account_id = read_session_token(token) if token else None
    if account_id is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    state = store.load()
    if state.active_account_id != account_id or state.find(account_id) is None:
        raise HTTPException(status_code=401, detail="Session has ended")
    return account_id


@app.on_event("startup")
def startup_event():
    init_db()


def period_from_request(request: Request) -> PeriodFilter:
    try:
        return parse_period_filter(request.query_params.get("period"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def service_error(exc: ValueError) -> HTTPException:
    message = str(exc)
    status = 404 if message.endswith("not found") else 400
    return HTTPException(status_code=status, detail=message)


async def read_statement(file: UploadFile) -> str:
    try:
        return (await file.read()).decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(
            status_code=400, detail="Statement must be UTF-8 encoded CSV"
        ) from exc


def _set_session_cookie(response: Response, account_id: str) -> None:
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE,
        generate_session_token(account_id),
        max_age=settings.session_max_age_seconds,
        httponly=True,
        samesite="lax",
    )


@app.get("/healthz")
def healthz():
    return {"status": "ok", "version": APP_VERSION}


# Auth


@app.post("/api/auth/register", status_code=201)
def register(
    data: RegisterIn, response: Response, store: AccountStore = Depends(get_store)
):
    result = AccountService(store).register(data)
    if not result.ok:
        raise HTTPException(status_code=409, detail=result.error)
    _set_session_cookie(response, result.account.id)
    return AccountOut.from_account(result.account)


@app.post("/api/auth/login")
def login(data: LoginIn, response: Response, store: AccountStore = Depends(get_store)):
    result = AccountService(store).login(data)
    if not result.ok:
        raise HTTPException(status_code=401, detail=result.error)
    _set_session_cookie(response, result.account.id)
    return AccountOut.from_account(result.account)


@app.post("/api/auth/logout", status_code=204)
def logout(store: AccountStore = Depends(get_store)):
    AccountService(store).logout()
    response = Response(status_code=204)
    response.delete_cookie(SESSION_COOKIE)
    return response


@app.get("/api/auth/me")
def me(
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    account = AccountService(store).current()
    if account is None or account.id != account_id:
        raise HTTPException(status_code=401, detail="Session has ended")
    return AccountOut.from_account(account)


# Transactions


@app.get("/api/transactions")
def list_transactions(
    request: Request,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    period = None
    if request.query_params.get("period"):
        period = resolve_period(period_from_request(request))
    category_id = request.query_params.get("category") or None
    return TransactionService(store, account_id).list_all(
        period, category_id=category_id
    )


@app.post("/api/transactions", status_code=201)
def create_transaction(
    data: TransactionIn,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        return TransactionService(store, account_id).create(data)
    except ValueError as exc:
        raise service_error(exc) from exc


@app.get("/api/transactions/{transaction_id}")
def get_transaction(
    transaction_id: str,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        return TransactionService(store, account_id).get(transaction_id)
    except ValueError as exc:
        raise service_error(exc) from exc


@app.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: str,
    data: TransactionIn,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        return TransactionService(store, account_id).update(transaction_id, data)
    except ValueError as exc:
        raise service_error(exc) from exc


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: str,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        TransactionService(store, account_id).delete(transaction_id)
    except ValueError as exc:
        raise service_error(exc) from exc
    return Response(status_code=204)


# Categories


@app.get("/api/categories")
def list_categories(
    request: Request,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    type_param = request.query_params.get("type")
    txn_type = None
    if type_param:
        try:
            txn_type = TransactionType(type_param)
        except ValueError as exc:
            raise HTTPException(
                status_code=400, detail=f"Unknown category type '{type_param}'"
            ) from exc
    return CategoryService(store, account_id).list_all(txn_type)


@app.post("/api/categories", status_code=201)
def create_category(
    data: CategoryIn,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    return CategoryService(store, account_id).create(data)


@app.put("/api/categories/{category_id}")
def update_category(
    category_id: str,
    data: CategoryIn,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        return CategoryService(store, account_id).update(category_id, data)
    except ValueError as exc:
        raise service_error(exc) from exc


@app.delete("/api/categories/{category_id}", status_code=204)
def delete_category(
    category_id: str,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        CategoryService(store, account_id).delete(category_id)
    except ValueError as exc:
        raise service_error(exc) from exc
    return Response(status_code=204)


# Cards


@app.get("/api/cards")
def list_cards(
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    return CardService(store, account_id).list_all()


@app.post("/api/cards", status_code=201)
def create_card(
    data: CardIn,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    return CardService(store, account_id).create(data)


@app.put("/api/cards/{card_id}")
def update_card(
    card_id: str,
    data: CardIn,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        return CardService(store, account_id).update(card_id, data)
    except ValueError as exc:
        raise service_error(exc) from exc


@app.delete("/api/cards/{card_id}")
def delete_card(
    card_id: str,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        removed = CardService(store, account_id).delete(card_id)
    except ValueError as exc:
        raise service_error(exc) from exc
    return {"transactions_removed": removed}


@app.get("/api/cards/{card_id}/transactions")
def card_transactions(
    card_id: str,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        return CardService(store, account_id).transactions(card_id)
    except ValueError as exc:
        raise service_error(exc) from exc


@app.post("/api/cards/{card_id}/import/preview")
async def card_import_preview(
    card_id: str,
    file: UploadFile = File(...),
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    content = await read_statement(file)
    try:
        rows, errors = CardImportService(store, account_id).preview(card_id, content)
    except ValueError as exc:
        raise service_error(exc) from exc
    return {"rows": rows, "errors": errors}


@app.post("/api/cards/{card_id}/import/commit")
async def card_import_commit(
    card_id: str,
    file: UploadFile = File(...),
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    content = await read_statement(file)
    result = CardImportService(store, account_id).commit(card_id, content)
    if result.errors:
        raise HTTPException(status_code=400, detail="; ".join(result.errors))
    logging.info(f"card_import: card_id={card_id} rows={result.imported}")
    return {"imported": result.imported}


# Goal & profile


@app.get("/api/goal")
def get_goal(
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    return GoalService(store, account_id).get()


@app.put("/api/goal")
def set_goal(
    data: GoalIn,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    return GoalService(store, account_id).set(data)


@app.get("/api/profile")
def get_profile(
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    return ProfileService(store, account_id).get()


@app.put("/api/profile")
def update_profile(
    data: ProfileIn,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    service = ProfileService(store, account_id)
    error = service.update(data)
    if error:
        raise HTTPException(status_code=409, detail=error)
    return service.get()


@app.post("/api/profile/avatar")
async def upload_avatar(
    file: UploadFile = File(...),
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    service = ProfileService(store, account_id)
    error = service.set_avatar(await file.read(), file.content_type)
    if error:
        raise HTTPException(status_code=400, detail=error)
    return service.get()


@app.delete("/api/profile/avatar", status_code=204)
def delete_avatar(
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    ProfileService(store, account_id).clear_avatar()
    return Response(status_code=204)


@app.put("/api/profile/theme")
def set_theme(
    data: ThemeIn,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    return {"theme": ProfileService(store, account_id).set_theme(data.theme)}


# Reporting


@app.get("/api/dashboard")
def dashboard(
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    return DashboardService(store, account_id).build()


@app.get("/api/reports")
def reports(
    request: Request,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    selector = period_from_request(request)
    category_id = request.query_params.get("category") or None
    return ReportService(store, account_id).build(selector, category_id=category_id)


@app.get("/export/transactions.csv")
def export_transactions_endpoint(
    request: Request,
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    period = None
    if request.query_params.get("period"):
        period = resolve_period(period_from_request(request))
    csv_text = ExportService(store, account_id).csv(period)
    suffix = f"{period.start}_{period.end}" if period else "all"
    filename = f"transactions_{suffix}.csv"
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/export/workbook.xlsx")
def export_workbook(
    store: AccountStore = Depends(get_store),
    account_id: str = Depends(current_account_id),
):
    try:
        start_time = datetime.now()
        content = ExportService(store, account_id).workbook()
        duration = (datetime.now() - start_time).total_seconds()
        logging.info(
            f"workbook_generated: account_id={account_id} "
            f"size_bytes={len(content)} duration={duration:.2f}s"
        )
    except Exception as exc:
        logging.exception("Error generating workbook export")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    filename = f"finances_{local_today().isoformat()}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def main(host: Optional[str] = None, port: int = 8000):
    import uvicorn

    uvicorn.run("main:app", host=host or "0.0.0.0", port=port, reload=False)


if __name__ == "__main__":
    main()
