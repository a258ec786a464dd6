import logging
import secrets
import shutil
import sqlite3
import time
from contextlib import asynccontextmanager
from datetime import date as dt_date

from fastapi import Depends, FastAPI, File, Header, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import Store
from .importer import ImportFailed, NO_VALID_ROWS, check_csv_filename, import_csv_file
from .logic import merge_update, validate_record
from .models import SUGGESTED_CATEGORIES, Identity, Transaction, TransactionFilter
from .policy import CREATE, DELETE, IMPORT, READ, ROLES, UPDATE, authorize
from .repo import create_txn, delete_txn, get_txn, list_txns, update_txn
from .settings import Settings, configure_logging, get_settings
from .summary import compute_summary, format_amount, resolve_date_range

logger = logging.getLogger(__name__)


class TransactionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str | None = None
    amount: str | float | None = None
    category: str | None = None
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    date: str | None = None
    note: str | None = None
    mediaUrl: str | None = None

    def to_raw(self) -> dict:
        raw = self.model_dump(by_alias=True, exclude_unset=True)
        if raw.get("amount") is not None:
            raw["amount"] = str(raw["amount"])
        return raw


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_identity(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Identity:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="No identity, authorization denied")
    role = x_user_role or "Viewer"
    if role not in ROLES:
        raise HTTPException(status_code=401, detail="Unknown role")
    return Identity(user_id=x_user_id, role=role)


def _authorize(identity: Identity, action: str) -> str | None:
    try:
        return authorize(identity, action)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc


def _filter(
    type: str | None = None,
    category: str | None = None,
    dateFrom: dt_date | None = None,
    dateTo: dt_date | None = None,
    month: int | None = None,
    year: int | None = None,
    search: str | None = None,
) -> TransactionFilter:
    return TransactionFilter(
        date_from=dateFrom,
        date_to=dateTo,
        month=month,
        year=year,
        category=category or None,
        type=type or None,
        search=search or None,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = Store.open(settings)
        app.state.store = store
        try:
            yield
        finally:
            store.close()

    app = FastAPI(title="Personal Finance Tracker", lifespan=lifespan)
    app.state.settings = settings

    def serialize(txn: Transaction) -> dict:
        data = txn.to_dict()
        data["formattedAmount"] = format_amount(txn.amount, settings.currency_symbol)
        return data

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(sqlite3.Error)
    async def storage_error(request: Request, exc: sqlite3.Error):
        logger.error("storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"message": str(exc)})

    @app.get("/health")
    def health(store: Store = Depends(get_store)):
        return {"status": "ok" if store.is_open else "closed"}

    @app.get("/api/transactions")
    def list_transactions(
        filt: TransactionFilter = Depends(_filter),
        identity: Identity = Depends(get_identity),
        store: Store = Depends(get_store),
    ):
        _authorize(identity, READ)
        try:
            start, end = resolve_date_range(filt)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        transactions = list_txns(
            store,
            owner_id=identity.user_id,
            start=start,
            end=end,
            category=filt.category,
            txn_type=filt.type,
            search=filt.search,
        )
        return [serialize(txn) for txn in transactions]

    @app.get("/api/transactions/categories")
    def suggested_categories(identity: Identity = Depends(get_identity)):
        _authorize(identity, READ)
        return SUGGESTED_CATEGORIES

    @app.get("/api/transactions/summary/all")
    def summary(
        filt: TransactionFilter = Depends(_filter),
        identity: Identity = Depends(get_identity),
        store: Store = Depends(get_store),
    ):
        _authorize(identity, READ)
        try:
            result = compute_summary(store, identity.user_id, filt)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return result.to_dict(settings.currency_symbol)

    @app.post("/api/transactions/import")
    def import_transactions_route(
        file: UploadFile | None = File(default=None),
        identity: Identity = Depends(get_identity),
        store: Store = Depends(get_store),
    ):
        _authorize(identity, IMPORT)
        try:
            filename = check_csv_filename(file.filename if file else None)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        settings.upload_dir.mkdir(parents=True, exist_ok=True)
        upload_path = settings.upload_dir / (
            f"{time.time_ns()}-{secrets.token_hex(4)}-{filename.replace('/', '_')}"
        )
        try:
            with upload_path.open("wb") as out:
                shutil.copyfileobj(file.file, out)
            result = import_csv_file(store, upload_path, identity.user_id)
        except ImportFailed as exc:
            content = {
                "message": exc.message,
                "errors": [err.to_dict() for err in exc.errors],
            }
            if exc.detail is not None:
                content["error"] = exc.detail
            status_code = 400 if exc.message == NO_VALID_ROWS else 500
            return JSONResponse(status_code=status_code, content=content)
        finally:
            upload_path.unlink(missing_ok=True)

        body = {
            "message": f"Successfully imported {result.imported_count} transactions",
            "importedCount": result.imported_count,
            "importedRecords": [serialize(txn) for txn in result.imported],
        }
        if result.rejected:
            body["rejectedRows"] = [err.to_dict() for err in result.rejected]
        return body

    @app.get("/api/transactions/{txn_id}")
    def read_transaction(
        txn_id: int,
        identity: Identity = Depends(get_identity),
        store: Store = Depends(get_store),
    ):
        scope = _authorize(identity, READ)
        txn = get_txn(store, txn_id, owner_id=scope)
        if txn is None:
            raise HTTPException(status_code=404, detail="Transaction not found")
        return serialize(txn)

    @app.post("/api/transactions", status_code=201)
    def create_transaction(
        payload: TransactionIn,
        identity: Identity = Depends(get_identity),
        store: Store = Depends(get_store),
    ):
        _authorize(identity, CREATE)
        try:
            record = validate_record(payload.to_raw())
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        txn = create_txn(store, identity.user_id, record)
        logger.info("created transaction %d for %s", txn.id, identity.user_id)
        return serialize(txn)

    @app.put("/api/transactions/{txn_id}")
    def update_transaction(
        txn_id: int,
        payload: TransactionIn,
        identity: Identity = Depends(get_identity),
        store: Store = Depends(get_store),
    ):
        scope = _authorize(identity, UPDATE)
        current = get_txn(store, txn_id, owner_id=scope)
        if current is None:
            raise HTTPException(status_code=404, detail="Transaction not found")
        try:
            record = merge_update(current.as_raw(), payload.to_raw())
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        txn = update_txn(store, txn_id, record, owner_id=scope)
        if txn is None:
            raise HTTPException(status_code=404, detail="Transaction not found")
        return serialize(txn)

    @app.delete("/api/transactions/{txn_id}")
    def delete_transaction(
        txn_id: int,
        identity: Identity = Depends(get_identity),
        store: Store = Depends(get_store),
    ):
        scope = _authorize(identity, DELETE)
        if not delete_txn(store, txn_id, owner_id=scope):
            raise HTTPException(status_code=404, detail="Transaction not found")
        logger.info("deleted transaction %d for %s", txn_id, identity.user_id)
        return {"message": "Transaction deleted"}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("tracker.main:app", host="0.0.0.0", port=8000)
