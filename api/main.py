from __future__ import annotations

from dataclasses import asdict
import logging
import math
import os
from functools import lru_cache
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Query, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.schemas import SelectionModel, TrendsRequestModel, UploadResponse
from core.auth import AuthError, TokenPayload, verify_token
from core.config import Settings, load_settings
from core.data import Dataset, SpreadsheetDecodeError, dataset_frame, normalize_dataset, read_spreadsheet
from core.filters import Selection, normalize_selection, search_products
from core.metrics_charts import compute_trends
from core.metrics_summary import compute_summary, unique_periods, unique_products
from core.store import ProductStore


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def get_store(settings: Settings = Depends(get_settings)) -> ProductStore:
    return ProductStore(settings.db_path)


router = APIRouter()
bearer_scheme = HTTPBearer(auto_error=False)


def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API for one set of settings; ``None`` reads them from the environment."""
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

    app = FastAPI(title="Product Performance Dashboard API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(HTTPException, _http_error)
    app.include_router(router)
    app.dependency_overrides[get_settings] = lambda: settings
    return app


def require_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> TokenPayload:
    token = request.cookies.get("token") or (credentials.credentials if credentials else None)
    try:
        return verify_token(token, settings)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _selection_from_model(model: SelectionModel, dataset: Dataset) -> Selection:
    return normalize_selection(
        model.model_dump(),
        available_products=unique_products(dataset),
        available_periods=unique_periods(dataset),
    )


@router.get("/health")
def health() -> dict:
    return {"ok": True}


@router.post("/upload", response_model=UploadResponse)
async def upload(
    file: Optional[UploadFile] = File(default=None),
    user: TokenPayload = Depends(require_user),
    settings: Settings = Depends(get_settings),
    store: ProductStore = Depends(get_store),
):
    if file is None:
        return _error(status.HTTP_400_BAD_REQUEST, "No file uploaded")
    try:
        raw = await file.read()
        if not raw:
            return _error(status.HTTP_400_BAD_REQUEST, "No file uploaded")
        if len(raw) > settings.max_upload_bytes:
            return _error(status.HTTP_400_BAD_REQUEST, "File is too large")

        records = read_spreadsheet(file.filename or "", raw)
        dataset = normalize_dataset(records)
        if dataset.empty:
            return _error(status.HTTP_400_BAD_REQUEST, "No valid data found in file")

        count = store.replace_dataset(dataset)
        logger.info("User %s uploaded %s: %d observations", user.username, file.filename, count)
        return _json(
            {
                "message": "Data uploaded successfully",
                "count": count,
                "products": unique_products(dataset),
                "issues": [asdict(i) for i in dataset.issues],
            }
        )
    except SpreadsheetDecodeError as exc:
        logger.warning("Upload of %s rejected: %s", file.filename, exc)
        return _error(status.HTTP_400_BAD_REQUEST, f"Failed to process file: {exc}")
    except Exception as exc:
        logger.exception("upload failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@router.get("/data")
def data(
    product: Optional[str] = Query(default=None),
    user: TokenPayload = Depends(require_user),
    store: ProductStore = Depends(get_store),
):
    try:
        if product:
            return _json([asdict(o) for o in store.load_dataset(product)])
        return _json(store.list_products())
    except Exception as exc:
        logger.exception("data failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@router.get("/meta/products")
def meta_products(
    q: str = Query(default=""),
    user: TokenPayload = Depends(require_user),
    store: ProductStore = Depends(get_store),
):
    try:
        dataset = store.load_dataset()
        return _json({"products": search_products(unique_products(dataset), q)})
    except Exception as exc:
        logger.exception("meta_products failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@router.get("/meta/periods")
def meta_periods(
    user: TokenPayload = Depends(require_user),
    store: ProductStore = Depends(get_store),
):
    try:
        return _json({"periods": unique_periods(store.load_dataset())})
    except Exception as exc:
        logger.exception("meta_periods failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@router.post("/summary")
def summary(
    selection: SelectionModel,
    user: TokenPayload = Depends(require_user),
    store: ProductStore = Depends(get_store),
):
    try:
        dataset = store.load_dataset()
        return _json(compute_summary(_selection_from_model(selection, dataset), dataset))
    except Exception as exc:
        logger.exception("summary failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@router.post("/trends")
def trends(
    body: TrendsRequestModel,
    user: TokenPayload = Depends(require_user),
    store: ProductStore = Depends(get_store),
):
    try:
        dataset = store.load_dataset()
        selection = _selection_from_model(body, dataset)
        return _json(compute_trends(selection, dataset, hidden=body.hidden_series))
    except Exception as exc:
        logger.exception("trends failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@router.get("/export")
def export(
    product: Optional[str] = Query(default=None),
    user: TokenPayload = Depends(require_user),
    store: ProductStore = Depends(get_store),
):
    try:
        export_df = dataset_frame(store.load_dataset(product))
        csv_bytes = export_df.to_csv(index=False).encode("utf-8")
        return Response(
            content=csv_bytes,
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=product_data.csv"},
        )
    except Exception as exc:
        logger.exception("export failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
    )
