# services/api/app.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Dict, Optional
from urllib.parse import quote

import boto3
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from mangum import Mangum
from pydantic import BaseModel

from services.common.charting import GraphKind
from services.common.session import SessionContext, SessionRegistry
from services.ingestion import FileDescriptor, IngestError, IngestionConfig

# ---- Env ----
METRICS_NAMESPACE = os.environ.get("METRICS_NAMESPACE", "SheetScope/API")
AWS_REGION = os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or "us-east-1"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# ---- Logging & Observability ----
logger = logging.getLogger("sheetscope.api")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)
logger.setLevel(logging.INFO)

# ---- AWS ----
cloudwatch = boto3.client("cloudwatch", region_name=AWS_REGION)

# ---- Sessions ----
sessions = SessionRegistry(IngestionConfig.from_env())

# ---- App ----
app = FastAPI(title="SheetScope API")

# --- CORS for local dashboard ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
    allow_credentials=False,
)

_ERROR_STATUS = {
    "FileTooLarge": 413,
    "UnsupportedType": 415,
    "ReadFailure": 400,
    "ParseFailure": 422,
}


# ---- Models ----
class UpdateSelection(BaseModel):
    """Request payload for chart selection changes; omitted fields are left alone."""
    graphKind: GraphKind | None = None
    categoryKey: str | None = None
    measureKey: str | None = None


# ---- Helpers ----
def record_metric(name: str, value: float = 1, unit: str = "Count", dimensions: Optional[Dict[str, str]] | None = None) -> None:
    metric = {"MetricName": name, "Value": value, "Unit": unit}
    if dimensions:
        metric["Dimensions"] = [{"Name": key, "Value": val} for key, val in dimensions.items()]
    try:
        cloudwatch.put_metric_data(Namespace=METRICS_NAMESPACE, MetricData=[metric])
    except Exception as exc:  # pragma: no cover
        logger.debug("failed to emit metric", extra={"metric": name, "error": str(exc)})


def ensure_session(session_id: str) -> SessionContext:
    try:
        return sessions.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")


def session_view(session: SessionContext) -> dict:
    return {
        "sessionId": session.id,
        "preview": session.preview.to_dict(),
        "selection": session.selection.to_dict(),
        "numericColumns": [header for header in session.preview.headers if session.is_numeric_column(header)],
    }


def _content_disposition(filename: str) -> str:
    safe = "".join(ch if 32 <= ord(ch) < 127 and ch not in '"\\' else "_" for ch in filename)
    if safe == filename:
        return f'attachment; filename="{safe}"'
    # header values go out as latin-1; non-ASCII names travel in filename* (RFC 5987)
    return f"attachment; filename=\"{safe}\"; filename*=UTF-8''{quote(filename, safe='')}"


# ---- Routes ----
@app.get("/health")
def health():
    return {"ok": True}


@app.post("/sessions")
def create_session():
    session = sessions.create()
    record_metric("SessionCreated")
    logger.info("session created", extra={"session_id": session.id})
    return {"sessionId": session.id}


@app.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    ensure_session(session_id)
    sessions.drop(session_id)
    return {"ok": True}


@app.post("/sessions/{session_id}/uploads")
async def upload_file(
    session_id: str,
    request: Request,
    filename: str = Query(..., min_length=1, description="Original file name; its extension selects the decoder"),
):
    session = ensure_session(session_id)

    declared = request.headers.get("content-length")
    if declared is None:
        raise HTTPException(status_code=411, detail="Content-Length header is required")
    try:
        size_bytes = int(declared)
    except ValueError:
        raise HTTPException(status_code=400, detail="Content-Length must be an integer")

    descriptor = FileDescriptor(
        name=filename,
        size_bytes=size_bytes,
        mime_type=request.headers.get("content-type", ""),
        read=request.body,
    )

    try:
        record = await session.ingest(descriptor)
    except IngestError as exc:
        record_metric("UploadRejected", dimensions={"Reason": exc.code})
        logger.info("upload rejected", extra={"session_id": session_id, "file_name": filename, "reason": exc.code})
        return JSONResponse(status_code=_ERROR_STATUS.get(exc.code, 400), content={"detail": exc.message, "code": exc.code})

    record_metric("UploadAccepted", dimensions={"SourceFormat": record.source_format})
    return {"record": record.to_summary(), **session_view(session)}


@app.get("/sessions/{session_id}/history")
def list_history(session_id: str):
    session = ensure_session(session_id)
    return {"sessionId": session_id, "items": [record.to_summary() for record in session.history.list()]}


@app.post("/sessions/{session_id}/history/{record_id}/preview")
def preview_history_record(session_id: str, record_id: str):
    session = ensure_session(session_id)
    try:
        session.select_for_preview(record_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="History record not found")
    return session_view(session)


@app.delete("/sessions/{session_id}/history/{record_id}")
def delete_history_record(session_id: str, record_id: str):
    session = ensure_session(session_id)
    try:
        session.remove(record_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="History record not found")
    record_metric("HistoryRecordDeleted")
    return session_view(session)


@app.get("/sessions/{session_id}/history/{record_id}/download")
def download_history_record(session_id: str, record_id: str):
    session = ensure_session(session_id)
    try:
        payload = session.download(record_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="History record not found")
    record_metric("DownloadServed")
    return Response(
        content=payload.data,
        media_type=payload.mime_type,
        headers={"Content-Disposition": _content_disposition(payload.filename)},
    )


@app.get("/sessions/{session_id}/preview")
def get_preview(session_id: str):
    return session_view(ensure_session(session_id))


@app.put("/sessions/{session_id}/selection")
def update_selection(session_id: str, body: UpdateSelection):
    session = ensure_session(session_id)
    fields = body.model_fields_set
    try:
        if "graphKind" in fields and body.graphKind is not None:
            session.set_graph_kind(body.graphKind)
        if "categoryKey" in fields:
            session.set_category_key(body.categoryKey)
        if "measureKey" in fields:
            session.set_measure_key(body.measureKey)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return session_view(session)


@app.get("/sessions/{session_id}/chart")
def get_chart(session_id: str):
    session = ensure_session(session_id)
    return {"sessionId": session_id, **session.chart_view().to_dict()}


# ---- Middleware ----
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    try:
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        logger.info(
            "request completed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "request_id": request_id,
            },
        )
        response.headers.setdefault("x-request-id", request_id)
        return response
    except Exception:
        duration_ms = int((time.time() - start) * 1000)
        logger.exception(
            "request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "request_id": request_id,
                "duration_ms": duration_ms,
            },
        )
        raise


# ✅ GLOBAL Lambda handler (must be at module scope)
handler = Mangum(app)
