# dealbot/main.py
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from loguru import logger

from dealbot.config import configure_logging, get_settings
from dealbot.task_queue import enqueue_convert_message
from dealbot.workers import get_api_converter

# -------------------- App -------------------- #
@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    get_api_converter(settings)  # load mappings at boot, not on the first request
    logger.info("[API][Boot] dealbot converter ready")
    yield

app = FastAPI(
    title="Dealbot Link Converter",
    docs_url="/docs",
    openapi_url="/openapi.json",
    redoc_url=None,
    lifespan=lifespan,
)

# -------------------- Liveness -------------------- #
@app.get("/", include_in_schema=False)
def root():
    return PlainTextResponse("I'm alive", status_code=200)

@app.head("/", include_in_schema=False)
def root_head():
    return Response(status_code=200)

@app.get("/health", include_in_schema=False)
def health():
    return PlainTextResponse("ok", status_code=200)

# -------------------- Auth helper -------------------- #
def _auth_ok(req: Request) -> bool:
    """Shared secret via Authorization (optionally Bearer), X-Webhook-Secret, or ?secret=."""
    secret = (get_settings().webhook_secret or "").strip()
    if not secret:
        return True  # no secret set -> allow all
    h = req.headers
    candidates = [
        h.get("Authorization"),
        h.get("X-Webhook-Secret"),
        req.query_params.get("secret"),
    ]
    for c in candidates:
        if not c:
            continue
        if c == secret:
            return True
        if c.startswith("Bearer ") and c.split(" ", 1)[1] == secret:
            return True
    return False

def _require_auth(req: Request) -> None:
    if not _auth_ok(req):
        logger.warning("[API] Forbidden: missing/invalid secret on {}", req.url.path)
        raise HTTPException(status_code=403, detail="forbidden")

async def _text_from(req: Request) -> str:
    try:
        body = await req.json()
    except Exception:
        raise HTTPException(status_code=400, detail="invalid json")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="expected a JSON object")
    text_val = body.get("text") or body.get("message") or ""
    if not isinstance(text_val, str) or not text_val.strip():
        raise HTTPException(status_code=400, detail="missing text")
    return text_val

# -------------------- Conversion -------------------- #
# async handlers run on the event loop one at a time, which keeps batches sequential.
@app.post("/convert")
async def convert(req: Request) -> Dict[str, Any]:
    _require_auth(req)
    text_val = await _text_from(req)
    result = get_api_converter().convert_all(text_val)
    return {"text": result.text, "stats": result.stats.as_dict()}

@app.get("/stats")
async def stats(req: Request) -> Dict[str, Any]:
    _require_auth(req)
    return get_api_converter().get_stats()

@app.post("/stats/reset")
async def stats_reset(req: Request) -> Dict[str, Any]:
    _require_auth(req)
    get_api_converter().reset_stats()
    return {"ok": True}

# -------------------- Inbound webhook → queue -------------------- #
@app.post("/webhook/incoming_message")
async def incoming_message(req: Request) -> Dict[str, Any]:
    _require_auth(req)
    text_val = await _text_from(req)
    source = req.query_params.get("source") or req.headers.get("X-Source")
    msg_id = req.headers.get("X-Message-Id")

    logger.info("[API][Webhook] >>> source={} msg_id={} text_len={}", source, msg_id, len(text_val))
    try:
        job = enqueue_convert_message(text_val, source=source, msg_id=msg_id)
    except Exception as e:
        logger.exception("[API][Queue] ❌ Failed to enqueue job")
        raise HTTPException(status_code=503, detail=f"queue unavailable: {e}")

    if job is None:
        return {"ok": True, "duplicate": True}
    return {"ok": True, "job_id": getattr(job, "id", None), "queued_at": int(time.time())}
