import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.v1.router import router as v1_router
from app.core.errors import LedgerError, TransientError
from app.core.telemetry import setup_telemetry
from app.schemas.common import ErrorResponse

log = logging.getLogger(__name__)

app = FastAPI(title="Listing Ledger API", version="0.1.0")

setup_telemetry(app)
app.include_router(v1_router)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    body = ErrorResponse(code=exc.code, message=exc.message, details=exc.details)
    headers = {"Retry-After": "1"} if isinstance(exc, TransientError) else None
    if exc.status_code >= 500:
        log.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=headers)
