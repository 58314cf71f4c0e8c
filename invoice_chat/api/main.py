"""
FastAPI application entry-point for the SQL gateway.
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from invoice_chat.api.routers import health, query
from invoice_chat.core.config import get_settings
from invoice_chat.core.errors import InvoiceChatError
from invoice_chat.core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Invoice Chat Gateway",
    version="0.1.0",
    description="Read-only SQL gateway for the invoice chat front end",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins.split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvoiceChatError)
async def invoice_chat_error_handler(request: Request, exc: InvoiceChatError):
    logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.kind)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("%s %s -> 400 unreadable body", request.method, request.url.path)
    return JSONResponse(status_code=400, content={"error": "SQL query is required"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc)})


app.include_router(health.router, tags=["Health"])
app.include_router(query.router, tags=["Gateway"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=get_settings().api_port)
