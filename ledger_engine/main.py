"""
Ledger Engine — FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ledger_engine.config import get_settings
from ledger_engine.exceptions import LedgerError
from ledger_engine.logging_config import configure_logging
from ledger_engine.api.health import router as health_router
from ledger_engine.api.accounts import router as accounts_router
from ledger_engine.api.journal import router as journal_router
from ledger_engine.api.reports import router as reports_router
from ledger_engine.api.budgets import router as budgets_router

settings = get_settings()
configure_logging(settings)

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Multi-tenant double-entry general ledger",
)


@app.exception_handler(LedgerError)
def ledger_error_handler(request: Request, exc: LedgerError):
    """Map every ledger error kind to its status code and a JSON body."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(journal_router)
app.include_router(reports_router)
app.include_router(budgets_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ledger_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
