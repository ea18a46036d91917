"""Exception handlers that turn errors into ``{"error", "message", "details"}`` JSON.

Domain errors carry their own status code. A SQLAlchemy error that escaped
a service is reported as DATABASE_ERROR without leaking the statement.
"""

import logging

import sqlalchemy.exc
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..exceptions import DatabaseError, WikiException

logger = logging.getLogger(__name__)


async def wiki_exception_handler(request: Request, exc: WikiException) -> JSONResponse:
    """Client errors (4xx) are logged at WARNING, everything else at ERROR."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"{exc.error_code.value}: {exc.message}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code,
        },
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def database_exception_handler(request: Request, exc: sqlalchemy.exc.SQLAlchemyError) -> JSONResponse:
    logger.exception(
        "Unhandled database error",
        extra={"path": request.url.path, "method": request.method},
    )
    error = DatabaseError("Database operation failed")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WikiException, wiki_exception_handler)
    app.add_exception_handler(sqlalchemy.exc.SQLAlchemyError, database_exception_handler)
