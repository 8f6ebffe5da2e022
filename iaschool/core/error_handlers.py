from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
import logging

logger = logging.getLogger(__name__)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    """Unique/foreign key violations that slipped past service checks"""
    logger.warning(f"Integrity error: {exc.orig} - Path: {request.url.path}")
    return JSONResponse(
        status_code=409,
        content={"detail": {"error": "Conflict", "message": "Record conflicts with existing data"}}
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unexpected error: {str(exc)} - Path: {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "type": "InternalError"}
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
