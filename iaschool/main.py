from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

from .core.config import settings
from .core.database import close_db_connections
from .core.cache import cache_manager
from .core.error_handlers import register_exception_handlers
from .core.logging import setup_logging

# Import all routers
from .routers import (
    health, auth, public, appointments, calendar, gallery,
    messages, payments, store, documents, uploads
)
from .routers.school_authority import (
    referrals as authority_referrals, scholarships, tutors, enrollments, crm
)
from .routers.parent_portal import referrals as parent_referrals

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting IA School API")

    # Initialize cache
    await cache_manager.initialize()
    logger.info("Cache initialized" if cache_manager.enabled else "Cache disabled")

    yield

    logger.info("Shutting down IA School API")
    await cache_manager.close()
    await close_db_connections()
    logger.info("Shutdown complete")

app = FastAPI(
    title="IA School API",
    description="Multi-tenant school management: admissions, payments, store, gallery, messaging and CRM",
    version=settings.app_version,
    lifespan=lifespan
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {process_time:.3f}s")
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

register_exception_handlers(app)

# Include all routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(public.router)
app.include_router(authority_referrals.router)
app.include_router(parent_referrals.router)
app.include_router(enrollments.router)
app.include_router(scholarships.router)
app.include_router(tutors.router)
app.include_router(crm.router)
app.include_router(payments.router)
app.include_router(store.router)
app.include_router(appointments.router)
app.include_router(calendar.router)
app.include_router(gallery.router)
app.include_router(messages.router)
app.include_router(documents.router)
app.include_router(uploads.router)


@app.get("/")
async def root():
    return {
        "message": "IA School API",
        "version": settings.app_version,
        "features": ["Multi-tenant", "Admissions", "Payments", "Store", "AI Gallery", "Messaging", "CRM"],
        "status": "active"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, reload=True)
