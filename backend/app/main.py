# Invoicing backend entrypoint: FastAPI app, routers and background billing scheduler.

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api import clients
from backend.app.api import dashboard
from backend.app.api import invoices
from backend.app.api import login
from backend.app.api import payments
from backend.app.api import recurring_templates
from backend.app.api import register
from backend.app.core.errors import InvoicingError
from backend.app.core.settings import get_settings
from backend.app.db.base import Base
from backend.app.db.session import engine
from backend.app.services.scheduler import init_scheduler, shutdown_scheduler

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    settings.frontend_url,
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(register.router)
app.include_router(login.router)
app.include_router(clients.router)
app.include_router(invoices.router)
app.include_router(recurring_templates.router)
app.include_router(recurring_templates.items_router)
app.include_router(dashboard.router)
app.include_router(payments.router)


@app.exception_handler(InvoicingError)
async def invoicing_error_handler(request: Request, exc: InvoicingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
def read_root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def start_billing():
    Base.metadata.create_all(bind=engine)
    init_scheduler(settings)


@app.on_event("shutdown")
def stop_billing():
    shutdown_scheduler()
