from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from schoolstock.core.config import settings
from schoolstock.core.errors import InventoryError
from schoolstock.core.observability import (
    http_exception_handler,
    inventory_exception_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from schoolstock.db.session import engine
from schoolstock.routers import alerts, auth, categories, dashboard, inventory, reports, stock_movements

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Stock ledger API for school supply rooms.\n\n"
        "Swagger quick test flow:\n"
        "1. Call `POST /auth/register` or `POST /auth/login`.\n"
        "2. Click **Authorize** and use your email + password "
        "(OAuth token URL: `/auth/token`).\n"
        "3. Test protected endpoints (`/inventory`, `/stock-movements`, `/alerts/low-stock`, `/dashboard`)."
    ),
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "auth", "description": "Staff authentication."},
        {"name": "inventory", "description": "Items, quantity corrections, and ledger reconciliation."},
        {"name": "categories", "description": "Item categories."},
        {"name": "stock-movements", "description": "The append-only movement log."},
        {"name": "alerts", "description": "Low-stock board and alert delivery."},
        {"name": "dashboard", "description": "Inventory overview metrics."},
        {"name": "charts", "description": "Chart series for the dashboard."},
        {"name": "reports", "description": "CSV report exports."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(InventoryError, inventory_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:3000"]
allow_all_origins = "*" in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(inventory.router)
app.include_router(categories.router)
app.include_router(stock_movements.router)
app.include_router(alerts.router)
app.include_router(dashboard.router)
app.include_router(dashboard.charts_router)
app.include_router(reports.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return {"ok": False}
    return {"ok": True}
