from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
import os
import logging

from allevapp.api import (
    auth, users, farms, suppliers, equipment, facilities, reports, quotes, orders,
    projects, documents, attachments, maintenance, dashboard, notifications
)
from allevapp.config import settings
from allevapp.database import engine
from allevapp.errors import AppError, app_error_handler
from allevapp.models import Base
from allevapp.services.storage import s3_configured
from allevapp.utils.rate_limiter import limiter, rate_limit_exceeded_handler

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="AllevApp API", description="Farm operations: maintenance, reports, quotes and orders")

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Local fallback storage for uploads when S3 is not configured
os.makedirs(settings.local_storage_dir, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.local_storage_dir), name="uploads")

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(farms.router, prefix="/api/farms", tags=["Farms"])
app.include_router(suppliers.router, prefix="/api/suppliers", tags=["Suppliers"])
app.include_router(equipment.router, prefix="/api/equipment", tags=["Equipment"])
app.include_router(facilities.router, prefix="/api/facilities", tags=["Facilities"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])
app.include_router(quotes.router, prefix="/api/quotes", tags=["Quotes"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
app.include_router(documents.router, prefix="/api/documents", tags=["Documents"])
app.include_router(attachments.router, prefix="/api/attachments", tags=["Attachments"])
app.include_router(maintenance.router, prefix="/api/maintenance", tags=["Maintenance"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])


@app.get("/")
async def root():
    return {"message": "AllevApp API is running"}


@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "services": {
            "s3": s3_configured(),
            "microsoft_graph": settings.microsoft_configured,
            "smtp": bool(settings.smtp_username and settings.smtp_password),
        }
    }
