"""
Main FastAPI application
"""
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from printshop.config import settings
from printshop.routes import (
    admin, auth, cart, coupons, customer, payment, public, reviews, upload, webhook, wishlist,
)
from printshop.utils.database import create_tables, get_db
from printshop.utils.db_retry import check_database_connection
from printshop.utils.errors import AppError
from printshop.utils.logger import setup_logging
from printshop.utils.response import send_error, send_success

setup_logging()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Print-on-demand storefront and back-office API",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return send_error(exc.message, exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return send_error("Invalid request", 400)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return send_error(f"{location}: {message}" if location else message, 400)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return send_error(str(exc.detail), exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return send_error("Internal server error", 500)


@app.on_event("startup")
async def startup_event():
    """Create database tables on startup"""
    create_tables()
    logger.info(f"{settings.app_name} {settings.app_version} started")


@app.get("/")
async def root():
    """Root endpoint"""
    return send_success({
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    })


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint"""
    if not check_database_connection(db):
        return send_error("Database unavailable", 503)
    return send_success({"status": "healthy", "database": "connected"})


for module in (auth, public, cart, wishlist, coupons, customer, payment, webhook, reviews, upload, admin):
    app.include_router(module.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
