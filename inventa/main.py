from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

# Import database components
from inventa.database.database import engine, Base

# Import middleware
from inventa.common.middleware import SecurityHeadersMiddleware
from inventa.core.config import settings
from inventa.core.exceptions import AppError, new_error_id
from inventa.common.schemas import ERROR_RESPONSES, error_body

# Import routers
from inventa.modules.company.router import company_router
from inventa.modules.join_requests.router import join_requests_router
from inventa.modules.stores.router import stores_router
from inventa.modules.subscriptions.router import router as subscriptions_router
from inventa.modules.products.router import product_router
from inventa.modules.contacts.router import customers_router, providers_router
from inventa.modules.inventory.router import stock_router, movements_router
from inventa.modules.pos.router import sales_router
from inventa.modules.notifications.router import notifications_router

# Import models for table creation
import inventa.modules.auth.models
import inventa.modules.company.models
import inventa.modules.stores.models
import inventa.modules.subscriptions.models
import inventa.modules.products.models
import inventa.modules.contacts.models
import inventa.modules.inventory.models
import inventa.modules.sequences.models
import inventa.modules.invoices.models
import inventa.modules.pos.models
import inventa.modules.join_requests.models
import inventa.modules.notifications.models

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Inventa API",
    description="Multi-tenant inventory and point-of-sale API built with FastAPI, PostgreSQL and MongoDB",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    responses=ERROR_RESPONSES,
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL] if settings.ENVIRONMENT == "production" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===== Error envelope =====

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.errors, exc.error_id))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "general", "message": error.get("msg", "Valor inválido")})
    return JSONResponse(status_code=400, content=error_body(errors))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Error en la solicitud"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body([{"field": "general", "message": message}]),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    error_id = new_error_id()
    logger.exception(f"Unhandled error on {request.method} {request.url.path} error_id={error_id}: {exc}")
    return JSONResponse(
        status_code=500,
        content=error_body([{"field": "general", "message": "Error interno del servidor"}], error_id),
    )


# Include routers
app.include_router(company_router)
app.include_router(join_requests_router)
app.include_router(stores_router)
app.include_router(subscriptions_router)
app.include_router(product_router)
app.include_router(customers_router)
app.include_router(providers_router)
app.include_router(stock_router)
app.include_router(movements_router)
app.include_router(sales_router)
app.include_router(notifications_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=engine)


@app.get("/")
def read_root():
    return {
        "message": "Inventa API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("Inventa API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    if not settings.MONGODB_DB:
        logger.warning("MONGODB_DB is not set; tenant provisioning and join requests will fail")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Inventa API shutting down...")
