from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database components
from app.database.database import engine, Base

# Import middleware
from app.common.middleware import TenantMiddleware, SecurityHeadersMiddleware

# Import routers
from app.modules.auth.router import auth_router
from app.modules.organizations.router import router as organizations_router
from app.modules.fiscal.router import router as fiscal_router
from app.modules.invoices.router import router as invoices_router
from app.modules.quotes.router import router as quotes_router
from app.modules.clients.router import router as clients_router
from app.modules.products.router import router as products_router
from app.modules.expenses.router import router as expenses_router
from app.modules.payments.router import router as payments_router, accounts_router as payment_accounts_router

from app.modules.fiscal.exceptions import FiscalError

# Import models for table creation
import app.modules.auth.models
import app.modules.organizations.models
import app.modules.fiscal.models
import app.modules.invoices.models
import app.modules.quotes.models
import app.modules.clients.models
import app.modules.products.models
import app.modules.expenses.models
import app.modules.payments.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="FacturaSaaS API",
    description="Facturación multi-organización con numeración fiscal",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TenantMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FiscalError)
async def fiscal_error_handler(request: Request, exc: FiscalError):
    logger.info(f"{exc.kind} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(organizations_router)
app.include_router(fiscal_router)
app.include_router(invoices_router)
app.include_router(quotes_router)
app.include_router(clients_router)
app.include_router(products_router)
app.include_router(expenses_router)
app.include_router(payment_accounts_router)
app.include_router(payments_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=engine)


@app.get("/")
async def read_root():
    return {
        "message": "FacturaSaaS API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("FacturaSaaS API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FacturaSaaS API shutting down...")
