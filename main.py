# backend/main.py
# Sharperly Logistics API: app factory, middleware, error envelope and health check

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import router
from app.config import get_settings
from app.exceptions import ServerError, format_validation_errors
from app.utils.db_setup import close_client, get_client, get_database, setup_db_indexes

load_dotenv()
settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s: %(message)s",
    handlers=[logging.FileHandler("backend.log"), logging.StreamHandler()],
)
logger = logging.getLogger(__name__)

# pymongo is noisy at DEBUG
logging.getLogger("pymongo").setLevel(logging.WARNING)

# Uploads, mail and Google sign-in degrade without these
optional_settings = {
    "AWS_ACCESS_KEY_ID": settings.AWS_ACCESS_KEY_ID,
    "AWS_SECRET_ACCESS_KEY": settings.AWS_SECRET_ACCESS_KEY,
    "S3_BUCKET_NAME": settings.S3_BUCKET_NAME,
    "SMTP_HOST": settings.SMTP_HOST,
    "GOOGLE_CLIENT_ID": settings.GOOGLE_CLIENT_ID,
}
missing_optional = [name for name, value in optional_settings.items() if not value]
if missing_optional:
    logger.warning(
        f"Optional settings not configured: {missing_optional}"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        get_client().admin.command("ping")
        logger.info(f"Connected to MongoDB database {settings.MONGO_DB_NAME}")
        setup_db_indexes(get_database())
    except Exception as e:
        logger.error(f"MongoDB startup failed: {str(e)}")
        raise
    yield
    close_client()


app = FastAPI(
    title="Sharperly Logistics API",
    description="API for dispatch businesses: onboarding, orders, shipments and dashboard reporting",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan,
)

if settings.ENVIRONMENT == "production":
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}
if settings.ENVIRONMENT == "production":
    SECURITY_HEADERS["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(SECURITY_HEADERS)
    return response


# The dashboard frontend sends the token cookie cross-origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=600,
)
logger.info(f"CORS allowed origins: {settings.cors_origins}")


# Every failure leaves the API as {"success": false, "message": ..., **extra}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = {"success": False, "message": exc.detail, **getattr(exc, "extra", {})}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = format_validation_errors(exc.errors())
    logger.warning(f"Validation failed on {request.url.path}: {errors}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {str(exc)}")
    return JSONResponse(status_code=500, content={"success": False, "message": ServerError().detail})


app.include_router(router, prefix="/api")


@app.get("/")
def health_check():
    """Report whether the API can reach MongoDB."""
    try:
        get_client().admin.command("ping")
        return {"success": True, "message": "Sharperly Logistics API is running"}
    except Exception as e:
        logger.error(f"Health check could not reach MongoDB: {str(e)}")
        raise ServerError("Database connection error")
