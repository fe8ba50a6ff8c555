import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from receiptdesk.config import settings
from receiptdesk.database import create_db_and_tables, dispose_engine
from receiptdesk.errors import AppError
from receiptdesk.routes import admin, customer, health, payments, receipts, webhooks

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Migrations own the schema outside local/test
    if settings.ENV in ("local", "test"):
        create_db_and_tables()
    yield
    dispose_engine()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _envelope(status_code: int, message: str, error=None, headers=None, **extra):
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "message": message, "error": error, **extra}),
        headers=headers,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.detail})")
    return _envelope(exc.status_code, exc.message, exc.detail)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    return _envelope(400, "Invalid request", errors, errors=errors)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


app.include_router(payments.router, prefix="/payment", tags=["Payments"])
app.include_router(webhooks.router, tags=["Gateway Callbacks"])
app.include_router(receipts.router, prefix="/receipt", tags=["Receipts"])
app.include_router(customer.router, prefix="/customer", tags=["Customer"])
app.include_router(admin.router, prefix="/admin", tags=["Admin Endpoints"])
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {
        "payment_endpoints": [
            "/payment/create-order", "/payment/verify", "/payment/verify-utr",
            "/payment/qr-payment", "/payment/details",
        ],
        "callback_endpoints": [
            "/webhook/cashfree", "/webhook/razorpay", "/payment/phonepe-callback",
        ],
        "receipt_endpoints": [
            "/receipt/{receipt_id}", "/receipt/payment/{payment_id}",
            "/receipt/download/{receipt_id}", "/receipt/send-email/{receipt_id}",
        ],
        "customer_endpoints": ["/customer/login", "/customer/payments"],
        "admin_endpoints": [
            "/admin/login", "/admin/stats", "/admin/payments", "/admin/receipts",
            "/admin/users", "/admin/send-reminder", "/admin/reminders",
            "/admin/direct-receipt",
        ],
    }
