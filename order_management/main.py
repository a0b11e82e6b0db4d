import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .config import EVENTS_ENABLED, LOG_FORMAT, LOG_LEVEL
from .consumers import start_consumer_thread
from .database import Base, engine
from .exceptions import OrderManagementError
from .messaging.producer import get_publisher
from .routers import customers, orders, products

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    # Create database tables on startup if they don't exist.
    Base.metadata.create_all(bind=engine)
    if EVENTS_ENABLED:
        start_consumer_thread()
    logger.info("Order management service started (events %s)", "on" if EVENTS_ENABLED else "off")
    yield
    get_publisher().close()


app = FastAPI(title="Order Management Service", version=__version__, lifespan=lifespan)

app.include_router(products.router)
app.include_router(customers.router)
app.include_router(orders.router)


def error_body(request, status_code, error, message, details=None):
    body = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status_code,
        "error": error,
        "message": message,
        "path": request.url.path,
    }
    if details is not None:
        body["details"] = details
    return body


# --- Error Handlers ---

@app.exception_handler(OrderManagementError)
async def handle_business_error(request: Request, exc: OrderManagementError):
    logger.warning("%s on %s: %s", exc.error, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, exc.error, exc.message),
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"] if part != "body")
        details.setdefault(field or "body", err["msg"])
    logger.warning("Request validation failed on %s: %s", request.url.path, details)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(
            request, status.HTTP_400_BAD_REQUEST, "Validation Failed",
            "Request parameters failed validation", details,
        ),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error",
            "An unexpected error occurred, please try again later",
        ),
    )


# --- Endpoints ---

@app.get("/")
def root():
    """Health check endpoint."""
    return {"message": "Order management service is running"}


@app.get("/health")
def health():
    return {"status": "ok", "service": "order-management"}
