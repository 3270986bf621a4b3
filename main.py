"""
AHSO Store - Application Entry Point
======================================
FastAPI app initialization, exception handlers, middleware,
background scheduler, and router registration.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from apscheduler.schedulers.background import BackgroundScheduler

from config import settings
from config.database import SessionLocal, Base, engine
from common.exceptions import AppError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

scheduler_logger = logging.getLogger("ahso.scheduler")
request_logger = logging.getLogger("ahso.request")
error_logger = logging.getLogger("ahso.errors")

# ==========================================
# Import ALL models so Base sees every table
# ==========================================
from modules.user.models import User  # noqa: F401,E402
from modules.catalog.models import Brand, Category, Product, ProductVariant  # noqa: F401,E402
from modules.cart.models import Cart, CartItem  # noqa: F401,E402
from modules.order.models import Order, OrderItem  # noqa: F401,E402

# ==========================================
# Import routers
# ==========================================
from modules.auth.routes import router as auth_router  # noqa: E402
from modules.catalog.routes import router as catalog_router  # noqa: E402
from modules.catalog.admin_routes import router as catalog_admin_router  # noqa: E402
from modules.cart.routes import router as cart_router  # noqa: E402
from modules.checkout.routes import router as checkout_router  # noqa: E402
from modules.order.routes import router as order_router  # noqa: E402
from modules.order.staff_routes import router as staff_order_router  # noqa: E402
from modules.search.routes import router as search_router  # noqa: E402
from modules.admin.routes import router as admin_users_router  # noqa: E402
from modules.customer.routes import router as profile_router  # noqa: E402


# ==========================================
# Background Scheduler: Guest Cart Cleanup
# ==========================================
def _cleanup_guest_carts():
    """Background job: drop guest carts untouched for GUEST_CART_TTL_DAYS."""
    db = SessionLocal()
    try:
        from modules.cart.service import cart_service
        count = cart_service.cleanup_guest_carts(db, settings.GUEST_CART_TTL_DAYS)
        db.commit()
        if count:
            scheduler_logger.info(f"Deleted {count} abandoned guest carts")
    except Exception as e:
        db.rollback()
        scheduler_logger.error(f"Guest cart cleanup error: {e}")
    finally:
        db.close()


scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)

    if settings.SCHEDULER_ENABLED:
        scheduler.add_job(_cleanup_guest_carts, 'interval', hours=6, id='guest_cart_cleanup')
        scheduler.start()
        scheduler_logger.info("Background scheduler started (guest carts: 6h)")
    yield
    if scheduler.running:
        scheduler.shutdown()
        scheduler_logger.info("Background scheduler stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="AHSO Industrial Store",
    description="Industrial equipment storefront and back-office API",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)


# ==========================================
# Exception handlers
# ==========================================
async def app_error_handler(request: Request, exc: AppError):
    """Business errors -> {"error": code, "message": ..., **extra}."""
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": str(err.get("msg", "")),
            "type": str(err.get("type", "")),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        {"error": "VALIDATION_ERROR", "message": "Invalid request data.", "details": details},
        status_code=400,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}.get(exc.status_code, "HTTP_ERROR")
    return JSONResponse(
        {"error": code, "message": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    error_logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        {"error": "INTERNAL_SERVER_ERROR", "message": "Internal server error."},
        status_code=500,
    )


app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)


# ==========================================
# Middleware: Request Log
# ==========================================
_SKIP_PATHS = ("/health", "/favicon.ico")


def _identify_user(request: Request) -> str:
    """Username from the JWT payload, no DB lookup."""
    from common.security import decode_token, get_token_from_request

    token = get_token_from_request(request)
    if token:
        payload = decode_token(token)
        if payload:
            return payload.get("username") or f"#{payload.get('sub', '?')}"
    return "anonymous"


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, user and latency of every API request."""
    path = request.url.path
    if path.startswith(_SKIP_PATHS):
        return await call_next(request)

    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    request_logger.info(
        f"{request.method} {path} -> {response.status_code} "
        f"user={_identify_user(request)} {elapsed_ms}ms"
    )
    return response


# ==========================================
# Register Routers
# ==========================================
app.include_router(auth_router)
app.include_router(catalog_router)
app.include_router(catalog_admin_router)
app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(order_router)
app.include_router(staff_order_router)
app.include_router(search_router)
app.include_router(admin_users_router)
app.include_router(profile_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.APP_VERSION}
