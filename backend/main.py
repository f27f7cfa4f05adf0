from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging
import os
import sys

from auth.dependencies import enforce_route_policies, recheck_route_policies
from auth.policies import PolicyRegistry, Public, RouteId
from auth.routes import ROUTE_POLICIES as AUTH_POLICIES, router as auth_router
from database import SessionLocal, init_db
from errors import AppError, ValidationFailed
from models import Role, User
from routers import comments, notifications, tasks, users

# Configure logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_PASSWORD = "Admin123!"

HEALTH_POLICIES = [
    (RouteId("health"), Public()),
]


def build_policy_registry() -> PolicyRegistry:
    """Collect every router's policy table into one frozen registry."""
    registry = PolicyRegistry()
    registry.register_all(AUTH_POLICIES)
    registry.register_all(HEALTH_POLICIES)
    for module in (users, tasks, comments, notifications):
        registry.register_all(module.ROUTE_POLICIES)
    registry.freeze()
    return registry


def get_cors_origins() -> list:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app = FastAPI(
    title="Task Tracker API",
    description="A multi-user task tracker with role-based access, task workflow and threaded comments",
    version="1.0.0",
    # Every API route passes through the authentication/authorization gates
    dependencies=[Depends(enforce_route_policies)],
)

app.state.policy_registry = build_policy_registry()

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users.router)
app.include_router(tasks.router)
app.include_router(comments.router)
app.include_router(notifications.router)


# ============== Error handlers ==============

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def describe_location(error: dict) -> str:
    """Field path of a validation error, e.g. "tags.0" or "body" for undecodable JSON."""
    if error.get("type") == "json_invalid":
        return "body"
    return ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # The body is decoded before dependencies run; gate failures take precedence
    try:
        await recheck_route_policies(request)
    except AppError as gate_error:
        return await app_error_handler(request, gate_error)

    messages = []
    for error in exc.errors():
        location = describe_location(error)
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    logger.info(f"Validation failed for {request.method} {request.url.path}: {messages}")
    return await app_error_handler(request, ValidationFailed(messages))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=AppError().to_dict())


# ============== Startup: Ensure Admin User Exists ==============

def ensure_admin_user():
    """
    Ensure an admin account exists.

    Uses ADMIN_EMAIL / ADMIN_PASSWORD if set, otherwise a default for local
    dev. The default password is refused in production-like environments.
    """
    from auth.security import is_production_like, password_hasher

    admin_email = os.getenv("ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL).strip().lower()
    admin_password = os.getenv("ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD)
    is_default_password = admin_password.strip() == DEFAULT_ADMIN_PASSWORD

    db = SessionLocal()
    try:
        if db.query(User).filter(User.role == Role.ADMIN).first():
            logger.info("Admin user already exists")
            return

        if is_production_like():
            if is_default_password or len(admin_password.strip()) < 8:
                logger.error(
                    "STARTUP FAILED: a secure ADMIN_PASSWORD (8+ characters, not the default) "
                    "is required in production/staging"
                )
                sys.exit(1)

        admin = User(
            email=admin_email,
            password_hash=password_hasher.hash(admin_password),
            first_name="Admin",
            last_name="User",
            role=Role.ADMIN,
            is_active=True,
        )
        db.add(admin)
        db.commit()

        if is_default_password:
            logger.warning(
                f"SECURITY WARNING: admin user created with the DEFAULT password ({admin_email}). "
                f"Set ADMIN_PASSWORD and change it after first login."
            )
        else:
            logger.info(f"Admin user created: {admin_email}")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to ensure admin user exists: {e}")
        raise
    finally:
        db.close()


@app.on_event("startup")
def on_startup():
    init_db()
    ensure_admin_user()


# Health check
@app.get("/health", tags=["health"])
def health_check():
    return {"status": "healthy"}
