"""
HR approvals service - main application entry point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError

from hr_approvals.api.router import api_router
from hr_approvals.core.config import settings
from hr_approvals.core.errors import (
    approval_error_handler,
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from hr_approvals.core.exceptions import ApprovalError
from hr_approvals.core.logging import setup_logging
from hr_approvals.core.security import hash_password
from hr_approvals.db.session import SessionLocal
from hr_approvals.models.employee import Employee, Role
from hr_approvals.models.role import RoleModel

setup_logging()
logger = logging.getLogger(__name__)

# Smaller rank = higher authority
DEFAULT_ROLE_RANKS = {
    Role.ADMIN.value: 1,
    Role.MD.value: 2,
    Role.VP.value: 3,
    Role.MANAGER.value: 4,
    Role.HR.value: 5,
    Role.EMPLOYEE.value: 6,
}


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return "***"
    if parsed.scheme.startswith("sqlite") or not parsed.password:
        return url
    netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


app = FastAPI(
    title="HR Approvals",
    description="Multi-level approval workflow for leave, overtime and attendance correction requests",
    version=settings.VERSION or "1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ApprovalError, approval_error_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))


def bootstrap_roles_and_admin(db) -> None:
    """
    Seed the roles table and an initial administrator when none exist

    Safe to run repeatedly: existing roles and admins are left untouched.
    """
    existing = {r.name for r in db.query(RoleModel).all()}
    for name, rank in DEFAULT_ROLE_RANKS.items():
        if name not in existing:
            db.add(RoleModel(name=name, role_rank=rank, is_active=True))
            logger.info("Created role %s with role_rank=%s", name, rank)
    db.flush()

    admin_exists = db.query(Employee).filter(
        (Employee.emp_code == settings.INITIAL_ADMIN_CODE) | (Employee.role == Role.ADMIN.value)
    ).first()
    if admin_exists:
        db.commit()
        logger.info("Admin user already exists, skipping initial bootstrap")
        return

    db.add(Employee(
        emp_code=settings.INITIAL_ADMIN_CODE,
        name="System Administrator",
        role=Role.ADMIN.value,
        password_hash=hash_password(settings.INITIAL_ADMIN_PASSWORD),
        active=True,
    ))
    db.commit()
    logger.info("Initial admin user created: emp_code=%s", settings.INITIAL_ADMIN_CODE)


@app.on_event("startup")
def bootstrap_initial_admin() -> None:
    db = SessionLocal()
    try:
        bootstrap_roles_and_admin(db)
    except OperationalError as e:
        db.rollback()
        if "no such table" in str(e).lower():
            logger.warning("Database tables not ready yet (run alembic upgrade head), skipping bootstrap")
        else:
            logger.error("Database error during admin bootstrap: %s", e)
    finally:
        db.close()
