"""Initial approval workflow schema

Revision ID: 001_initial_approval
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial_approval"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False, server_default: bool = True) -> sa.Column:
    # SQL-standard CURRENT_TIMESTAMP works on SQLite and Postgres
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP") if server_default else None,
        nullable=nullable,
    )


def upgrade() -> None:
    # Skip if the app's create_all() already built the schema (local SQLite)
    bind = op.get_bind()
    if "approval_requests" in sa.inspect(bind).get_table_names():
        return

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("role_rank", sa.Integer(), nullable=False, server_default=sa.text("99")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_roles_id", "roles", ["id"])
    op.create_index("ix_roles_name", "roles", ["name"], unique=True)
    op.create_index("ix_roles_role_rank", "roles", ["role_rank"])

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("emp_code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("reporting_manager_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=True),
        sa.Column("password_hash", sa.String(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_employees_id", "employees", ["id"])
    op.create_index("ix_employees_emp_code", "employees", ["emp_code"], unique=True)

    op.create_table(
        "manager_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        sa.UniqueConstraint("employee_id", "rank", name="uq_manager_assignment_employee_rank"),
        sa.CheckConstraint("employee_id <> manager_id", name="ck_manager_assignment_not_self"),
        sa.CheckConstraint("rank >= 0", name="ck_manager_assignment_rank_non_negative"),
    )
    op.create_index("ix_manager_assignments_id", "manager_assignments", ["id"])
    op.create_index("ix_manager_assignments_employee_id", "manager_assignments", ["employee_id"])
    op.create_index("ix_manager_assignments_manager_id", "manager_assignments", ["manager_id"])

    op.create_table(
        "delegations",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("delegator_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("delegate_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_to", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scope_rank", sa.Integer(), nullable=True),
        sa.Column("request_type", sa.String(), nullable=True),
        sa.Column("excluded_employee_ids", sa.JSON(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_by", sa.Integer(), sa.ForeignKey("employees.id"), nullable=True),
        sa.Column("revocation_reason", sa.Text(), nullable=True),
        sa.CheckConstraint("delegator_id <> delegate_id", name="ck_delegation_not_self"),
    )
    op.create_index("ix_delegations_id", "delegations", ["id"])
    op.create_index("ix_delegations_delegator_id", "delegations", ["delegator_id"])
    op.create_index("ix_delegations_delegate_id", "delegations", ["delegate_id"])
    op.create_index("ix_delegations_valid_from", "delegations", ["valid_from"])
    op.create_index("ix_delegations_valid_to", "delegations", ["valid_to"])

    op.create_table(
        "approval_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("request_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("current_rank", sa.Integer(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("submitted_by", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_approval_requests_id", "approval_requests", ["id"])
    op.create_index("ix_approval_requests_employee_id", "approval_requests", ["employee_id"])
    op.create_index("ix_approval_requests_request_type", "approval_requests", ["request_type"])
    op.create_index("ix_approval_requests_status", "approval_requests", ["status"])

    op.create_table(
        "approval_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "request_id",
            sa.Integer(),
            sa.ForeignKey("approval_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("acting_as_delegate_of", sa.Integer(), sa.ForeignKey("employees.id"), nullable=True),
        sa.Column("decision", sa.String(), nullable=False),
        sa.Column("from_status", sa.String(), nullable=True),
        sa.Column("to_status", sa.String(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("request_id", "rank", name="uq_approval_event_request_rank"),
    )
    op.create_index("ix_approval_events_id", "approval_events", ["id"])
    op.create_index("ix_approval_events_request_id", "approval_events", ["request_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("meta_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("recipient_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "request_id",
            sa.Integer(),
            sa.ForeignKey("approval_requests.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("delegation_id", sa.Integer(), sa.ForeignKey("delegations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("updated_by", sa.Integer(), sa.ForeignKey("employees.id"), nullable=True),
        _timestamp("updated_at"),
    )
    op.create_index("ix_system_settings_id", "system_settings", ["id"])
    op.create_index("ix_system_settings_key", "system_settings", ["key"], unique=True)

    # Seed default roles; smaller rank = higher authority
    roles_table = sa.table(
        "roles",
        sa.column("name", sa.String),
        sa.column("role_rank", sa.Integer),
        sa.column("is_active", sa.Boolean),
    )
    op.bulk_insert(
        roles_table,
        [
            {"name": "ADMIN", "role_rank": 1, "is_active": True},
            {"name": "MD", "role_rank": 2, "is_active": True},
            {"name": "VP", "role_rank": 3, "is_active": True},
            {"name": "MANAGER", "role_rank": 4, "is_active": True},
            {"name": "HR", "role_rank": 5, "is_active": True},
            {"name": "EMPLOYEE", "role_rank": 6, "is_active": True},
        ],
    )


def downgrade() -> None:
    op.drop_table("system_settings")
    op.drop_table("notifications")
    op.drop_table("audit_logs")
    op.drop_table("approval_events")
    op.drop_table("approval_requests")
    op.drop_table("delegations")
    op.drop_table("manager_assignments")
    op.drop_table("employees")
    op.drop_table("roles")
