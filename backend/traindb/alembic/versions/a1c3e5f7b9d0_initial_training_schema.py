"""
Initial training programme schema: users, assignment ledger, day plans,
notifications and audit events.

Revision ID: a1c3e5f7b9d0
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c3e5f7b9d0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLES = ("TRAINEE", "TRAINER", "MASTER_TRAINER", "BOA", "ADMIN")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _user_fk(name: str, *, nullable: bool = True, ondelete: str = "SET NULL") -> sa.Column:
    return sa.Column(name, sa.String(length=36), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("author_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum(*ROLES, name="account_role_enum"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("employee_id", sa.String(length=64), nullable=True, unique=True),
        sa.Column("department", sa.String(length=128), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("joining_date", sa.Date(), nullable=True),
        _user_fk("assigned_trainer_id"),
        sa.Column("assigned_trainee_ids", sa.JSON(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("created_by_id"),
        *_timestamps(),
    )
    op.create_index("ix_users_author_id", "users", ["author_id"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("ix_users_assigned_trainer_id", "users", ["assigned_trainer_id"])
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _user_fk("master_trainer_id", nullable=False, ondelete="RESTRICT"),
        _user_fk("trainer_id", nullable=False, ondelete="RESTRICT"),
        sa.Column("trainee_ids", sa.JSON(), nullable=False),
        sa.Column("assignment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "ACTIVE",
                "INACTIVE",
                "COMPLETED",
                "CANCELLED",
                name="assignment_status_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("instructions", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_acknowledged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_trainees", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active_trainees", sa.Integer(), nullable=False, server_default="0"),
        _user_fk("created_by_id"),
        _user_fk("modified_by_id"),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_assignments_id", "assignments", ["id"])
    op.create_index("ix_assignments_master_trainer_id", "assignments", ["master_trainer_id"])
    op.create_index("ix_assignments_trainer_id", "assignments", ["trainer_id"])
    op.create_index("ix_assignments_status", "assignments", ["status"])
    op.create_index(
        "ix_assignments_master_trainer_status",
        "assignments",
        ["master_trainer_id", "trainer_id", "status"],
    )
    op.create_index(
        "uq_assignments_trainer_active",
        "assignments",
        ["trainer_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "trainee_day_plans",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _user_fk("trainee_id", nullable=False, ondelete="CASCADE"),
        sa.Column("plan_date", sa.Date(), nullable=False),
        sa.Column("tasks", sa.JSON(), nullable=False),
        sa.Column("checkboxes", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "DRAFT",
                "IN_PROGRESS",
                "PENDING",
                "COMPLETED",
                "REJECTED",
                name="trainee_day_plan_status_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("created_by_id"),
        sa.Column("created_by_role", sa.String(length=32), nullable=False, server_default="trainee"),
        _user_fk("reviewed_by_id"),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_comments", sa.Text(), nullable=True),
        _user_fk("approved_by_id"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "eod_status",
            sa.Enum("SUBMITTED", "APPROVED", "REJECTED", name="eod_status_enum", native_enum=False),
            nullable=True,
        ),
        sa.Column("eod_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("eod_overall_remarks", sa.Text(), nullable=True),
        _user_fk("eod_reviewed_by_id"),
        sa.Column("eod_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("eod_review_comments", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("trainee_id", "plan_date", name="uq_trainee_day_plans_trainee_date"),
    )
    op.create_index("ix_trainee_day_plans_id", "trainee_day_plans", ["id"])
    op.create_index("ix_trainee_day_plans_trainee_id", "trainee_day_plans", ["trainee_id"])
    op.create_index("ix_trainee_day_plans_plan_date", "trainee_day_plans", ["plan_date"])
    op.create_index("ix_trainee_day_plans_status", "trainee_day_plans", ["status"])
    op.create_index("ix_trainee_day_plans_status_date", "trainee_day_plans", ["status", "plan_date"])

    op.create_table(
        "day_plans",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _user_fk("trainer_id", nullable=False, ondelete="CASCADE"),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("plan_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("duration_hours", sa.Float(), nullable=False),
        sa.Column("tasks", sa.JSON(), nullable=False),
        sa.Column("audience_ids", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("DRAFT", "PUBLISHED", "COMPLETED", name="day_plan_status_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("feedback", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
    )
    op.create_index("ix_day_plans_id", "day_plans", ["id"])
    op.create_index("ix_day_plans_trainer_id", "day_plans", ["trainer_id"])
    op.create_index("ix_day_plans_plan_date", "day_plans", ["plan_date"])
    op.create_index("ix_day_plans_status", "day_plans", ["status"])
    op.create_index("ix_day_plans_trainer_date", "day_plans", ["trainer_id", "plan_date"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _user_fk("recipient_id", nullable=False, ondelete="CASCADE"),
        sa.Column(
            "recipient_role",
            sa.Enum(*ROLES, name="notification_recipient_role_enum", native_enum=False),
            nullable=False,
        ),
        _user_fk("sender_id"),
        sa.Column(
            "type",
            sa.Enum(
                "ASSIGNMENT",
                "DAY_PLAN",
                "TRAINEE_DAY_PLAN",
                "OBSERVATION",
                "SIGN_IN_NOTIFICATION",
                "GENERAL",
                name="notification_type_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "priority",
            sa.Enum("LOW", "MEDIUM", "HIGH", "URGENT", name="notification_priority_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("related_entity_type", sa.String(length=64), nullable=True),
        sa.Column("related_entity_id", sa.String(length=64), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("requires_action", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("action_url", sa.String(length=512), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "delivery_status",
            sa.Enum(
                "QUEUED",
                "SENT",
                "FAILED",
                "SKIPPED_NO_PROVIDER",
                name="notification_delivery_status_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("delivery_error", sa.Text(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index(
        "ix_notifications_recipient_read_created",
        "notifications",
        ["recipient_id", "is_read", "created_at"],
    )
    op.create_index("ix_notifications_type_created", "notifications", ["type", "created_at"])
    op.create_index("ix_notifications_related", "notifications", ["related_entity_type", "related_entity_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        _user_fk("actor_user_id"),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_events_id", "audit_events", ["id"])
    op.create_index("ix_audit_events_entity_type", "audit_events", ["entity_type"])
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])
    op.create_index("ix_audit_events_actor_user_id", "audit_events", ["actor_user_id"])
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"])
    op.create_index("ix_audit_events_correlation_id", "audit_events", ["correlation_id"])
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_time_desc", "audit_events", [sa.text("occurred_at DESC")])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("notifications")
    op.drop_table("day_plans")
    op.drop_table("trainee_day_plans")
    op.drop_index("uq_assignments_trainer_active", table_name="assignments")
    op.drop_table("assignments")
    op.drop_table("users")
    sa.Enum(name="account_role_enum").drop(op.get_bind(), checkfirst=True)
