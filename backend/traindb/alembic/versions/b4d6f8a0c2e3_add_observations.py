"""
Add trainer observation reports.

Revision ID: b4d6f8a0c2e3
Revises: a1c3e5f7b9d0
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "b4d6f8a0c2e3"
down_revision: Union[str, Sequence[str], None] = "a1c3e5f7b9d0"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

RATINGS = ("EXCELLENT", "GOOD", "AVERAGE", "NEEDS_IMPROVEMENT")


def _user_fk(name: str, *, nullable: bool = True, ondelete: str = "SET NULL") -> sa.Column:
    return sa.Column(name, sa.String(length=36), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "observations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _user_fk("trainer_id", nullable=False, ondelete="CASCADE"),
        _user_fk("trainee_id", nullable=False, ondelete="CASCADE"),
        sa.Column("observation_date", sa.Date(), nullable=False),
        sa.Column("culture", sa.JSON(), nullable=False),
        sa.Column("grooming", sa.JSON(), nullable=False),
        sa.Column(
            "overall_rating",
            sa.Enum(*RATINGS, name="observation_rating_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("strengths", sa.JSON(), nullable=False),
        sa.Column("areas_for_improvement", sa.JSON(), nullable=False),
        sa.Column("recommendations", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "status",
            sa.Enum("DRAFT", "SUBMITTED", "REVIEWED", name="observation_status_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("reviewed_by_id"),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("master_trainer_notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "trainer_id",
            "trainee_id",
            "observation_date",
            name="uq_observations_trainer_trainee_date",
        ),
    )
    op.create_index("ix_observations_id", "observations", ["id"])
    op.create_index("ix_observations_trainer_id", "observations", ["trainer_id"])
    op.create_index("ix_observations_trainee_id", "observations", ["trainee_id"])
    op.create_index("ix_observations_observation_date", "observations", ["observation_date"])
    op.create_index("ix_observations_status", "observations", ["status"])
    op.create_index("ix_observations_status_date", "observations", ["status", "observation_date"])


def downgrade() -> None:
    op.drop_table("observations")
