"""create scheduling tables

Revision ID: 20261016_0001
Revises: None
Create Date: 2026-10-16 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261016_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("cohort", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_students_email", "students", ["email"], unique=True)

    op.create_table(
        "preceptors",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("specialty", sa.String(length=100), nullable=True),
        sa.Column("site_id", sa.String(length=36), nullable=True),
        sa.Column("max_students", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_preceptors_email", "preceptors", ["email"], unique=True)
    op.create_index("ix_preceptors_site_id", "preceptors", ["site_id"])

    op.create_table(
        "clerkships",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("specialty", sa.String(length=100), nullable=True),
        sa.Column("required_days", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "preceptor_teams",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column(
            "clerkship_id",
            sa.String(length=36),
            sa.ForeignKey("clerkships.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_preceptor_teams_clerkship_id", "preceptor_teams", ["clerkship_id"])

    op.create_table(
        "preceptor_team_members",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "team_id",
            sa.String(length=36),
            sa.ForeignKey("preceptor_teams.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "preceptor_id",
            sa.String(length=36),
            sa.ForeignKey("preceptors.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("team_id", "preceptor_id", name="uq_preceptor_team_members_team_preceptor"),
    )
    op.create_index("ix_preceptor_team_members_team_id", "preceptor_team_members", ["team_id"])
    op.create_index("ix_preceptor_team_members_preceptor_id", "preceptor_team_members", ["preceptor_id"])

    op.create_table(
        "preceptor_availability",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "preceptor_id",
            sa.String(length=36),
            sa.ForeignKey("preceptors.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("preceptor_id", "date", name="uq_preceptor_availability_preceptor_date"),
    )
    op.create_index("ix_preceptor_availability_preceptor_id", "preceptor_availability", ["preceptor_id"])
    op.create_index("ix_preceptor_availability_date", "preceptor_availability", ["date"])

    op.create_table(
        "blackout_dates",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_blackout_dates_date", "blackout_dates", ["date"], unique=True)

    op.create_table(
        "schedule_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("student_id", sa.String(length=36), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("preceptor_id", sa.String(length=36), sa.ForeignKey("preceptors.id"), nullable=False),
        sa.Column("clerkship_id", sa.String(length=36), sa.ForeignKey("clerkships.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="scheduled"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("student_id", "date", name="uq_schedule_assignments_student_date"),
    )
    op.create_index("ix_schedule_assignments_student_id", "schedule_assignments", ["student_id"])
    op.create_index("ix_schedule_assignments_clerkship_id", "schedule_assignments", ["clerkship_id"])
    op.create_index("ix_schedule_assignments_date", "schedule_assignments", ["date"])
    op.create_index("ix_schedule_assignments_preceptor_date", "schedule_assignments", ["preceptor_id", "date"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor", sa.String(length=200), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_action", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_schedule_assignments_preceptor_date", table_name="schedule_assignments")
    op.drop_index("ix_schedule_assignments_date", table_name="schedule_assignments")
    op.drop_index("ix_schedule_assignments_clerkship_id", table_name="schedule_assignments")
    op.drop_index("ix_schedule_assignments_student_id", table_name="schedule_assignments")
    op.drop_table("schedule_assignments")
    op.drop_index("ix_blackout_dates_date", table_name="blackout_dates")
    op.drop_table("blackout_dates")
    op.drop_index("ix_preceptor_availability_date", table_name="preceptor_availability")
    op.drop_index("ix_preceptor_availability_preceptor_id", table_name="preceptor_availability")
    op.drop_table("preceptor_availability")
    op.drop_index("ix_preceptor_team_members_preceptor_id", table_name="preceptor_team_members")
    op.drop_index("ix_preceptor_team_members_team_id", table_name="preceptor_team_members")
    op.drop_table("preceptor_team_members")
    op.drop_index("ix_preceptor_teams_clerkship_id", table_name="preceptor_teams")
    op.drop_table("preceptor_teams")
    op.drop_table("clerkships")
    op.drop_index("ix_preceptors_site_id", table_name="preceptors")
    op.drop_index("ix_preceptors_email", table_name="preceptors")
    op.drop_table("preceptors")
    op.drop_index("ix_students_email", table_name="students")
    op.drop_table("students")
