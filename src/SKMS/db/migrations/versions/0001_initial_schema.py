"""Initial schema: users, skills, assessments, outbox

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-01-15
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as psql

# ---- Alembic identifiers ----
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

JSON_DOC = sa.JSON().with_variant(psql.JSONB(), "postgresql")


def _id() -> sa.Column:
    return sa.Column("id", sa.CHAR(36), nullable=False)


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _fk(col: str, table: str, target: str, ondelete: str | None = None) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        [col], [f"{target}.id"], name=f"fk_{table}_{col}_{target}", ondelete=ondelete
    )


def upgrade() -> None:
    op.create_table(
        "users",
        _id(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("google_id", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("student_type", sa.String(16), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("google_id", name="uq_users_google_id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "skills",
        _id(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        _ts("start_date"),
        _ts("end_date"),
        sa.Column("venue", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_skills"),
    )

    op.create_table(
        "skill_faculty",
        sa.Column("skill_id", sa.CHAR(36), nullable=False),
        sa.Column("user_id", sa.CHAR(36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("skill_id", "user_id", name="pk_skill_faculty"),
        _fk("skill_id", "skill_faculty", "skills", "CASCADE"),
        _fk("user_id", "skill_faculty", "users", "RESTRICT"),
    )

    op.create_table(
        "skill_budgets",
        _id(),
        sa.Column("skill_id", sa.CHAR(36), nullable=False),
        sa.Column("number_of_venues", sa.Integer(), nullable=False),
        sa.Column("number_of_students", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _ts("submitted_at"),
        _ts("reviewed_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_skill_budgets"),
        sa.UniqueConstraint("skill_id", name="uq_skill_budgets_skill_id"),
        _fk("skill_id", "skill_budgets", "skills", "CASCADE"),
        sa.CheckConstraint("number_of_students >= 1", name="ck_skill_budgets_capacity_positive"),
        sa.CheckConstraint("number_of_venues >= 1", name="ck_skill_budgets_venues_positive"),
        sa.CheckConstraint("amount >= 0", name="ck_skill_budgets_amount_non_negative"),
    )

    op.create_table(
        "enrollments",
        _id(),
        sa.Column("skill_id", sa.CHAR(36), nullable=False),
        sa.Column("student_id", sa.CHAR(36), nullable=False),
        _ts("enrolled_at"),
        sa.PrimaryKeyConstraint("id", name="pk_enrollments"),
        sa.UniqueConstraint("skill_id", "student_id", name="uq_enrollments_skill_student"),
        _fk("skill_id", "enrollments", "skills", "CASCADE"),
        _fk("student_id", "enrollments", "users", "CASCADE"),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])

    op.create_table(
        "attendance_records",
        _id(),
        sa.Column("skill_id", sa.CHAR(36), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("marked_by_id", sa.CHAR(36), nullable=False),
        _ts("marked_at"),
        sa.PrimaryKeyConstraint("id", name="pk_attendance_records"),
        sa.UniqueConstraint("skill_id", "session_date", name="uq_attendance_records_skill_date"),
        _fk("skill_id", "attendance_records", "skills", "CASCADE"),
        _fk("marked_by_id", "attendance_records", "users"),
    )

    op.create_table(
        "attendance_presence",
        sa.Column("record_id", sa.CHAR(36), nullable=False),
        sa.Column("student_id", sa.CHAR(36), nullable=False),
        sa.PrimaryKeyConstraint("record_id", "student_id", name="pk_attendance_presence"),
        sa.ForeignKeyConstraint(
            ["record_id"], ["attendance_records.id"],
            name="fk_attendance_presence_record_id_attendance_records", ondelete="CASCADE",
        ),
        _fk("student_id", "attendance_presence", "users", "CASCADE"),
    )

    op.create_table(
        "skill_feedback",
        _id(),
        sa.Column("skill_id", sa.CHAR(36), nullable=False),
        sa.Column("student_id", sa.CHAR(36), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        _ts("submitted_at"),
        sa.PrimaryKeyConstraint("id", name="pk_skill_feedback"),
        sa.UniqueConstraint("skill_id", "student_id", name="uq_skill_feedback_skill_student"),
        _fk("skill_id", "skill_feedback", "skills", "CASCADE"),
        _fk("student_id", "skill_feedback", "users", "CASCADE"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_skill_feedback_rating_range"),
    )

    op.create_table(
        "assessments",
        _id(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("skill_id", sa.CHAR(36), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        _ts("start_time"),
        _ts("end_time"),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_by_id", sa.CHAR(36), nullable=False),
        _ts("published_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_assessments"),
        _fk("skill_id", "assessments", "skills", "CASCADE"),
        _fk("created_by_id", "assessments", "users"),
        sa.CheckConstraint("duration >= 1", name="ck_assessments_duration_positive"),
    )
    op.create_index("ix_assessments_skill_id", "assessments", ["skill_id"])

    op.create_table(
        "assessment_questions",
        _id(),
        sa.Column("assessment_id", sa.CHAR(36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_assessment_questions"),
        _fk("assessment_id", "assessment_questions", "assessments", "CASCADE"),
    )

    op.create_table(
        "assessment_options",
        _id(),
        sa.Column("question_id", sa.CHAR(36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_assessment_options"),
        _fk("question_id", "assessment_options", "assessment_questions", "CASCADE"),
    )

    op.create_table(
        "student_responses",
        _id(),
        sa.Column("assessment_id", sa.CHAR(36), nullable=False),
        sa.Column("student_id", sa.CHAR(36), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        _ts("submitted_at"),
        sa.PrimaryKeyConstraint("id", name="pk_student_responses"),
        sa.UniqueConstraint("assessment_id", "student_id", name="uq_student_responses_assessment_student"),
        _fk("assessment_id", "student_responses", "assessments", "CASCADE"),
        _fk("student_id", "student_responses", "users", "CASCADE"),
    )

    op.create_table(
        "response_answers",
        _id(),
        sa.Column("response_id", sa.CHAR(36), nullable=False),
        sa.Column("question_id", sa.CHAR(36), nullable=False),
        sa.Column("option_id", sa.CHAR(36), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_response_answers"),
        _fk("response_id", "response_answers", "student_responses", "CASCADE"),
    )

    op.create_table(
        "outbound_emails",
        _id(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("html", sa.Text(), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        _ts("next_attempt_at"),
        sa.Column("last_error", sa.Text(), nullable=True),
        _ts("sent_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_outbound_emails"),
    )
    op.create_index("ix_outbound_emails_due", "outbound_emails", ["status", "next_attempt_at"])

    op.create_table(
        "scheduled_tasks",
        _id(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("kind", sa.String(32), nullable=False),
        _ts("run_at"),
        sa.Column("skill_id", sa.CHAR(36), nullable=True),
        sa.Column("payload", JSON_DOC, nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        _ts("fired_at", nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_scheduled_tasks"),
        _fk("skill_id", "scheduled_tasks", "skills", "CASCADE"),
    )
    op.create_index("ix_scheduled_tasks_due", "scheduled_tasks", ["status", "run_at"])


def downgrade() -> None:
    op.drop_index("ix_scheduled_tasks_due", table_name="scheduled_tasks")
    op.drop_table("scheduled_tasks")
    op.drop_index("ix_outbound_emails_due", table_name="outbound_emails")
    op.drop_table("outbound_emails")
    op.drop_table("response_answers")
    op.drop_table("student_responses")
    op.drop_table("assessment_options")
    op.drop_table("assessment_questions")
    op.drop_index("ix_assessments_skill_id", table_name="assessments")
    op.drop_table("assessments")
    op.drop_table("skill_feedback")
    op.drop_table("attendance_presence")
    op.drop_table("attendance_records")
    op.drop_index("ix_enrollments_student_id", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_table("skill_budgets")
    op.drop_table("skill_faculty")
    op.drop_table("skills")
    op.drop_table("users")
