"""initial_tester_hub_schema

Create testers, bugs, comments and activity_events tables.

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c1e2a9d4b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "testers" not in existing_tables:
        op.create_table(
            "testers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("nickname", sa.String(length=100), nullable=True),
            sa.Column("telegram", sa.String(length=100), nullable=True),
            sa.Column("device_type", sa.String(length=50), nullable=False),
            sa.Column("os", sa.String(length=50), nullable=False),
            sa.Column("os_version", sa.String(length=50), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("registration_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_activity_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("bugs_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("rating", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email", name="uq_testers_email"),
        )
        op.create_index("idx_testers_status", "testers", ["status"])
        op.create_index("idx_testers_rating", "testers", ["rating"])

    if "bugs" not in existing_tables:
        op.create_table(
            "bugs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tester_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=500), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="new"),
            sa.Column("priority", sa.String(length=20), nullable=False),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("fixed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["tester_id"], ["testers.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_bugs_tester_id", "bugs", ["tester_id"])
        op.create_index("idx_bugs_status", "bugs", ["status"])
        op.create_index("idx_bugs_priority", "bugs", ["priority"])
        op.create_index("idx_bugs_created_at", "bugs", ["created_at"])

    if "comments" not in existing_tables:
        op.create_table(
            "comments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("bug_id", sa.Integer(), nullable=False),
            sa.Column("author_id", sa.Integer(), nullable=False),
            sa.Column("author_name", sa.String(length=255), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("is_edited", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["bug_id"], ["bugs.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_comments_bug_id", "comments", ["bug_id"])
        op.create_index("ix_comments_author_id", "comments", ["author_id"])
        op.create_index("idx_comments_bug_created", "comments", ["bug_id", "created_at"])

    if "activity_events" not in existing_tables:
        op.create_table(
            "activity_events",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tester_id", sa.Integer(), nullable=False),
            sa.Column("event_type", sa.String(length=30), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("metadata_json", sa.Text(), nullable=True, server_default="{}"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["tester_id"], ["testers.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_activity_events_tester_id", "activity_events", ["tester_id"])
        op.create_index(
            "idx_activity_tester_created", "activity_events",
            ["tester_id", "created_at", "id"],
        )
        op.create_index("idx_activity_event_type", "activity_events", ["event_type"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "activity_events" in existing_tables:
        op.drop_index("idx_activity_event_type", table_name="activity_events")
        op.drop_index("idx_activity_tester_created", table_name="activity_events")
        op.drop_index("ix_activity_events_tester_id", table_name="activity_events")
        op.drop_table("activity_events")

    if "comments" in existing_tables:
        op.drop_index("idx_comments_bug_created", table_name="comments")
        op.drop_index("ix_comments_author_id", table_name="comments")
        op.drop_index("ix_comments_bug_id", table_name="comments")
        op.drop_table("comments")

    if "bugs" in existing_tables:
        op.drop_index("idx_bugs_created_at", table_name="bugs")
        op.drop_index("idx_bugs_priority", table_name="bugs")
        op.drop_index("idx_bugs_status", table_name="bugs")
        op.drop_index("ix_bugs_tester_id", table_name="bugs")
        op.drop_table("bugs")

    if "testers" in existing_tables:
        op.drop_index("idx_testers_rating", table_name="testers")
        op.drop_index("idx_testers_status", table_name="testers")
        op.drop_table("testers")
