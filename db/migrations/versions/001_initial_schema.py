"""Initial schema: activity_counts, sales_leads, surfaced_meetings.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ─── Activity ledger ─────────────────────────────────────────────────────

    op.create_table(
        "activity_counts",
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("type", sa.Text, nullable=False),
        sa.Column("count", sa.Integer, nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("date", "type", name="pk_activity_counts"),
        sa.CheckConstraint(
            "type IN ('invitation','profile_view','comment','like','message','search')",
            name="ck_activity_type",
        ),
        sa.CheckConstraint("count >= 0", name="ck_activity_count_non_negative"),
    )

    # ─── Lead ledger ─────────────────────────────────────────────────────────

    op.create_table(
        "sales_leads",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("email", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("company", sa.Text, nullable=True),
        sa.Column("linkedin_id", sa.Text, nullable=True),
        sa.Column("linkedin_connected", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("meeting_id", sa.Text, nullable=True),
        sa.Column("meeting_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("meeting_title", sa.Text, nullable=True),
        sa.Column("meeting_notes_id", sa.Text, nullable=True),
        sa.Column("meeting_notes_summary", sa.Text, nullable=True),
        sa.Column("email_thread_id", sa.Text, nullable=True),
        sa.Column("last_email_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("email_followup_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("snoozed_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("open_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("linkedin_request_sent", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("linkedin_message_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_linkedin_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="active"),
        sa.Column("responded_via", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('active','responded','cold')", name="ck_lead_status"),
        sa.CheckConstraint(
            "responded_via IS NULL OR responded_via IN ('email','linkedin')",
            name="ck_lead_responded_via",
        ),
        sa.CheckConstraint("email_followup_count >= 0", name="ck_lead_followup_count"),
    )
    op.create_index("idx_sales_leads_email", "sales_leads", ["email"])
    op.create_index("idx_sales_leads_status", "sales_leads", ["status"])
    op.create_index("idx_sales_leads_last_email", "sales_leads", ["last_email_date"])
    op.create_index("idx_sales_leads_meeting", "sales_leads", ["meeting_id"])
    op.create_index("idx_sales_leads_thread", "sales_leads", ["email_thread_id"])

    # ─── Meeting idempotency ledger ──────────────────────────────────────────

    op.create_table(
        "surfaced_meetings",
        sa.Column("meeting_id", sa.Text, primary_key=True),
        sa.Column("recipient_email", sa.Text, nullable=False),
        sa.Column("recipient_name", sa.Text, nullable=True),
        sa.Column("meeting_title", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="surfaced"),
        sa.Column("draft_subject", sa.Text, nullable=True),
        sa.Column("draft_body", sa.Text, nullable=True),
        sa.Column("meeting_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes_id", sa.Text, nullable=True),
        sa.Column("notes_summary", sa.Text, nullable=True),
        sa.Column("surfaced_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('surfaced','skipped','sent')",
            name="ck_surfaced_meeting_status",
        ),
    )
    op.create_index("idx_surfaced_meetings_status", "surfaced_meetings", ["status"])


def downgrade() -> None:
    op.drop_index("idx_surfaced_meetings_status", table_name="surfaced_meetings")
    op.drop_table("surfaced_meetings")
    for name in (
        "idx_sales_leads_thread",
        "idx_sales_leads_meeting",
        "idx_sales_leads_last_email",
        "idx_sales_leads_status",
        "idx_sales_leads_email",
    ):
        op.drop_index(name, table_name="sales_leads")
    op.drop_table("sales_leads")
    op.drop_table("activity_counts")
