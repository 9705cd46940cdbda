"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "businesses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("owner_email", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("primary_category", sa.Text()),
        sa.Column("established_year", sa.Integer()),
        sa.Column("address_street", sa.Text()),
        sa.Column("address_city", sa.Text()),
        sa.Column("address_state", sa.Text()),
        sa.Column("zip_code", sa.Text()),
        sa.Column("country", sa.Text()),
        sa.Column("latitude", sa.Float()),
        sa.Column("longitude", sa.Float()),
        sa.Column("phone", sa.Text()),
        sa.Column("phone_country_code", sa.Text()),
        sa.Column("email", sa.Text()),
        sa.Column("website", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("hours", sa.Text()),
        sa.Column("structured_hours", postgresql.JSONB()),
        sa.Column("services", postgresql.JSONB()),
        sa.Column("specialties", postgresql.JSONB()),
        sa.Column("payment_methods", postgresql.JSONB()),
        sa.Column("languages_spoken", postgresql.JSONB()),
        sa.Column("accessibility_features", postgresql.JSONB()),
        sa.Column("business_faqs", postgresql.JSONB()),
        sa.Column("featured_items", postgresql.JSONB()),
        sa.Column("social_media", postgresql.JSONB()),
        sa.Column("awards", postgresql.JSONB()),
        sa.Column("certifications", postgresql.JSONB()),
        sa.Column("review_summary", postgresql.JSONB()),
        sa.Column("parking_info", sa.Text()),
        sa.Column("enhanced_parking_info", postgresql.JSONB()),
        sa.Column("price_positioning", sa.Text()),
        sa.Column("service_area", sa.Text()),
        sa.Column("service_area_details", postgresql.JSONB()),
        sa.Column("status_override", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("businesses_owner_email_idx", "businesses", ["owner_email"])
    op.create_index("businesses_city_state_idx", "businesses", ["address_city", "address_state"])

    op.create_table(
        "updates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("business_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content_text", sa.Text(), nullable=False),
        sa.Column("deal_terms", sa.Text()),
        sa.Column("special_hours_today", postgresql.JSONB()),
        sa.Column("update_category", sa.Text(), nullable=False, server_default=sa.text("'general'")),
        sa.Column("update_faqs", postgresql.JSONB()),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("error_message", sa.Text()),
        sa.Column("processing_time_ms", sa.Integer()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("updates_business_idx", "updates", ["business_id"])
    op.create_index("updates_status_idx", "updates", ["status"])

    op.create_table(
        "generated_pages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("business_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("update_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("updates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("intent_type", sa.Text(), nullable=False),
        sa.Column("page_variant", sa.Text()),
        sa.Column("page_data", postgresql.JSONB(), nullable=False),
        sa.Column("rendered_size_kb", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("generation_batch_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("published_at", sa.DateTime(timezone=True)),
        sa.Column("expired", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.UniqueConstraint("update_id", "intent_type", name="generated_pages_update_intent_uidx"),
        sa.CheckConstraint(
            "expires_at IS NULL OR expires_at >= created_at",
            name="generated_pages_expiry_after_creation_chk",
        ),
    )
    op.create_index(
        "generated_pages_live_file_path_uidx",
        "generated_pages",
        ["file_path"],
        unique=True,
        postgresql_where=sa.text("published = true AND expired = false"),
    )
    op.create_index("generated_pages_batch_idx", "generated_pages", ["generation_batch_id"])
    op.create_index("generated_pages_file_path_idx", "generated_pages", ["file_path"])
    op.create_index("generated_pages_expiry_idx", "generated_pages", ["expired", "expires_at"])

    op.create_table(
        "job_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("job_name", sa.Text(), nullable=False),
        sa.Column("scope", sa.Text()),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
        sa.Column("processed_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("details", postgresql.JSONB()),
        sa.Column("error", sa.Text()),
    )
    op.create_index("job_runs_name_status_idx", "job_runs", ["job_name", "status"])
    op.create_index("job_runs_started_at_idx", "job_runs", ["started_at"])


def downgrade():
    op.drop_index("job_runs_started_at_idx", table_name="job_runs")
    op.drop_index("job_runs_name_status_idx", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_index("generated_pages_expiry_idx", table_name="generated_pages")
    op.drop_index("generated_pages_file_path_idx", table_name="generated_pages")
    op.drop_index("generated_pages_batch_idx", table_name="generated_pages")
    op.drop_index("generated_pages_live_file_path_uidx", table_name="generated_pages")
    op.drop_table("generated_pages")
    op.drop_index("updates_status_idx", table_name="updates")
    op.drop_index("updates_business_idx", table_name="updates")
    op.drop_table("updates")
    op.drop_index("businesses_city_state_idx", table_name="businesses")
    op.drop_index("businesses_owner_email_idx", table_name="businesses")
    op.drop_table("businesses")
