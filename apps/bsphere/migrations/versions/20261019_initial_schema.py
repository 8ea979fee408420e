"""Initial B-Sphere schema

Revision ID: 20261019_initial_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("admins"):
        op.create_table(
            "admins",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(length=255), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("middle_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=False),
            sa.Column("phone", sa.String(length=20), nullable=True),
            sa.Column("birthdate", sa.String(length=10), nullable=True),
            sa.Column("role", sa.String(length=30), nullable=False, server_default="admin"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("last_login", sa.DateTime(), nullable=True),
            *_timestamps(),
        )
        op.create_index("idx_admin_role", "admins", ["role"])
        op.create_index("idx_admin_created", "admins", ["created_at"])

    if not inspector.has_table("residents"):
        op.create_table(
            "residents",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("unique_id", sa.String(length=20), nullable=False, unique=True),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("middle_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=False),
            sa.Column("suffix", sa.String(length=20), nullable=True),
            sa.Column("address", sa.String(length=500), nullable=True),
            sa.Column("birthdate", sa.String(length=10), nullable=False),
            sa.Column("birthplace", sa.String(length=200), nullable=True),
            sa.Column("citizenship", sa.String(length=100), nullable=True),
            sa.Column("marital_status", sa.String(length=20), nullable=True),
            sa.Column("gender", sa.String(length=20), nullable=True),
            sa.Column("voter_status", sa.String(length=30), nullable=True),
            sa.Column("employment_status", sa.String(length=50), nullable=True),
            sa.Column("educational_attainment", sa.String(length=100), nullable=True),
            sa.Column("occupation", sa.String(length=100), nullable=True),
            sa.Column("contact_number", sa.String(length=20), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("is_tupad", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_pwd", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_4ps", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_solo_parent", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("role", sa.String(length=20), nullable=True),
            sa.Column("account_status", sa.String(length=30), nullable=False, server_default="approved"),
            sa.Column("password_hash", sa.String(length=255), nullable=True),
            sa.Column("photo", sa.String(length=500), nullable=True),
            sa.Column("uploaded_files", sa.JSON(), nullable=True),
            sa.Column("identity_key", sa.String(length=300), nullable=True),
            sa.Column("full_name_key", sa.String(length=300), nullable=True),
            *_timestamps(),
        )
        op.create_index("idx_resident_last_name", "residents", ["last_name"])
        op.create_index("idx_resident_identity_key", "residents", ["identity_key"])
        op.create_index("idx_resident_full_name_key", "residents", ["full_name_key"])
        op.create_index("idx_resident_email", "residents", ["email"])
        op.create_index("idx_resident_status", "residents", ["account_status"])

    if not inspector.has_table("resident_documents"):
        op.create_table(
            "resident_documents",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("resident_id", sa.Integer(), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("type", sa.String(length=50), nullable=False),
            sa.Column("url", sa.String(length=500), nullable=False),
            sa.Column("path", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("idx_resident_document_resident", "resident_documents", ["resident_id"])

    if not inspector.has_table("households"):
        op.create_table(
            "households",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("household_id", sa.String(length=20), nullable=False, unique=True),
            sa.Column("head_id", sa.Integer(), sa.ForeignKey("residents.id"), nullable=False, unique=True),
            sa.Column("contact_number", sa.String(length=20), nullable=True),
            sa.Column("address", sa.String(length=500), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
        )

    if not inspector.has_table("household_members"):
        op.create_table(
            "household_members",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("household_id", sa.Integer(), sa.ForeignKey("households.id", ondelete="CASCADE"), nullable=False),
            sa.Column("resident_id", sa.Integer(), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False, unique=True),
            sa.Column("added_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("idx_household_member_household", "household_members", ["household_id"])

    if not inspector.has_table("document_counters"):
        op.create_table(
            "document_counters",
            sa.Column("document_type", sa.String(length=50), primary_key=True),
            sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_generated_id", sa.String(length=30), nullable=True),
            sa.Column("last_updated", sa.DateTime(), nullable=True),
        )

    if not inspector.has_table("document_requests"):
        op.create_table(
            "document_requests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("control_id", sa.String(length=30), nullable=False, unique=True),
            sa.Column("sequence", sa.Integer(), nullable=False),
            sa.Column("document_type", sa.String(length=50), nullable=False),
            sa.Column("resident_id", sa.String(length=20), nullable=False),
            sa.Column("full_name", sa.String(length=300), nullable=False),
            sa.Column("purpose", sa.Text(), nullable=False),
            sa.Column("age", sa.String(length=10), nullable=True),
            sa.Column("address", sa.String(length=500), nullable=True),
            sa.Column("contact_number", sa.String(length=20), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("business_name", sa.String(length=200), nullable=True),
            sa.Column("business_type", sa.String(length=200), nullable=True),
            sa.Column("business_address", sa.String(length=500), nullable=True),
            sa.Column("ctc_number", sa.String(length=50), nullable=True),
            sa.Column("or_number", sa.String(length=50), nullable=True),
            sa.Column("permit_no", sa.String(length=20), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("processed_by", sa.Integer(), sa.ForeignKey("admins.id", ondelete="SET NULL"), nullable=True),
            sa.Column("requested_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("issued_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("idx_document_request_status", "document_requests", ["status"])
        op.create_index("idx_document_request_resident", "document_requests", ["resident_id"])
        op.create_index("idx_document_request_type", "document_requests", ["document_type"])
        op.create_index("idx_document_request_requested", "document_requests", ["requested_at"])

    if not inspector.has_table("announcements"):
        op.create_table(
            "announcements",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("category", sa.String(length=50), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("color", sa.String(length=20), nullable=False, server_default="blue"),
            sa.Column("image_url", sa.String(length=500), nullable=True),
            sa.Column("auto_publish_date", sa.DateTime(), nullable=True),
            sa.Column("auto_archive_date", sa.DateTime(), nullable=True),
            sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_by", sa.String(length=255), nullable=True),
            sa.Column("published_at", sa.DateTime(), nullable=True),
            sa.Column("archived_at", sa.DateTime(), nullable=True),
            *_timestamps(),
        )
        op.create_index("idx_announcement_status", "announcements", ["status"])
        op.create_index("idx_announcement_auto_publish", "announcements", ["auto_publish_date"])
        op.create_index("idx_announcement_auto_archive", "announcements", ["auto_archive_date"])
        op.create_index("idx_announcement_created", "announcements", ["created_at"])

    if not inspector.has_table("complaints"):
        op.create_table(
            "complaints",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("complaint_id", sa.String(length=20), nullable=False, unique=True),
            sa.Column("type", sa.String(length=100), nullable=False),
            sa.Column("nature", sa.Text(), nullable=True),
            sa.Column("respondent", sa.String(length=200), nullable=False),
            sa.Column("respondent_address", sa.String(length=500), nullable=True),
            sa.Column("complainant", sa.String(length=200), nullable=False),
            sa.Column("complainant_address", sa.String(length=500), nullable=True),
            sa.Column("date_filed", sa.String(length=30), nullable=False),
            sa.Column("officer", sa.String(length=200), nullable=False),
            sa.Column("status", sa.String(length=30), nullable=False),
            sa.Column("resolution_date", sa.String(length=30), nullable=True),
            *_timestamps(),
        )
        op.create_index("idx_complaint_date_filed", "complaints", ["date_filed"])
        op.create_index("idx_complaint_status", "complaints", ["status"])

    if not inspector.has_table("officials"):
        op.create_table(
            "officials",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("resident_id", sa.Integer(), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False, unique=True),
            sa.Column("position", sa.String(length=100), nullable=False),
            sa.Column("term_start", sa.String(length=10), nullable=True),
            sa.Column("term_end", sa.String(length=10), nullable=True),
            sa.Column("chairmanship", sa.String(length=200), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="Active"),
            *_timestamps(),
        )
        op.create_index("idx_official_position", "officials", ["position"])
        op.create_index("idx_official_status", "officials", ["status"])

    if not inspector.has_table("notifications"):
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("type", sa.String(length=50), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("target_role", sa.String(length=20), nullable=False, server_default="admin"),
            sa.Column("target_user_id", sa.String(length=50), nullable=True),
            sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="unread"),
            sa.Column("data", sa.JSON(), nullable=True),
            sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("seen", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("read_at", sa.DateTime(), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_notifications_target", "notifications", ["target_role", "target_user_id"])
        op.create_index("ix_notifications_type", "notifications", ["type"])
        op.create_index("ix_notifications_created", "notifications", ["created_at"])

    if not inspector.has_table("token_blacklist"):
        op.create_table(
            "token_blacklist",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("jti", sa.String(length=64), nullable=False, unique=True),
            sa.Column("token_type", sa.String(length=10), nullable=False, server_default="access"),
            sa.Column("admin_id", sa.String(length=50), nullable=True),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("revoked_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("ix_token_blacklist_jti", "token_blacklist", ["jti"])

    if not inspector.has_table("audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("admin_id", sa.Integer(), sa.ForeignKey("admins.id", ondelete="SET NULL"), nullable=True),
            sa.Column("admin_email", sa.String(length=255), nullable=False),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("entity_type", sa.String(length=50), nullable=True),
            sa.Column("entity_id", sa.String(length=64), nullable=True),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("user_agent", sa.Text(), nullable=True),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("idx_audit_admin", "audit_logs", ["admin_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_created_at", "audit_logs", ["created_at"])

    if not inspector.has_table("email_verification_codes"):
        op.create_table(
            "email_verification_codes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("session_id", sa.String(length=64), nullable=False, unique=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("code", sa.String(length=6), nullable=False),
            sa.Column("purpose", sa.String(length=50), nullable=False),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("verified_at", sa.DateTime(), nullable=True),
            sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("idx_verification_code_session", "email_verification_codes", ["session_id"])
        op.create_index("idx_verification_code_email", "email_verification_codes", ["email"])

    if not inspector.has_table("password_reset_tokens"):
        op.create_table(
            "password_reset_tokens",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("admin_id", sa.Integer(), sa.ForeignKey("admins.id", ondelete="CASCADE"), nullable=False),
            sa.Column("token_hash", sa.String(length=64), nullable=False, unique=True),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("used_at", sa.DateTime(), nullable=True),
            sa.Column("request_ip", sa.String(length=45), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("idx_password_reset_admin", "password_reset_tokens", ["admin_id"])
        op.create_index("idx_password_reset_expires", "password_reset_tokens", ["expires_at"])

    if not inspector.has_table("pending_registrations"):
        op.create_table(
            "pending_registrations",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("temp_id", sa.String(length=64), nullable=False, unique=True),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("middle_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=False),
            sa.Column("suffix", sa.String(length=20), nullable=True),
            sa.Column("birthdate", sa.String(length=10), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("contact_number", sa.String(length=20), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("identity_key", sa.String(length=300), nullable=False),
            sa.Column("full_name_key", sa.String(length=300), nullable=False),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )


def downgrade():
    for table in (
        "pending_registrations",
        "password_reset_tokens",
        "email_verification_codes",
        "audit_logs",
        "token_blacklist",
        "notifications",
        "officials",
        "complaints",
        "announcements",
        "document_requests",
        "document_counters",
        "household_members",
        "households",
        "resident_documents",
        "residents",
        "admins",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table}")
