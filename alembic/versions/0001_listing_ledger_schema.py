from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_listing_ledger_schema"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("phone", sa.String(length=40), nullable=False),
        sa.Column("password_hash", sa.String(length=200), nullable=False),
        *_audit_columns(),
    )

    op.create_table(
        "agents",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("phone", sa.String(length=40), nullable=False),
        sa.Column("area", sa.String(length=200), nullable=True),
        sa.Column("license_no", sa.String(length=80), nullable=True),
        sa.Column("password_hash", sa.String(length=200), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        *_audit_columns(),
    )

    op.create_table(
        "admins",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=200), nullable=False),
        *_audit_columns(),
    )

    op.create_table(
        "api_keys",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("principal_id", sa.String(), nullable=False),
        sa.Column("key_prefix", sa.String(length=16), nullable=False),
        sa.Column("key_hash", sa.Text(), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("rotated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_api_keys_principal_id", "api_keys", ["principal_id"])
    op.create_index("ix_api_keys_key_prefix", "api_keys", ["key_prefix"])

    op.create_table(
        "properties",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("seller_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("agent_id", sa.String(), sa.ForeignKey("agents.id"), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("purpose", sa.String(length=20), nullable=False),
        sa.Column("location", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("market_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("final_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("govt_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("booking_status", sa.String(length=20), nullable=False, server_default="available"),
        *_audit_columns(),
    )
    op.create_index("ix_properties_status", "properties", ["status"])
    op.create_index("ix_properties_seller", "properties", ["seller_id"])
    op.create_index("ix_properties_agent", "properties", ["agent_id"])

    op.create_table(
        "property_images",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("property_id", sa.String(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("uploaded_by", sa.String(length=20), nullable=False),
        sa.Column("image_path", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_property_images_property_id", "property_images", ["property_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("property_id", sa.String(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("buyer_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("buyer_name", sa.String(length=200), nullable=False),
        sa.Column("buyer_phone", sa.String(length=40), nullable=False),
        sa.Column("buyer_email", sa.String(length=320), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="hold"),
        *_audit_columns(),
    )
    op.create_index("ix_bookings_property", "bookings", ["property_id"])
    # at most one hold per property
    op.create_index(
        "uq_bookings_one_hold_per_property",
        "bookings",
        ["property_id"],
        unique=True,
        postgresql_where=sa.text("status = 'hold'"),
        sqlite_where=sa.text("status = 'hold'"),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("property_id", sa.String(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("booking_id", sa.String(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="paid"),
        sa.Column("verified_by", sa.String(), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_payments_property_id", "payments", ["property_id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])

    op.create_table(
        "outbox",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("aggregate_type", sa.String(length=100), nullable=False),
        sa.Column("aggregate_id", sa.String(length=100), nullable=False),
        sa.Column("event_type", sa.String(length=200), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("lease_id", sa.String(length=64), nullable=True),
        sa.Column("lease_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_outbox_status_created", "outbox", ["status", "created_at"])
    op.create_index("ix_outbox_lease_expires_at", "outbox", ["lease_expires_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("property_id", sa.String(), sa.ForeignKey("properties.id"), nullable=True),
        sa.Column("source_event_id", sa.String(), nullable=False, unique=True),
        sa.Column("kind", sa.String(length=60), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "enquiries",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("property_id", sa.String(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("agent_id", sa.String(), sa.ForeignKey("agents.id"), nullable=True),
        sa.Column("buyer_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("buyer_name", sa.String(length=200), nullable=False),
        sa.Column("buyer_phone", sa.String(length=40), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_enquiries_property_id", "enquiries", ["property_id"])
    op.create_index("ix_enquiries_agent_id", "enquiries", ["agent_id"])

    op.create_table(
        "agent_feedback",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("agent_id", sa.String(), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_agent_feedback_rating"),
    )
    op.create_index("ix_agent_feedback_agent_id", "agent_feedback", ["agent_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("actor_api_key_id", sa.String(), nullable=True),
        sa.Column("actor_role", sa.String(length=20), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("target_type", sa.String(length=120), nullable=True),
        sa.Column("target_id", sa.String(length=200), nullable=True),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_type", "target_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_target", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_agent_feedback_agent_id", table_name="agent_feedback")
    op.drop_table("agent_feedback")

    op.drop_index("ix_enquiries_agent_id", table_name="enquiries")
    op.drop_index("ix_enquiries_property_id", table_name="enquiries")
    op.drop_table("enquiries")

    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_outbox_lease_expires_at", table_name="outbox")
    op.drop_index("ix_outbox_status_created", table_name="outbox")
    op.drop_table("outbox")

    op.drop_index("ix_payments_booking_id", table_name="payments")
    op.drop_index("ix_payments_property_id", table_name="payments")
    op.drop_table("payments")

    op.drop_index("uq_bookings_one_hold_per_property", table_name="bookings")
    op.drop_index("ix_bookings_property", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_property_images_property_id", table_name="property_images")
    op.drop_table("property_images")

    op.drop_index("ix_properties_agent", table_name="properties")
    op.drop_index("ix_properties_seller", table_name="properties")
    op.drop_index("ix_properties_status", table_name="properties")
    op.drop_table("properties")

    op.drop_index("ix_api_keys_key_prefix", table_name="api_keys")
    op.drop_index("ix_api_keys_principal_id", table_name="api_keys")
    op.drop_table("api_keys")

    op.drop_table("admins")
    op.drop_table("agents")
    op.drop_table("users")
