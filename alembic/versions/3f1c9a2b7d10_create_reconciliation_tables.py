"""Create reconciliation tables

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-03-02 10:14:31.512044

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f1c9a2b7d10"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cleaning_pre_days", sa.Integer(), server_default="0", nullable=False),
        sa.Column("cleaning_post_days", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "connections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("account_email", sa.String(), nullable=True),
        sa.Column("label_name", sa.String(), nullable=True),
        sa.Column("access_token", sa.String(), nullable=True),
        sa.Column("refresh_token", sa.String(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(), server_default="pending", nullable=False),
        sa.Column("last_error_code", sa.String(), nullable=True),
        sa.Column("last_error_message", sa.String(), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "connection_properties",
        sa.Column(
            "connection_id",
            sa.Integer(),
            sa.ForeignKey("connections.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "calendar_feeds",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source_name", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_status", sa.String(), nullable=True),
        sa.Column("last_error", sa.String(), nullable=True),
        sa.Column("last_http_status", sa.Integer(), nullable=True),
        sa.Column("last_event_count", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_calendar_feeds_property_id", "calendar_feeds", ["property_id"])

    op.create_table(
        "reservation_facts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "connection_id",
            sa.Integer(),
            sa.ForeignKey("connections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source_message_id", sa.String(), nullable=False, unique=True),
        sa.Column("guest_name", sa.String(), nullable=False),
        sa.Column("guest_count", sa.Integer(), server_default="1", nullable=False),
        sa.Column("confirmation_code", sa.String(), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("listing_name", sa.String(), nullable=True),
        sa.Column("platform", sa.String(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_reservation_facts_connection_id", "reservation_facts", ["connection_id"])
    op.create_index(
        "ix_reservation_facts_confirmation_code", "reservation_facts", ["confirmation_code"]
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source_key", sa.String(), nullable=False),
        sa.Column(
            "source_feed_id",
            sa.Integer(),
            sa.ForeignKey("calendar_feeds.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("external_uid", sa.String(), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("summary", sa.String(), nullable=True),
        sa.Column("guest_name", sa.String(), nullable=True),
        sa.Column("guest_count", sa.Integer(), nullable=True),
        sa.Column("platform", sa.String(), nullable=True),
        sa.Column("reservation_code", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "matched_fact_id",
            sa.Integer(),
            sa.ForeignKey("reservation_facts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("manually_resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("raw_payload", JSONType, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "property_id", "source_key", "external_uid", name="uq_bookings_source"
        ),
    )
    op.create_index("ix_bookings_property_id", "bookings", ["property_id"])
    op.create_index("ix_bookings_matched_fact_id", "bookings", ["matched_fact_id"])

    op.create_table(
        "review_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "connection_id",
            sa.Integer(),
            sa.ForeignKey("connections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "fact_id",
            sa.Integer(),
            sa.ForeignKey("reservation_facts.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("item_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), server_default="pending", nullable=False),
        sa.Column("candidate_booking_ids", JSONType, nullable=False),
        sa.Column("extracted_data", JSONType, nullable=False),
        sa.Column("resolution", sa.String(), nullable=True),
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_review_items_connection_id", "review_items", ["connection_id"])

    op.create_table(
        "processed_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "connection_id",
            sa.Integer(),
            sa.ForeignKey("connections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source_message_id", sa.String(), nullable=False, unique=True),
        sa.Column("subject", sa.String(), nullable=True),
        sa.Column("body_source", sa.String(), nullable=True),
        sa.Column("message_type", sa.String(), nullable=True),
        sa.Column("platform", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("attempts", JSONType, nullable=False),
        sa.Column("classification_reasons", JSONType, nullable=False),
        sa.Column(
            "processed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_processed_messages_connection_id", "processed_messages", ["connection_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("processed_messages")
    op.drop_table("review_items")
    op.drop_table("bookings")
    op.drop_table("reservation_facts")
    op.drop_table("calendar_feeds")
    op.drop_table("connection_properties")
    op.drop_table("connections")
    op.drop_table("properties")
