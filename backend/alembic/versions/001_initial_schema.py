"""Initial schema: users, listings, bookings, transport, services, messages.

Revision ID: 001
Revises: None
Create Date: 2025-09-25
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    is_postgres = op.get_bind().dialect.name == "postgresql"

    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'customer'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'owner', 'customer')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Listings
    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("governorate", sa.String(100), nullable=False),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("coordinates", sa.JSON(), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("price_per_day", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("has_pool", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pool_sanitized", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cleanliness_rating", sa.Numeric(2, 1), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("category IN ('youth', 'family')", name="check_listing_category"),
        sa.CheckConstraint("price_per_day >= 0", name="check_listing_price_non_negative"),
        sa.CheckConstraint("max_capacity > 0", name="check_listing_capacity_positive"),
        sa.CheckConstraint(
            "cleanliness_rating >= 0 AND cleanliness_rating <= 5",
            name="check_listing_cleanliness_range",
        ),
    )
    op.create_index("ix_listings_id", "listings", ["id"])
    op.create_index("ix_listings_owner_id", "listings", ["owner_id"])
    # Public search: active listings filtered by category
    op.create_index("ix_listings_active_category", "listings", ["is_active", "category"])

    # Bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("guests_count", sa.Integer(), nullable=False),
        sa.Column("children_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("cashback_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("booking_reference", sa.String(20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("check_out > check_in", name="check_booking_dates_ordered"),
        sa.CheckConstraint("guests_count > 0", name="check_booking_guests_positive"),
        sa.CheckConstraint("children_count >= 0", name="check_booking_children_non_negative"),
        sa.CheckConstraint(
            "total_amount >= 0 AND discount_amount >= 0 AND cashback_amount >= 0",
            name="check_booking_amounts_non_negative",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'partial', 'refunded')",
            name="check_booking_payment_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_listing_id", "bookings", ["listing_id"])
    op.create_index("ix_bookings_booking_reference", "bookings", ["booking_reference"], unique=True)
    # Overlap lookups: WHERE listing_id = ? AND check_in < ? AND check_out > ?
    op.create_index("ix_bookings_listing_dates", "bookings", ["listing_id", "check_in", "check_out"])

    if is_postgres:
        # Storage-level guarantee: no two live bookings on a listing overlap.
        # daterange() is half-open by default, matching [check_in, check_out).
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE bookings ADD CONSTRAINT excl_bookings_no_overlap
            EXCLUDE USING gist (
                listing_id WITH =,
                daterange(check_in, check_out) WITH &&
            ) WHERE (status IN ('pending', 'confirmed'))
            """
        )

    # Transportation add-ons
    op.create_table(
        "transport_bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("transport_type", sa.String(20), nullable=False),
        sa.Column("pickup_location", sa.String(500), nullable=False),
        sa.Column("pickup_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("passengers_count", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("special_requests", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("transport_type IN ('bus', 'private_car', 'minibus')", name="check_transport_type"),
        sa.CheckConstraint("passengers_count > 0", name="check_transport_passengers_positive"),
        sa.CheckConstraint("price >= 0", name="check_transport_price_non_negative"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_transport_status",
        ),
    )
    op.create_index("ix_transport_bookings_id", "transport_bookings", ["id"])
    op.create_index("ix_transport_bookings_booking_id", "transport_bookings", ["booking_id"])
    op.create_index("ix_transport_bookings_user_id", "transport_bookings", ["user_id"])

    # Customer service ledger
    op.create_table(
        "customer_services",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("service_type", sa.String(30), nullable=False),
        sa.Column("service_details", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "service_type IN ('food_discount', 'bus_discount', 'cashback', 'promotional_gift')",
            name="check_service_type",
        ),
    )
    op.create_index("ix_customer_services_id", "customer_services", ["id"])
    op.create_index("ix_customer_services_booking_id", "customer_services", ["booking_id"])
    op.create_index("ix_customer_services_user_id", "customer_services", ["user_id"])

    # Support messages (append-only)
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("conversation_id", sa.String(100), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("sender_type", sa.String(20), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("sender_type IN ('customer', 'team')", name="check_message_sender_type"),
    )
    op.create_index("ix_messages_id", "messages", ["id"])
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])
    op.create_index("ix_messages_conversation_created", "messages", ["conversation_id", "created_at"])


def downgrade() -> None:
    op.drop_table("messages")
    op.drop_table("customer_services")
    op.drop_table("transport_bookings")
    op.drop_table("bookings")
    op.drop_table("listings")
    op.drop_table("users")
