"""Initial schema: hotel content, POIs, reviews, city stats, margin rules, price alerts

Revision ID: hotelhub_001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "hotelhub_001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- hotel_content ---
    op.create_table(
        "hotel_content",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("hid", sa.Integer, nullable=False),
        sa.Column("hotel_id", sa.String(200)),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("address", sa.Text),
        sa.Column("city", sa.String(200)),
        sa.Column("city_normalized", sa.String(200)),
        sa.Column("country", sa.String(100)),
        sa.Column("country_code", sa.String(2)),
        sa.Column("latitude", sa.Numeric(9, 6)),
        sa.Column("longitude", sa.Numeric(9, 6)),
        sa.Column("star_rating", sa.Integer, server_default="0"),
        sa.Column("images", JSONB, server_default="[]"),
        sa.Column("main_image", sa.Text),
        sa.Column("amenities", JSONB, server_default="[]"),
        sa.Column("amenity_groups", JSONB, server_default="[]"),
        sa.Column("policy_struct", JSONB),
        sa.Column("check_in_time", sa.String(10)),
        sa.Column("check_out_time", sa.String(10)),
        sa.Column("dump_date", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_hotel_content_hid", "hotel_content", ["hid"], unique=True)
    op.create_index("ix_hotel_content_hotel_id", "hotel_content", ["hotel_id"])
    op.create_index("ix_hotel_content_city_normalized", "hotel_content", ["city_normalized"])
    op.create_index("ix_hotel_content_country_code", "hotel_content", ["country_code"])

    # --- hotel_translations ---
    op.create_table(
        "hotel_translations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("hid", sa.Integer, nullable=False),
        sa.Column("language", sa.String(10), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.UniqueConstraint("hid", "language", name="uq_hotel_translations_hid_language"),
    )
    op.create_index("ix_hotel_translations_hid", "hotel_translations", ["hid"])

    # --- hotel_pois ---
    op.create_table(
        "hotel_pois",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("hid", sa.Integer, nullable=False),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("poi", JSONB, server_default="[]"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("hid", "language", name="uq_hotel_pois_hid_language"),
    )
    op.create_index("ix_hotel_pois_hid", "hotel_pois", ["hid"])

    # --- hotel_reviews ---
    op.create_table(
        "hotel_reviews",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("hid", sa.Integer, nullable=False),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("review_count", sa.Integer, server_default="0"),
        sa.Column("average_rating", sa.Numeric(4, 2)),
        sa.Column("detailed_ratings", JSONB),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("hid", "language", name="uq_hotel_reviews_hid_language"),
    )
    op.create_index("ix_hotel_reviews_hid", "hotel_reviews", ["hid"])

    # --- city_stats ---
    op.create_table(
        "city_stats",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("city_normalized", sa.String(200), nullable=False),
        sa.Column("city_display", sa.String(200), nullable=False),
        sa.Column("country", sa.String(100)),
        sa.Column("country_code", sa.String(2)),
        sa.Column("total_hotels", sa.Integer, server_default="0"),
        sa.Column("rated_hotels", sa.Integer, server_default="0"),
        sa.Column("star_counts", JSONB, server_default="{}"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_city_stats_city_normalized", "city_stats", ["city_normalized"], unique=True)

    # --- margin_rules ---
    op.create_table(
        "margin_rules",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("scope", sa.String(20), nullable=False, server_default="global"),
        sa.Column("scope_key", sa.String(200)),
        sa.Column("kind", sa.String(20), nullable=False, server_default="percentage"),
        sa.Column("value", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3)),
        sa.Column("priority", sa.Integer, server_default="0"),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_margin_rules_scope_key", "margin_rules", ["scope_key"])
    op.create_index("idx_margin_rules_active", "margin_rules", ["is_active", "scope"])

    # --- price_alerts ---
    op.create_table(
        "price_alerts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("destination", sa.String(200), nullable=False),
        sa.Column("checkin", sa.Date, nullable=False),
        sa.Column("checkout", sa.Date, nullable=False),
        sa.Column("adults", sa.Integer, server_default="2"),
        sa.Column("children", JSONB, server_default="[]"),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("hotel_id", sa.String(200)),
        sa.Column("hotel_name", sa.String(500)),
        sa.Column("last_known_price", sa.Numeric(12, 2)),
        sa.Column("current_price", sa.Numeric(12, 2)),
        sa.Column("lowest_price", sa.Numeric(12, 2)),
        sa.Column("threshold_percent", sa.Numeric(5, 2), server_default="5"),
        sa.Column("cooldown_hours", sa.Integer, server_default="24"),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        sa.Column("last_checked_at", sa.DateTime(timezone=True)),
        sa.Column("last_notified_at", sa.DateTime(timezone=True)),
        sa.Column("notification_count", sa.Integer, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_price_alerts_owner_id", "price_alerts", ["owner_id"])
    op.create_index("ix_price_alerts_is_active", "price_alerts", ["is_active"])

    # --- price_alert_history ---
    op.create_table(
        "price_alert_history",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("price_alert_id", UUID(as_uuid=True), sa.ForeignKey("price_alerts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("checked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_price_alert_history_price_alert_id", "price_alert_history", ["price_alert_id"])

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("reference_type", sa.String(50)),
        sa.Column("reference_id", UUID(as_uuid=True)),
        sa.Column("is_read", sa.Boolean, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_owner_id", "notifications", ["owner_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("price_alert_history")
    op.drop_table("price_alerts")
    op.drop_table("margin_rules")
    op.drop_table("city_stats")
    op.drop_table("hotel_reviews")
    op.drop_table("hotel_pois")
    op.drop_table("hotel_translations")
    op.drop_table("hotel_content")
