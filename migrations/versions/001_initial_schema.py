"""Initial schema: users, rides, bookings, verification codes, ride requests.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "driver_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("start_address", sa.String(255), nullable=False),
        sa.Column("start_city", sa.String(120), nullable=False),
        sa.Column("start_state", sa.String(120), nullable=True),
        sa.Column("start_country", sa.String(120), nullable=True),
        sa.Column("start_lat", sa.Float, nullable=True),
        sa.Column("start_lng", sa.Float, nullable=True),
        sa.Column("end_address", sa.String(255), nullable=False),
        sa.Column("end_city", sa.String(120), nullable=False),
        sa.Column("end_state", sa.String(120), nullable=True),
        sa.Column("end_country", sa.String(120), nullable=True),
        sa.Column("end_lat", sa.Float, nullable=True),
        sa.Column("end_lng", sa.Float, nullable=True),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("time", sa.Time, nullable=False),
        sa.Column("capacity_seats", sa.Integer, nullable=False),
        sa.Column("available_seats", sa.Integer, nullable=False),
        sa.Column("price", sa.Float, nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "scheduled",
                "booked",
                "in-progress",
                "completed",
                "cancelled",
                name="ridestatus",
            ),
            nullable=False,
        ),
        sa.Column("car_make", sa.String(60), nullable=True),
        sa.Column("car_model", sa.String(60), nullable=True),
        sa.Column("car_year", sa.Integer, nullable=True),
        sa.Column("car_color", sa.String(30), nullable=True),
        sa.Column("license_plate", sa.String(20), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("capacity_seats > 0", name="ck_rides_capacity_positive"),
        sa.CheckConstraint(
            "available_seats >= 0", name="ck_rides_available_non_negative"
        ),
        sa.CheckConstraint(
            "available_seats <= capacity_seats",
            name="ck_rides_available_lte_capacity",
        ),
    )
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_date", "rides", ["date"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "ride_id",
            sa.String(36),
            sa.ForeignKey("rides.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "passenger_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("seats", sa.Integer, nullable=False),
        sa.Column("contact_phone", sa.String(32), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "ride_id", "passenger_id", name="uq_bookings_ride_passenger"
        ),
        sa.CheckConstraint("seats >= 1", name="ck_bookings_seats_positive"),
    )
    op.create_index("idx_bookings_ride", "bookings", ["ride_id"])
    op.create_index("idx_bookings_passenger", "bookings", ["passenger_id"])

    # ── verification_codes ────────────────────────────────────────────
    op.create_table(
        "verification_codes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "ride_id",
            sa.String(36),
            sa.ForeignKey("rides.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("code", sa.String(6), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_verification_ride_user", "verification_codes", ["ride_id", "user_id"]
    )

    # ── ride_requests ─────────────────────────────────────────────────
    op.create_table(
        "ride_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("start_address", sa.String(255), nullable=False),
        sa.Column("start_city", sa.String(120), nullable=False),
        sa.Column("start_state", sa.String(120), nullable=True),
        sa.Column("end_address", sa.String(255), nullable=False),
        sa.Column("end_city", sa.String(120), nullable=False),
        sa.Column("end_state", sa.String(120), nullable=True),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("time", sa.Time, nullable=False),
        sa.Column("number_of_seats", sa.Integer, nullable=False),
        sa.Column("max_price", sa.Float, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "open", "matched", "cancelled", "expired", name="riderequeststatus"
            ),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "number_of_seats >= 1", name="ck_ride_requests_seats_positive"
        ),
    )
    op.create_index("idx_ride_requests_user", "ride_requests", ["user_id"])
    op.create_index("idx_ride_requests_status", "ride_requests", ["status"])


def downgrade() -> None:
    op.drop_table("ride_requests")
    op.drop_table("verification_codes")
    op.drop_table("bookings")
    op.drop_table("rides")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS riderequeststatus")
    op.execute("DROP TYPE IF EXISTS ridestatus")
