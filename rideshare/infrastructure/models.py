"""
SQLAlchemy ORM models.

Tables
------
* ``users``              -- profiles keyed by the identity provider's user id
* ``rides``              -- driver-offered trips with seat inventory
* ``bookings``           -- one row per (ride, passenger) reservation
* ``verification_codes`` -- OTP records written by the verification flow
* ``ride_requests``      -- passengers asking for a trip nobody offers yet

Consistency
-----------
* ``rides.version`` is SQLAlchemy's ``version_id_col``: every UPDATE of a
  ride carries ``WHERE version = <read version>`` so a concurrent writer
  surfaces as ``StaleDataError`` instead of a lost update.
* CHECK constraints keep ``0 <= available_seats <= capacity_seats``.
* UNIQUE ``(ride_id, passenger_id)`` on bookings rejects duplicate
  bookings even when two requests pass the application-level check.

Timestamps and ids are generated client-side so freshly flushed rows
never need a refresh round-trip.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)

from .database import Base
from rideshare.domain.enums import RideRequestStatus, RideStatus


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(String(36), primary_key=True, default=_uuid)
    driver_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    start_address = Column(String(255), nullable=False)
    start_city = Column(String(120), nullable=False)
    start_state = Column(String(120), nullable=True)
    start_country = Column(String(120), nullable=True)
    start_lat = Column(Float, nullable=True)
    start_lng = Column(Float, nullable=True)

    end_address = Column(String(255), nullable=False)
    end_city = Column(String(120), nullable=False)
    end_state = Column(String(120), nullable=True)
    end_country = Column(String(120), nullable=True)
    end_lat = Column(Float, nullable=True)
    end_lng = Column(Float, nullable=True)

    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)

    # Seats offered at creation; never changes afterwards
    capacity_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    status = Column(
        Enum(RideStatus, name="ridestatus", values_callable=_enum_values),
        default=RideStatus.SCHEDULED,
        nullable=False,
    )

    car_make = Column(String(60), nullable=True)
    car_model = Column(String(60), nullable=True)
    car_year = Column(Integer, nullable=True)
    car_color = Column(String(30), nullable=True)
    license_plate = Column(String(20), nullable=True)
    description = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("capacity_seats > 0", name="ck_rides_capacity_positive"),
        CheckConstraint(
            "available_seats >= 0", name="ck_rides_available_non_negative"
        ),
        CheckConstraint(
            "available_seats <= capacity_seats",
            name="ck_rides_available_lte_capacity",
        ),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_status", "status"),
        Index("idx_rides_date", "date"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    ride_id = Column(
        String(36), ForeignKey("rides.id", ondelete="CASCADE"), nullable=False
    )
    passenger_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    seats = Column(Integer, nullable=False)
    contact_phone = Column(String(32), nullable=True)
    notes = Column(Text, nullable=True)
    payment_method = Column(String(32), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("ride_id", "passenger_id", name="uq_bookings_ride_passenger"),
        CheckConstraint("seats >= 1", name="ck_bookings_seats_positive"),
        Index("idx_bookings_ride", "ride_id"),
        Index("idx_bookings_passenger", "passenger_id"),
    )


class VerificationCodeModel(Base):
    __tablename__ = "verification_codes"

    id = Column(String(36), primary_key=True, default=_uuid)
    ride_id = Column(
        String(36), ForeignKey("rides.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_verification_ride_user", "ride_id", "user_id"),
    )


class RideRequestModel(Base):
    __tablename__ = "ride_requests"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    start_address = Column(String(255), nullable=False)
    start_city = Column(String(120), nullable=False)
    start_state = Column(String(120), nullable=True)
    end_address = Column(String(255), nullable=False)
    end_city = Column(String(120), nullable=False)
    end_state = Column(String(120), nullable=True)

    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    number_of_seats = Column(Integer, nullable=False)
    max_price = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    status = Column(
        Enum(RideRequestStatus, name="riderequeststatus", values_callable=_enum_values),
        default=RideRequestStatus.OPEN,
        nullable=False,
    )
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("number_of_seats >= 1", name="ck_ride_requests_seats_positive"),
        Index("idx_ride_requests_user", "user_id"),
        Index("idx_ride_requests_status", "status"),
    )
