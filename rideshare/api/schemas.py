"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field

from rideshare.domain.entities import Booking, Location, Ride, VehicleInfo
from rideshare.domain.enums import RideRequestStatus, RideStatus


# ── Shared ────────────────────────────────────────────────────────────


class LocationSchema(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=120)
    state: Optional[str] = Field(None, max_length=120)
    country: Optional[str] = Field(None, max_length=120)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)

    def to_entity(self) -> Location:
        return Location(**self.model_dump())


class VehicleSchema(BaseModel):
    make: Optional[str] = Field(None, max_length=60)
    model: Optional[str] = Field(None, max_length=60)
    year: Optional[int] = Field(None, ge=1950, le=2100)
    color: Optional[str] = Field(None, max_length=30)
    license_plate: Optional[str] = Field(None, max_length=20)

    def to_entity(self) -> VehicleInfo:
        return VehicleInfo(**self.model_dump())


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    origin: LocationSchema
    destination: LocationSchema
    date: date
    time: time
    seats: int = Field(..., ge=1, le=8, description="Seats offered to passengers.")
    price: float = Field(..., ge=0, description="Price per seat.")
    vehicle: Optional[VehicleSchema] = None
    description: Optional[str] = Field(None, max_length=1000)


class RideStatusRequest(BaseModel):
    target: RideStatus


class BookingCreateRequest(BaseModel):
    seats: int = Field(1, ge=1, le=8)
    contact_phone: Optional[str] = Field(None, max_length=32)
    notes: Optional[str] = Field(None, max_length=500)
    payment_method: Optional[str] = Field(None, max_length=32)


class RideRequestCreateRequest(BaseModel):
    origin: LocationSchema
    destination: LocationSchema
    date: date
    time: time
    number_of_seats: int = Field(1, ge=1, le=8)
    max_price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=1000)


class UserProfileRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(
        ..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$"
    )
    phone: Optional[str] = Field(None, max_length=32)


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: str
    driver_id: str
    origin: LocationSchema
    destination: LocationSchema
    date: date
    time: time
    capacity_seats: int
    available_seats: int
    price: float
    status: RideStatus
    vehicle: Optional[VehicleSchema] = None
    description: Optional[str] = None
    booked_by: list[str] = []
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, ride: Ride) -> "RideResponse":
        return cls(
            id=ride.id,
            driver_id=ride.driver_id,
            origin=LocationSchema(**vars(ride.origin)),
            destination=LocationSchema(**vars(ride.destination)),
            date=ride.date,
            time=ride.time,
            capacity_seats=ride.capacity_seats,
            available_seats=ride.available_seats,
            price=ride.price,
            status=ride.status,
            vehicle=VehicleSchema(**vars(ride.vehicle)) if ride.vehicle else None,
            description=ride.description,
            booked_by=sorted(ride.booked_by),
            created_at=ride.created_at,
        )


class BookingResponse(BaseModel):
    id: str
    ride_id: str
    passenger_id: str
    seats: int
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingResponse":
        return cls(**vars(booking))


class BookingCreatedResponse(BaseModel):
    booking_id: str
    ride: RideResponse


class BookingCancelledResponse(BaseModel):
    success: bool = True
    booking_id: str
    ride: RideResponse


class BookingStatusResponse(BaseModel):
    has_booking: bool
    booking_id: Optional[str] = None


class RideRequestResponse(BaseModel):
    id: str
    user_id: str
    start_address: str
    start_city: str
    start_state: Optional[str] = None
    end_address: str
    end_city: str
    end_state: Optional[str] = None
    date: date
    time: time
    number_of_seats: int
    max_price: Optional[float] = None
    description: Optional[str] = None
    status: RideRequestStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"

