"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  No business rules live here: seat and status
rules belong to ``rideshare.domain.entities.Ride`` and the lifecycle service.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    BookingModel,
    RideModel,
    RideRequestModel,
    UserModel,
    VerificationCodeModel,
)
from rideshare.domain.entities import Booking, Location, Ride, VehicleInfo
from rideshare.domain.enums import RideStatus


class RideRepository:
    """Ride Inventory Store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_ride(
        self,
        *,
        driver_id: str,
        origin: Location,
        destination: Location,
        ride_date: date,
        ride_time: time,
        seats: int,
        price: float,
        vehicle: VehicleInfo | None = None,
        description: str | None = None,
    ) -> RideModel:
        vehicle = vehicle or VehicleInfo()
        ride = RideModel(
            driver_id=driver_id,
            start_address=origin.address,
            start_city=origin.city,
            start_state=origin.state,
            start_country=origin.country,
            start_lat=origin.lat,
            start_lng=origin.lng,
            end_address=destination.address,
            end_city=destination.city,
            end_state=destination.state,
            end_country=destination.country,
            end_lat=destination.lat,
            end_lng=destination.lng,
            date=ride_date,
            time=ride_time,
            capacity_seats=seats,
            available_seats=seats,
            price=price,
            status=RideStatus.SCHEDULED,
            car_make=vehicle.make,
            car_model=vehicle.model,
            car_year=vehicle.year,
            car_color=vehicle.color,
            license_plate=vehicle.license_plate,
            description=description,
        )
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: str) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_for_update(self, ride_id: str) -> Optional[RideModel]:
        """SELECT ... FOR UPDATE so concurrent lifecycle operations queue up."""
        return await self.session.get(
            RideModel, ride_id, with_for_update=True, populate_existing=True
        )

    async def list_rides(
        self,
        *,
        driver_id: str | None = None,
        status: RideStatus | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RideModel]:
        query = select(RideModel)
        if driver_id:
            query = query.where(RideModel.driver_id == driver_id)
        if status:
            query = query.where(RideModel.status == status)
        if date_from:
            query = query.where(RideModel.date >= date_from)
        if date_to:
            query = query.where(RideModel.date <= date_to)
        query = (
            query.order_by(RideModel.date, RideModel.time, RideModel.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save_inventory(self, model: RideModel, ride: Ride) -> None:
        """
        Write seats and status back in ONE version-checked UPDATE.

        ``updated_at`` is always touched so the version check fires even when
        neither seats nor status changed.
        """
        model.available_seats = ride.available_seats
        model.status = ride.status
        model.updated_at = datetime.now(timezone.utc)
        await self.session.flush()

    @staticmethod
    def to_entity(model: RideModel, booked_by: Iterable[str] = ()) -> Ride:
        vehicle = None
        if any(
            (model.car_make, model.car_model, model.car_year, model.car_color,
             model.license_plate)
        ):
            vehicle = VehicleInfo(
                make=model.car_make,
                model=model.car_model,
                year=model.car_year,
                color=model.car_color,
                license_plate=model.license_plate,
            )
        return Ride(
            id=model.id,
            driver_id=model.driver_id,
            origin=Location(
                address=model.start_address,
                city=model.start_city,
                state=model.start_state,
                country=model.start_country,
                lat=model.start_lat,
                lng=model.start_lng,
            ),
            destination=Location(
                address=model.end_address,
                city=model.end_city,
                state=model.end_state,
                country=model.end_country,
                lat=model.end_lat,
                lng=model.end_lng,
            ),
            date=model.date,
            time=model.time,
            capacity_seats=model.capacity_seats,
            available_seats=model.available_seats,
            price=model.price,
            status=RideStatus(model.status),
            vehicle=vehicle,
            description=model.description,
            booked_by=frozenset(booked_by),
            created_at=model.created_at,
        )


class BookingRepository:
    """Booking Store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        ride_id: str,
        passenger_id: str,
        seats: int,
        contact_phone: str | None = None,
        notes: str | None = None,
        payment_method: str | None = None,
    ) -> BookingModel:
        booking = BookingModel(
            ride_id=ride_id,
            passenger_id=passenger_id,
            seats=seats,
            contact_phone=contact_phone,
            notes=notes,
            payment_method=payment_method,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def delete(self, booking: BookingModel) -> None:
        await self.session.delete(booking)
        await self.session.flush()

    async def get_by_id(self, booking_id: str) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_by_ride_and_passenger(
        self, ride_id: str, passenger_id: str
    ) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(
                BookingModel.ride_id == ride_id,
                BookingModel.passenger_id == passenger_id,
            )
        )
        return result.scalar_one_or_none()

    async def exists(self, ride_id: str, passenger_id: str) -> bool:
        result = await self.session.execute(
            select(
                exists().where(
                    BookingModel.ride_id == ride_id,
                    BookingModel.passenger_id == passenger_id,
                )
            )
        )
        return bool(result.scalar())

    async def list_by_ride(self, ride_id: str) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.ride_id == ride_id)
            .order_by(BookingModel.created_at, BookingModel.id)
        )
        return list(result.scalars().all())

    async def list_by_passenger(self, passenger_id: str) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.passenger_id == passenger_id)
            .order_by(BookingModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def passenger_ids_for_ride(self, ride_id: str) -> set[str]:
        result = await self.session.execute(
            select(BookingModel.passenger_id)
            .where(BookingModel.ride_id == ride_id)
            .distinct()
        )
        return set(result.scalars().all())

    async def passenger_ids_for_rides(
        self, ride_ids: Iterable[str]
    ) -> dict[str, set[str]]:
        ride_ids = list(ride_ids)
        roster: dict[str, set[str]] = defaultdict(set)
        if not ride_ids:
            return roster
        result = await self.session.execute(
            select(BookingModel.ride_id, BookingModel.passenger_id).where(
                BookingModel.ride_id.in_(ride_ids)
            )
        )
        for ride_id, passenger_id in result.all():
            roster[ride_id].add(passenger_id)
        return roster

    async def booked_seats_for_ride(self, ride_id: str) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(BookingModel.seats), 0)).where(
                BookingModel.ride_id == ride_id
            )
        )
        return int(result.scalar() or 0)

    @staticmethod
    def to_entity(model: BookingModel) -> Booking:
        return Booking(
            id=model.id,
            ride_id=model.ride_id,
            passenger_id=model.passenger_id,
            seats=model.seats,
            contact_phone=model.contact_phone,
            notes=model.notes,
            payment_method=model.payment_method,
            created_at=model.created_at,
        )


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        name: str,
        email: str,
        phone: str | None = None,
        user_id: str | None = None,
    ) -> UserModel:
        user = UserModel(name=name, email=email, phone=phone)
        if user_id is not None:
            user.id = user_id
        self.session.add(user)
        await self.session.flush()
        return user

    async def upsert_profile(
        self, user_id: str, *, name: str, email: str, phone: str | None = None
    ) -> UserModel:
        """Create or update the profile keyed by the identity provider's id."""
        user = await self.get_by_id(user_id)
        if user is None:
            return await self.create(
                name=name, email=email, phone=phone, user_id=user_id
            )
        user.name = name
        user.email = email
        user.phone = phone
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserModel]:
        user_ids = list(set(user_ids))
        if not user_ids:
            return {}
        result = await self.session.execute(
            select(UserModel).where(UserModel.id.in_(user_ids))
        )
        return {user.id: user for user in result.scalars().all()}


class VerificationRepository:
    """Read side of the OTP records written by the verification flow."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_ride_verified(self, ride_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            select(
                exists().where(
                    VerificationCodeModel.ride_id == ride_id,
                    VerificationCodeModel.user_id == user_id,
                    VerificationCodeModel.verified.is_(True),
                )
            )
        )
        return bool(result.scalar())


class RideRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, request: RideRequestModel) -> RideRequestModel:
        self.session.add(request)
        await self.session.flush()
        return request

    async def get_by_id(self, request_id: str) -> Optional[RideRequestModel]:
        return await self.session.get(RideRequestModel, request_id)

    async def list_by_user(self, user_id: str) -> list[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel)
            .where(RideRequestModel.user_id == user_id)
            .order_by(RideRequestModel.created_at.desc())
        )
        return list(result.scalars().all())
