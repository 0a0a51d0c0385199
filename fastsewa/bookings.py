"""Booking ledger: create, read, update and delete reservations."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import NotFoundError, ValidationFailedError
from .models import Booking, BookingEntry, PublicUser, utcnow
from .store import BOOKINGS, RecordStore
from .validation import validate_status

logger = logging.getLogger("fastsewa.bookings")

_BOOKING_FIELDS = {
    "user_id",
    "service_id",
    "service_name",
    "user_name",
    "user_email",
    "booking_date",
    "booking_time",
    "status",
    "amount",
    "price",
    "payment_method",
    "payment_status",
    "notes",
}
_IMMUTABLE_FIELDS = {"id", "created_at", "updated_at"}


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - _BOOKING_FIELDS - _IMMUTABLE_FIELDS
    if unknown:
        raise ValidationFailedError(f"Unknown booking field: {name}" for name in sorted(unknown))
    if fields.get("status") is not None:
        validate_status(fields["status"])


class BookingLedger:
    """CRUD over bookings.

    The ledger does not check who is acting; callers must verify that the
    requester owns the booking or is an administrator before mutating it.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def create(self, **data: Any) -> Booking:
        _check_fields(data)

        now = utcnow()
        local_now = datetime.now()
        amount = data.get("amount") or 0
        booking = Booking(
            id=self._store.next_id(BOOKINGS),
            user_id=data.get("user_id"),
            service_id=data.get("service_id"),
            service_name=data.get("service_name"),
            user_name=data.get("user_name"),
            user_email=data.get("user_email"),
            booking_date=data.get("booking_date") or local_now.date().isoformat(),
            booking_time=data.get("booking_time") or local_now.strftime("%H:%M:%S"),
            status=data.get("status") or "pending",
            amount=amount,
            price=data.get("price") or amount or 0,
            payment_method=data.get("payment_method") or "cash",
            payment_status=data.get("payment_status") or "pending",
            notes=data.get("notes") or "",
            created_at=now,
            updated_at=now,
        )
        self._store.add_booking(booking)
        logger.info("Booking #%d created for user %s", booking.id, booking.user_id)
        return booking

    def list(self) -> List[BookingEntry]:
        """Return every booking joined with its owner's public view."""

        owners: Dict[int, PublicUser] = {
            user.id: PublicUser.from_user(user) for user in self._store.users()
        }
        return [
            BookingEntry(booking=booking, user=owners.get(booking.user_id))  # type: ignore[arg-type]
            for booking in self._store.bookings()
        ]

    def list_for_user(self, user_id: int) -> List[BookingEntry]:
        return [entry for entry in self.list() if entry.booking.user_id == user_id]

    def get_by_id(self, booking_id: int) -> Optional[Booking]:
        return self._store.get_booking(booking_id)

    def update(self, booking_id: int, **fields: Any) -> Booking:
        _check_fields(fields)
        changes = {
            key: value
            for key, value in fields.items()
            if key in _BOOKING_FIELDS and value is not None
        }

        with self._store.lock(BOOKINGS):
            current = self._store.get_booking(booking_id)
            if current is None:
                raise NotFoundError("Booking not found")
            updated = replace(current, **changes, updated_at=utcnow())
            self._store.replace_booking(updated)

        if "status" in changes and changes["status"] != current.status:
            logger.info("Booking #%d status %s -> %s", booking_id, current.status, updated.status)
        return updated

    def delete(self, booking_id: int) -> None:
        self._store.remove_booking(booking_id)
        logger.info("Booking #%d deleted", booking_id)


__all__ = ["BookingLedger"]
