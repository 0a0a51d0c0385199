"""Dashboard statistics computed from store snapshots on every call."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Sequence

from .models import Booking, PublicUser, User
from .store import RecordStore


@dataclass(frozen=True)
class UserSummary:
    total: int
    active: int
    admins: int
    regular: int


@dataclass(frozen=True)
class BookingSummary:
    total: int
    pending: int
    confirmed: int
    completed: int
    cancelled: int
    revenue: float


@dataclass(frozen=True)
class DashboardStats:
    users: UserSummary
    bookings: BookingSummary

    @property
    def total_revenue(self) -> float:
        return self.bookings.revenue

    def to_dict(self) -> Dict[str, float]:
        return {
            "totalUsers": self.users.total,
            "activeUsers": self.users.active,
            "adminUsers": self.users.admins,
            "regularUsers": self.users.regular,
            "totalBookings": self.bookings.total,
            "pendingBookings": self.bookings.pending,
            "confirmedBookings": self.bookings.confirmed,
            "completedBookings": self.bookings.completed,
            "cancelledBookings": self.bookings.cancelled,
            "totalRevenue": self.bookings.revenue,
        }


def summarize_users(users: Iterable[User | PublicUser]) -> UserSummary:
    total = active = admins = regular = 0
    for user in users:
        total += 1
        if user.is_active:
            active += 1
        if user.role == "admin":
            admins += 1
        elif user.role == "user":
            regular += 1
    return UserSummary(total=total, active=active, admins=admins, regular=regular)


def summarize_bookings(bookings: Iterable[Booking]) -> BookingSummary:
    counts: Dict[str, int] = {"pending": 0, "confirmed": 0, "completed": 0, "cancelled": 0}
    total = 0
    revenue: float = 0
    for booking in bookings:
        total += 1
        if booking.status in counts:
            counts[booking.status] += 1
        # Only completed bookings count towards revenue.
        if booking.status == "completed":
            revenue += booking.amount or 0
    return BookingSummary(total=total, revenue=revenue, **counts)


def total_amount(bookings: Sequence[Booking]) -> float:
    """Sum of ``amount`` (falling back to ``price``) across all bookings."""

    return sum((booking.amount or booking.price or 0) for booking in bookings)


def compute_stats(store: RecordStore) -> DashboardStats:
    return DashboardStats(
        users=summarize_users(store.users()),
        bookings=summarize_bookings(store.bookings()),
    )


__all__ = [
    "BookingSummary",
    "DashboardStats",
    "UserSummary",
    "compute_stats",
    "summarize_bookings",
    "summarize_users",
    "total_amount",
]
