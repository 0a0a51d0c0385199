"""Domain records persisted by the record store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Literal, Mapping, Optional

Role = Literal["admin", "user"]
BookingStatus = Literal["pending", "confirmed", "completed", "cancelled"]

ROLES = ("admin", "user")
BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def parse_timestamp(value: str) -> datetime:
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_timestamp(value: object) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return parse_timestamp(str(value))


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value)


_PROFILE_FIELDS = ("name", "phone", "address", "city", "country")


@dataclass(frozen=True)
class UserProfile:
    """Free-form contact details attached to a user account."""

    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Read-only copy so snapshots cannot mutate the stored record.
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "UserProfile":
        extra = {key: value for key, value in data.items() if key not in _PROFILE_FIELDS}
        return UserProfile(
            name=_optional_text(data.get("name")),
            phone=_optional_text(data.get("phone")),
            address=_optional_text(data.get("address")),
            city=_optional_text(data.get("city")),
            country=_optional_text(data.get("country")),
            extra=extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        for key in _PROFILE_FIELDS:
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(frozen=True)
class User:
    """A registered account as stored on disk, password hash included."""

    id: int
    username: str
    email: str
    password: str
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    profile: Optional[UserProfile] = None

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "User":
        profile = data.get("profile")
        return User(
            id=int(data["id"]),
            username=str(data.get("username") or ""),
            email=str(data["email"]),
            password=str(data["password"]),
            role=str(data.get("role") or "user"),  # type: ignore[arg-type]
            is_active=bool(data.get("isActive", True)),
            created_at=parse_timestamp(str(data["createdAt"])),
            updated_at=_optional_timestamp(data.get("updatedAt")),
            profile=UserProfile.from_dict(profile) if isinstance(profile, Mapping) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "password": self.password,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at) if self.updated_at else None,
        }
        if self.profile is not None:
            payload["profile"] = self.profile.to_dict()
        return payload


@dataclass(frozen=True)
class PublicUser:
    """Projection of :class:`User` that never carries the password hash."""

    id: int
    username: str
    email: str
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    profile: Optional[UserProfile] = None

    @staticmethod
    def from_user(user: User) -> "PublicUser":
        return PublicUser(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
            profile=user.profile,
        )

    @property
    def display_name(self) -> str:
        if self.profile is not None and self.profile.name:
            return self.profile.name
        return self.username

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at) if self.updated_at else None,
        }
        if self.profile is not None:
            payload["profile"] = self.profile.to_dict()
        return payload


@dataclass(frozen=True)
class Booking:
    """A reservation of a catalog service, with denormalized names."""

    id: int
    user_id: Optional[int]
    service_id: Optional[int]
    service_name: Optional[str]
    user_name: Optional[str]
    user_email: Optional[str]
    booking_date: str
    booking_time: str
    status: BookingStatus
    amount: float
    price: float
    payment_method: str
    payment_status: str
    notes: str
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Booking":
        created_at = parse_timestamp(str(data["createdAt"]))
        return Booking(
            id=int(data["id"]),
            user_id=data.get("userId"),
            service_id=data.get("serviceId"),
            service_name=_optional_text(data.get("serviceName")),
            user_name=_optional_text(data.get("userName")),
            user_email=_optional_text(data.get("userEmail")),
            booking_date=str(data.get("bookingDate") or ""),
            booking_time=str(data.get("bookingTime") or ""),
            status=str(data.get("status") or "pending"),  # type: ignore[arg-type]
            amount=data.get("amount") or 0,
            price=data.get("price") or 0,
            payment_method=str(data.get("paymentMethod") or "cash"),
            payment_status=str(data.get("paymentStatus") or "pending"),
            notes=str(data.get("notes") or ""),
            created_at=created_at,
            updated_at=_optional_timestamp(data.get("updatedAt")) or created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "serviceId": self.service_id,
            "serviceName": self.service_name,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "bookingDate": self.booking_date,
            "bookingTime": self.booking_time,
            "status": self.status,
            "amount": self.amount,
            "price": self.price,
            "paymentMethod": self.payment_method,
            "paymentStatus": self.payment_status,
            "notes": self.notes,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }


@dataclass(frozen=True)
class BookingEntry:
    """A booking joined with its owner's public view at read time."""

    booking: Booking
    user: Optional[PublicUser]

    def to_dict(self) -> Dict[str, Any]:
        payload = self.booking.to_dict()
        payload["user"] = self.user.to_dict() if self.user is not None else None
        return payload


@dataclass(frozen=True)
class Service:
    """An entry in the bookable service catalog."""

    id: int
    name: str
    description: str
    price: float
    duration: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Service":
        return Service(
            id=int(data["id"]),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            price=data.get("price") or 0,
            duration=data.get("duration") or 0,
            created_at=_optional_timestamp(data.get("createdAt")),
            updated_at=_optional_timestamp(data.get("updatedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "duration": self.duration,
        }
        if self.created_at is not None:
            payload["createdAt"] = format_timestamp(self.created_at)
        if self.updated_at is not None:
            payload["updatedAt"] = format_timestamp(self.updated_at)
        return payload


@dataclass(frozen=True)
class ExportArtifact:
    """Metadata describing a generated spreadsheet export."""

    filename: str
    path: Path
    size: int
    created_at: datetime
    modified_at: datetime
    record_count: Optional[int] = None
    total_amount: Optional[float] = None

    @property
    def download_url(self) -> str:
        return f"/api/admin/download/{self.filename}"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "filename": self.filename,
            "path": str(self.path),
            "downloadUrl": self.download_url,
            "size": self.size,
            "created": format_timestamp(self.created_at),
            "modified": format_timestamp(self.modified_at),
        }
        if self.record_count is not None:
            payload["recordCount"] = self.record_count
        if self.total_amount is not None:
            payload["totalAmount"] = self.total_amount
        return payload


__all__ = [
    "BOOKING_STATUSES",
    "ROLES",
    "Booking",
    "BookingEntry",
    "BookingStatus",
    "ExportArtifact",
    "PublicUser",
    "Role",
    "Service",
    "User",
    "UserProfile",
    "format_timestamp",
    "parse_timestamp",
    "utcnow",
]
