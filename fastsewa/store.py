"""JSON-file backed record store for users, bookings and services."""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

from .credentials import PasswordHasher
from .errors import NotFoundError, StorageError
from .models import Booking, Service, User, UserProfile, utcnow

logger = logging.getLogger("fastsewa.store")

USERS = "users"
BOOKINGS = "bookings"
SERVICES = "services"
COLLECTIONS = (USERS, BOOKINGS, SERVICES)

_LOADED = "loaded"
_MISSING = "missing"
_FAILED = "failed"

DEFAULT_SERVICES: Tuple[Dict[str, object], ...] = (
    {"id": 1, "name": "Web Development", "description": "Custom website development", "price": 500, "duration": 30},
    {"id": 2, "name": "Mobile App", "description": "iOS and Android app development", "price": 1000, "duration": 60},
    {"id": 3, "name": "SEO Services", "description": "Search engine optimization", "price": 300, "duration": 15},
    {"id": 4, "name": "UI/UX Design", "description": "User interface and experience design", "price": 400, "duration": 45},
)

_RECORD_TYPES: Mapping[str, Callable[[Mapping[str, object]], object]] = {
    USERS: User.from_dict,
    BOOKINGS: Booking.from_dict,
    SERVICES: Service.from_dict,
}

RecordT = TypeVar("RecordT", User, Booking, Service)


@dataclass(frozen=True)
class AdminBootstrap:
    """Credentials for the administrator synthesized when none exists."""

    username: str = "admin"
    email: str = "admin@example.com"
    password: str = "admin123"


class RecordStore:
    """Owns the live collections and mirrors every change to disk.

    Callers only ever receive tuples of frozen records. Each mutation holds
    the collection's lock across the in-memory change and the file write, and
    the in-memory list is swapped only after the write succeeded.
    """

    def __init__(
        self,
        data_dir: Path,
        *,
        admin: AdminBootstrap | None = None,
        hasher: PasswordHasher | None = None,
    ) -> None:
        self._data_dir = data_dir
        self._admin = admin or AdminBootstrap()
        self._hasher = hasher or PasswordHasher()
        self._records: Dict[str, List[object]] = {name: [] for name in COLLECTIONS}
        self._locks: Dict[str, threading.RLock] = {name: threading.RLock() for name in COLLECTIONS}
        self._counters: Dict[str, int] = {name: 0 for name in COLLECTIONS}

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def hasher(self) -> PasswordHasher:
        return self._hasher

    def path_for(self, collection: str) -> Path:
        self._check_collection(collection)
        return self._data_dir / f"{collection}.json"

    def lock(self, collection: str) -> threading.RLock:
        """Return the re-entrant lock guarding ``collection``."""

        self._check_collection(collection)
        return self._locks[collection]

    # ------------------------------------------------------------------
    # Loading and saving
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """Load all collections, installing defaults for missing files."""

        self._data_dir.mkdir(parents=True, exist_ok=True)
        statuses: Dict[str, str] = {}
        for collection in COLLECTIONS:
            statuses[collection] = self._load(collection)
            if statuses[collection] == _MISSING:
                self._install_defaults(collection)

        self._ensure_admin(persist=statuses[USERS] != _FAILED)

    def persist(self, collection: str) -> None:
        """Overwrite the collection's file with the full in-memory contents."""

        with self.lock(collection):
            self._write(collection, self._records[collection])

    def next_id(self, collection: str) -> int:
        with self.lock(collection):
            self._counters[collection] += 1
            return self._counters[collection]

    def _load(self, collection: str) -> str:
        path = self.path_for(collection)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No %s file at %s; using defaults", collection, path)
            return _MISSING
        except OSError:
            logger.exception("Failed to read %s from %s", collection, path)
            return _FAILED

        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError(f"Expected a JSON array in {path}")
            factory = _RECORD_TYPES[collection]
            records = [factory(item) for item in items]
        except (ValueError, KeyError, TypeError):
            logger.exception("Failed to parse %s from %s", collection, path)
            return _FAILED

        with self.lock(collection):
            self._records[collection] = records
            self._counters[collection] = max((record.id for record in records), default=0)  # type: ignore[attr-defined]
        logger.info("Loaded %d %s from storage", len(records), collection)
        return _LOADED

    def _install_defaults(self, collection: str) -> None:
        if collection == USERS:
            records: List[object] = [self._build_admin()]
        elif collection == SERVICES:
            records = [Service.from_dict(item) for item in DEFAULT_SERVICES]
        else:
            records = []

        with self.lock(collection):
            self._write(collection, records)
            self._records[collection] = records
            self._counters[collection] = max((record.id for record in records), default=0)  # type: ignore[attr-defined]
        logger.info("Created %s with %d default record(s)", self.path_for(collection), len(records))

    def _ensure_admin(self, *, persist: bool) -> None:
        with self.lock(USERS):
            if any(user.role == "admin" for user in self.users()):
                return
            admin = self._build_admin()
            if persist:
                self.add_user(admin)
                logger.info("Default admin user %s created", admin.email)
            else:
                self._records[USERS] = [*self._records[USERS], admin]
                logger.warning(
                    "Users file is unreadable; default admin %s kept in memory only",
                    admin.email,
                )

    def _build_admin(self) -> User:
        now = utcnow()
        return User(
            id=self.next_id(USERS),
            username=self._admin.username,
            email=self._admin.email,
            password=self._hasher.hash(self._admin.password),
            role="admin",
            is_active=True,
            created_at=now,
            updated_at=now,
            profile=UserProfile(name="Administrator", phone="+1234567890"),
        )

    def _write(self, collection: str, records: List[object]) -> None:
        path = self.path_for(collection)
        payload = json.dumps(
            [record.to_dict() for record in records],  # type: ignore[attr-defined]
            indent=2,
            ensure_ascii=False,
        )
        try:
            path.write_text(payload + "\n", encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to save %s to %s: %s", collection, path, exc)
            raise StorageError(f"Failed to save {collection} data") from exc

    # ------------------------------------------------------------------
    # Snapshots and lookups
    # ------------------------------------------------------------------
    def users(self) -> Tuple[User, ...]:
        with self.lock(USERS):
            return tuple(self._records[USERS])  # type: ignore[arg-type]

    def bookings(self) -> Tuple[Booking, ...]:
        with self.lock(BOOKINGS):
            return tuple(self._records[BOOKINGS])  # type: ignore[arg-type]

    def services(self) -> Tuple[Service, ...]:
        with self.lock(SERVICES):
            return tuple(self._records[SERVICES])  # type: ignore[arg-type]

    def get_user(self, user_id: int) -> Optional[User]:
        for user in self.users():
            if user.id == user_id:
                return user
        return None

    def find_user_by_email(self, email: str, *, active_only: bool = False) -> Optional[User]:
        for user in self.users():
            if user.email == email and (user.is_active or not active_only):
                return user
        return None

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        for booking in self.bookings():
            if booking.id == booking_id:
                return booking
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_user(self, user: User) -> User:
        return self._add(USERS, user)

    def replace_user(self, user: User) -> User:
        return self._replace(USERS, user, "User not found")

    def add_booking(self, booking: Booking) -> Booking:
        return self._add(BOOKINGS, booking)

    def replace_booking(self, booking: Booking) -> Booking:
        return self._replace(BOOKINGS, booking, "Booking not found")

    def remove_booking(self, booking_id: int) -> Booking:
        with self.lock(BOOKINGS):
            current = self._records[BOOKINGS]
            for index, booking in enumerate(current):
                if booking.id == booking_id:  # type: ignore[attr-defined]
                    updated = current[:index] + current[index + 1:]
                    self._write(BOOKINGS, updated)
                    self._records[BOOKINGS] = updated
                    return booking  # type: ignore[return-value]
        raise NotFoundError("Booking not found")

    def add_service(self, service: Service) -> Service:
        return self._add(SERVICES, service)

    def _add(self, collection: str, record: RecordT) -> RecordT:
        with self.lock(collection):
            updated = [*self._records[collection], record]
            self._write(collection, updated)
            self._records[collection] = updated
            self._counters[collection] = max(self._counters[collection], record.id)
        return record

    def _replace(self, collection: str, record: RecordT, missing_message: str) -> RecordT:
        with self.lock(collection):
            current = self._records[collection]
            for index, existing in enumerate(current):
                if existing.id == record.id:  # type: ignore[attr-defined]
                    updated = list(current)
                    updated[index] = record
                    self._write(collection, updated)
                    self._records[collection] = updated
                    return record
        raise NotFoundError(missing_message)

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}'")


__all__ = [
    "AdminBootstrap",
    "BOOKINGS",
    "COLLECTIONS",
    "DEFAULT_SERVICES",
    "RecordStore",
    "SERVICES",
    "USERS",
]
