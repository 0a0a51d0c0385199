"""Spreadsheet exports of users and bookings, and management of the files."""
from __future__ import annotations

import json
import logging
import threading
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .errors import NotFoundError, StorageError, ValidationFailedError
from .models import Booking, ExportArtifact, PublicUser, User, parse_timestamp, utcnow
from .stats import summarize_bookings, summarize_users, total_amount
from .store import RecordStore
from .validation import validate_role, validate_status

logger = logging.getLogger("fastsewa.exports")

EXPORT_EXTENSION = ".xlsx"
SPREADSHEET_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

DateBound = Union[date, datetime, str, None]

USER_COLUMNS: Tuple[Tuple[str, int], ...] = (
    ("ID", 8),
    ("Username", 20),
    ("Full Name", 20),
    ("Email", 30),
    ("Phone", 15),
    ("Role", 12),
    ("Status", 12),
    ("Created Date", 12),
    ("Created Time", 12),
    ("Last Updated", 12),
    ("Address", 30),
    ("City", 15),
    ("Country", 15),
    ("Profile Info", 40),
    ("Full Info", 50),
)

BOOKING_COLUMNS: Tuple[Tuple[str, int], ...] = (
    ("Booking ID", 12),
    ("User ID", 8),
    ("User Name", 20),
    ("User Email", 25),
    ("Service ID", 10),
    ("Service Name", 25),
    ("Service Price", 12),
    ("Booking Date", 12),
    ("Booking Time", 12),
    ("Booking Status", 15),
    ("Amount Paid", 12),
    ("Payment Method", 15),
    ("Payment Status", 15),
    ("Created Date", 12),
    ("Created Time", 12),
    ("Notes", 30),
    ("Full Info", 50),
)

_END_OF_DAY = time(23, 59, 59, 999000)


def _as_public(user: User | PublicUser) -> PublicUser:
    if isinstance(user, User):
        return PublicUser.from_user(user)
    return user


def _user_row(user: PublicUser) -> List[object]:
    profile = user.profile
    return [
        user.id,
        user.username or "",
        (profile.name if profile else None) or "",
        user.email,
        (profile.phone if profile else None) or "",
        user.role,
        "Active" if user.is_active else "Inactive",
        user.created_at.date().isoformat(),
        user.created_at.strftime("%H:%M:%S"),
        user.updated_at.date().isoformat() if user.updated_at else "",
        (profile.address if profile else None) or "",
        (profile.city if profile else None) or "",
        (profile.country if profile else None) or "",
        json.dumps(profile.to_dict(), ensure_ascii=False) if profile else "",
        json.dumps(user.to_dict(), ensure_ascii=False),
    ]


def _booking_row(booking: Booking) -> List[object]:
    return [
        booking.id,
        booking.user_id,
        booking.user_name or "",
        booking.user_email or "",
        booking.service_id,
        booking.service_name or "",
        booking.price or booking.amount,
        booking.booking_date,
        booking.booking_time,
        booking.status or "pending",
        booking.amount or booking.price or 0,
        booking.payment_method,
        booking.payment_status or "pending",
        booking.created_at.date().isoformat(),
        booking.created_at.strftime("%H:%M:%S"),
        booking.notes,
        json.dumps(booking.to_dict(), ensure_ascii=False),
    ]


def _write_table(sheet: Worksheet, columns: Sequence[Tuple[str, int]], rows: Iterable[List[object]]) -> None:
    sheet.append([title for title, _ in columns])
    for index, (_, width) in enumerate(columns, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width
    for row in rows:
        sheet.append(row)


def _write_summary(workbook: Workbook, rows: Sequence[Tuple[str, object]]) -> None:
    sheet = workbook.create_sheet("Summary")
    for label, value in rows:
        sheet.append([label, value])
    sheet.column_dimensions["A"].width = 28
    sheet.column_dimensions["B"].width = 16


def _start_bound(value: DateBound) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    text = str(value).strip()
    try:
        if "T" in text or " " in text:
            return parse_timestamp(text)
        return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
    except ValueError as exc:
        raise ValidationFailedError([f"Invalid date: {text}"]) from exc


def _end_bound(value: DateBound) -> Optional[datetime]:
    start = _start_bound(value)
    if start is None:
        return None
    return datetime.combine(start.date(), _END_OF_DAY, tzinfo=start.tzinfo)


def _in_range(moment: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


def _booking_moment(booking: Booking) -> datetime:
    text = (booking.booking_date or "").strip()
    if text:
        try:
            if "T" in text or " " in text:
                return parse_timestamp(text)
            return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
        except ValueError:
            logger.debug("Booking #%d has unparseable date %r; using createdAt", booking.id, text)
    return booking.created_at


class ExportPipeline:
    """Writes ``.xlsx`` exports into a single directory and manages them.

    The directory is created when the pipeline is constructed, which happens
    at application start-up.
    """

    def __init__(self, store: RecordStore, export_dir: Path) -> None:
        self._store = store
        self._export_dir = export_dir
        self._lock = threading.Lock()
        export_dir.mkdir(parents=True, exist_ok=True)

    @property
    def export_dir(self) -> Path:
        return self._export_dir

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------
    def export_users(
        self,
        users: Sequence[User | PublicUser],
        base_name: str = "users_export",
    ) -> ExportArtifact:
        public = [_as_public(user) for user in users]
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "Users"
        _write_table(sheet, USER_COLUMNS, (_user_row(user) for user in public))

        summary = summarize_users(public)
        now = datetime.now()
        _write_summary(
            workbook,
            [
                ("Users Export Summary", ""),
                ("Total Users", summary.total),
                ("Active Users", summary.active),
                ("Admins", summary.admins),
                ("Regular Users", summary.regular),
                ("Export Date", now.date().isoformat()),
                ("Export Time", now.strftime("%H:%M:%S")),
            ],
        )

        path = self._save(workbook, base_name)
        logger.info("Exported %d user(s) to %s", len(public), path)
        return self._describe(path, record_count=len(public))

    def export_bookings(
        self,
        bookings: Sequence[Booking],
        base_name: str = "bookings_export",
    ) -> ExportArtifact:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "Bookings"
        _write_table(sheet, BOOKING_COLUMNS, (_booking_row(booking) for booking in bookings))

        summary = summarize_bookings(bookings)
        amount = total_amount(bookings)
        now = datetime.now()
        _write_summary(
            workbook,
            [
                ("Bookings Export Summary", ""),
                ("Total Bookings", summary.total),
                ("Pending Bookings", summary.pending),
                ("Confirmed Bookings", summary.confirmed),
                ("Completed Bookings", summary.completed),
                ("Cancelled Bookings", summary.cancelled),
                ("Total Revenue", summary.revenue),
                ("Total Amount", amount),
                ("Export Date", now.date().isoformat()),
                ("Export Time", now.strftime("%H:%M:%S")),
            ],
        )

        path = self._save(workbook, base_name)
        logger.info("Exported %d booking(s) to %s", len(bookings), path)
        return self._describe(path, record_count=len(bookings), total_amount=amount)

    def export_filtered_users(
        self,
        *,
        role: Optional[str] = None,
        status: Optional[str] = None,
        start_date: DateBound = None,
        end_date: DateBound = None,
    ) -> ExportArtifact:
        users = [PublicUser.from_user(user) for user in self._store.users()]

        if role:
            validate_role(role)
            users = [user for user in users if user.role == role]

        if status == "active":
            users = [user for user in users if user.is_active]
        elif status == "inactive":
            users = [user for user in users if not user.is_active]
        elif status:
            raise ValidationFailedError(['Invalid status filter. Must be "active" or "inactive"'])

        start, end = _start_bound(start_date), _end_bound(end_date)
        if start is not None or end is not None:
            users = [user for user in users if _in_range(user.created_at, start, end)]

        base_name = f"{role}_users" if role else "filtered_users"
        return self.export_users(users, base_name)

    def export_filtered_bookings(
        self,
        *,
        status: Optional[str] = None,
        start_date: DateBound = None,
        end_date: DateBound = None,
        service_id: Optional[object] = None,
    ) -> ExportArtifact:
        bookings = list(self._store.bookings())

        if status:
            validate_status(status)
            bookings = [booking for booking in bookings if booking.status == status]

        start, end = _start_bound(start_date), _end_bound(end_date)
        if start is not None or end is not None:
            bookings = [booking for booking in bookings if _in_range(_booking_moment(booking), start, end)]

        if service_id not in (None, ""):
            wanted = str(service_id)
            bookings = [booking for booking in bookings if str(booking.service_id) == wanted]

        base_name = f"{status}_bookings" if status else "filtered_bookings"
        return self.export_bookings(bookings, base_name)

    # ------------------------------------------------------------------
    # Artifact management
    # ------------------------------------------------------------------
    def list_exports(self) -> List[ExportArtifact]:
        """Return generated exports, most recently modified first."""

        try:
            paths = [path for path in self._export_dir.iterdir() if path.suffix == EXPORT_EXTENSION and path.is_file()]
            artifacts = [self._describe(path) for path in paths]
        except OSError as exc:
            raise StorageError(f"Failed to list exports in {self._export_dir}") from exc
        artifacts.sort(key=lambda artifact: artifact.modified_at, reverse=True)
        return artifacts

    def resolve_export(self, filename: str) -> Path:
        path = self._safe_path(filename)
        if not path.is_file():
            raise NotFoundError("File not found")
        return path

    def delete_export(self, filename: str) -> None:
        path = self._safe_path(filename)
        try:
            path.unlink()
        except OSError as exc:
            logger.error("Failed to delete export %s: %s", path, exc)
            raise StorageError(f"Failed to delete {filename}") from exc
        logger.info("Deleted export %s", path)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _safe_path(self, filename: str) -> Path:
        if (
            not filename
            or Path(filename).name != filename
            or filename in {".", ".."}
            or not filename.endswith(EXPORT_EXTENSION)
        ):
            raise ValidationFailedError(["Invalid export filename"])
        return self._export_dir / filename

    def _save(self, workbook: Workbook, base_name: str) -> Path:
        stamp = utcnow().isoformat(timespec="microseconds").replace("+00:00", "Z")
        stamp = stamp.replace(":", "-").replace(".", "-")
        with self._lock:
            path = self._export_dir / f"{base_name}_{stamp}{EXPORT_EXTENSION}"
            suffix = 1
            while path.exists():
                path = self._export_dir / f"{base_name}_{stamp}-{suffix}{EXPORT_EXTENSION}"
                suffix += 1
            try:
                workbook.save(path)
            except OSError as exc:
                logger.error("Failed to write export %s: %s", path, exc)
                raise StorageError(f"Failed to write {path.name}") from exc
        return path

    def _describe(
        self,
        path: Path,
        *,
        record_count: Optional[int] = None,
        total_amount: Optional[float] = None,
    ) -> ExportArtifact:
        stat = path.stat()
        return ExportArtifact(
            filename=path.name,
            path=path,
            size=stat.st_size,
            created_at=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            record_count=record_count,
            total_amount=total_amount,
        )


__all__ = ["EXPORT_EXTENSION", "ExportPipeline", "SPREADSHEET_MIME_TYPE"]
