"""FastAPI application exposing authentication, bookings and the admin panel."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .bookings import BookingLedger
from .catalog import ServiceCatalog
from .config import Settings, load_settings
from .credentials import TokenIssuer
from .errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    NotFoundError,
    StorageError,
    ValidationFailedError,
)
from .exports import SPREADSHEET_MIME_TYPE, ExportPipeline
from .models import Booking, PublicUser, utcnow
from .security import BearerAuth, ensure_admin
from .stats import compute_stats
from .store import AdminBootstrap, RecordStore
from .users import UserDirectory
from .validation import validate_login, validate_registration, validate_role, validate_status

logger = logging.getLogger("fastsewa.api")

SERVICE_NAME = "FASTSEWA Admin API"
SERVICE_VERSION = "1.0.0"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProfilePayload(_CamelModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class RegisterRequest(_CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None
    profile: Optional[ProfilePayload] = None


class LoginRequest(_CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserUpdateRequest(_CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None
    profile: Optional[ProfilePayload] = None


class UserStatusRequest(_CamelModel):
    is_active: bool


class UserRoleRequest(_CamelModel):
    role: str


class BookingCreateRequest(_CamelModel):
    service_id: Optional[int] = None
    service_name: Optional[str] = None
    booking_date: Optional[str] = None
    booking_time: Optional[str] = None
    notes: Optional[str] = None
    amount: Optional[float] = None
    payment_method: Optional[str] = None


class BookingUpdateRequest(_CamelModel):
    service_id: Optional[int] = None
    service_name: Optional[str] = None
    booking_date: Optional[str] = None
    booking_time: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[float] = None
    price: Optional[float] = None
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    notes: Optional[str] = None


class BookingStatusRequest(_CamelModel):
    status: str


class ServiceCreateRequest(_CamelModel):
    name: str = ""
    description: str = ""
    price: float = 0
    duration: int = 0


class UserExportFilters(_CamelModel):
    role: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class BookingExportFilters(_CamelModel):
    status: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    service_id: Optional[Union[int, str]] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def create_app(
    *,
    settings: Settings | None = None,
    store: RecordStore | None = None,
    initialize_store: bool = False,
) -> FastAPI:
    if settings is None:
        settings = load_settings()

    if store is None:
        store = RecordStore(
            settings.data_dir,
            admin=AdminBootstrap(
                username=settings.admin_username,
                email=settings.admin_email,
                password=settings.admin_password,
            ),
        )
        store.initialize()
    elif initialize_store:
        store.initialize()

    tokens = TokenIssuer(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(hours=settings.token_ttl_hours),
    )
    directory = UserDirectory(store, tokens)
    ledger = BookingLedger(store)
    catalog = ServiceCatalog(store)
    exports = ExportPipeline(store, settings.export_dir)
    auth = BearerAuth(directory)

    app = FastAPI(
        title=SERVICE_NAME,
        description="Service booking administration with Excel exports",
        version=SERVICE_VERSION,
    )
    app.state.store = store
    app.state.directory = directory
    app.state.ledger = ledger
    app.state.exports = exports

    async def get_current_user(request: Request) -> PublicUser:
        return await auth(request)

    def require_admin(current_user: PublicUser = Depends(get_current_user)) -> PublicUser:
        return ensure_admin(current_user)

    def get_owned_booking(booking_id: int, current_user: PublicUser = Depends(get_current_user)) -> Booking:
        booking = ledger.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.user_id != current_user.id and current_user.role != "admin":
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return booking

    @app.get("/api/health")
    async def healthcheck() -> Dict[str, str]:
        return {
            "status": "OK",
            "timestamp": utcnow().isoformat(),
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
        }

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    @app.post("/api/auth/register", status_code=status.HTTP_201_CREATED)
    async def register(payload: RegisterRequest) -> Dict[str, Any]:
        validate_registration(payload.username, payload.email, payload.password, payload.confirm_password)
        user = directory.register(
            payload.username or "",
            payload.email or "",
            payload.password or "",
            payload.profile.model_dump(exclude_none=True) if payload.profile else None,
        )
        return {"success": True, "message": "Registration successful", "user": user.to_dict()}

    @app.post("/api/auth/login")
    async def login(payload: LoginRequest):
        validate_login(payload.email, payload.password)
        try:
            result = directory.authenticate(payload.email or "", payload.password or "")
        except NotFoundError as exc:
            return _error(status.HTTP_401_UNAUTHORIZED, str(exc))
        return {
            "success": True,
            "message": "Login successful",
            "token": result.token,
            "user": result.user.to_dict(),
        }

    @app.get("/api/auth/profile")
    async def read_profile(current_user: PublicUser = Depends(get_current_user)) -> Dict[str, Any]:
        return {"success": True, "user": current_user.to_dict()}

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    users_router = APIRouter(prefix="/api/users")

    @users_router.get("")
    async def list_users(_: PublicUser = Depends(get_current_user)) -> Dict[str, Any]:
        users = directory.list_users()
        return {"success": True, "count": len(users), "users": [user.to_dict() for user in users]}

    @users_router.get("/{user_id}")
    async def read_user(user_id: int, _: PublicUser = Depends(get_current_user)) -> Dict[str, Any]:
        user = directory.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return {"success": True, "user": user.to_dict()}

    @users_router.put("/{user_id}")
    async def update_user(
        user_id: int,
        payload: UserUpdateRequest,
        current_user: PublicUser = Depends(get_current_user),
    ) -> Dict[str, Any]:
        changes = payload.model_dump(exclude_unset=True)
        if current_user.role != "admin":
            if user_id != current_user.id:
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
            if "role" in changes or "is_active" in changes:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Only admins can change user roles",
                )
        user = directory.update(user_id, **changes)
        return {"success": True, "message": "User updated successfully", "user": user.to_dict()}

    app.include_router(users_router)

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------
    bookings_router = APIRouter(prefix="/api/bookings")

    @bookings_router.get("")
    async def list_my_bookings(current_user: PublicUser = Depends(get_current_user)) -> Dict[str, Any]:
        entries = ledger.list_for_user(current_user.id)
        return {"success": True, "bookings": [entry.to_dict() for entry in entries]}

    @bookings_router.post("", status_code=status.HTTP_201_CREATED)
    async def create_booking(
        payload: BookingCreateRequest,
        current_user: PublicUser = Depends(get_current_user),
    ) -> Dict[str, Any]:
        service_name = payload.service_name
        if service_name is None and payload.service_id is not None:
            for service in catalog.list_services():
                if service.id == payload.service_id:
                    service_name = service.name
                    break
        booking = ledger.create(
            user_id=current_user.id,
            service_id=payload.service_id,
            service_name=service_name,
            user_name=current_user.display_name,
            user_email=current_user.email,
            booking_date=payload.booking_date,
            booking_time=payload.booking_time,
            notes=payload.notes,
            amount=payload.amount or 0,
            payment_method=payload.payment_method,
            status="pending",
        )
        return {"success": True, "message": "Booking created successfully", "booking": booking.to_dict()}

    @bookings_router.get("/{booking_id}")
    async def read_booking(booking: Booking = Depends(get_owned_booking)) -> Dict[str, Any]:
        return {"success": True, "booking": booking.to_dict()}

    @bookings_router.put("/{booking_id}")
    async def update_booking(
        payload: BookingUpdateRequest,
        booking: Booking = Depends(get_owned_booking),
    ) -> Dict[str, Any]:
        updated = ledger.update(booking.id, **payload.model_dump(exclude_unset=True))
        return {"success": True, "message": "Booking updated successfully", "booking": updated.to_dict()}

    @bookings_router.delete("/{booking_id}")
    async def cancel_booking(booking: Booking = Depends(get_owned_booking)) -> Dict[str, Any]:
        ledger.delete(booking.id)
        return {"success": True, "message": "Booking cancelled successfully"}

    app.include_router(bookings_router)

    # ------------------------------------------------------------------
    # Admin panel
    # ------------------------------------------------------------------
    admin_router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])

    @admin_router.get("/users")
    async def admin_list_users() -> Dict[str, Any]:
        users = directory.list_users()
        return {
            "success": True,
            "stats": compute_stats(store).to_dict(),
            "total": len(users),
            "users": [user.to_dict() for user in users],
        }

    @admin_router.get("/bookings")
    async def admin_list_bookings() -> Dict[str, Any]:
        entries = ledger.list()
        return {
            "success": True,
            "stats": compute_stats(store).to_dict(),
            "total": len(entries),
            "bookings": [entry.to_dict() for entry in entries],
        }

    @admin_router.get("/services")
    async def admin_list_services() -> Dict[str, Any]:
        services = catalog.list_services()
        return {"success": True, "total": len(services), "services": [service.to_dict() for service in services]}

    @admin_router.post("/services")
    async def admin_create_service(payload: ServiceCreateRequest) -> Dict[str, Any]:
        service = catalog.create(payload.name, payload.description, payload.price, payload.duration)
        return {"success": True, "message": "Service created successfully", "service": service.to_dict()}

    @admin_router.get("/stats")
    async def admin_stats() -> Dict[str, Any]:
        return {"success": True, "stats": compute_stats(store).to_dict()}

    @admin_router.post("/export/users")
    async def admin_export_users() -> Dict[str, Any]:
        artifact = exports.export_users(directory.list_users())
        return {"success": True, "message": "Users export completed successfully", "data": artifact.to_dict()}

    @admin_router.post("/export/bookings")
    async def admin_export_bookings() -> Dict[str, Any]:
        artifact = exports.export_bookings(store.bookings())
        return {"success": True, "message": "Bookings export completed successfully", "data": artifact.to_dict()}

    @admin_router.post("/export/users/filtered")
    async def admin_export_filtered_users(filters: UserExportFilters) -> Dict[str, Any]:
        artifact = exports.export_filtered_users(**filters.model_dump())
        return {"success": True, "message": "Filtered users export completed", "data": artifact.to_dict()}

    @admin_router.post("/export/bookings/filtered")
    async def admin_export_filtered_bookings(filters: BookingExportFilters) -> Dict[str, Any]:
        artifact = exports.export_filtered_bookings(**filters.model_dump())
        return {"success": True, "message": "Filtered bookings export completed", "data": artifact.to_dict()}

    @admin_router.get("/exports")
    async def admin_list_exports() -> Dict[str, Any]:
        files: List[Dict[str, Any]] = [artifact.to_dict() for artifact in exports.list_exports()]
        return {"success": True, "files": files}

    @admin_router.get("/download/{filename}")
    async def admin_download_export(filename: str) -> FileResponse:
        path = exports.resolve_export(filename)
        return FileResponse(path, media_type=SPREADSHEET_MIME_TYPE, filename=filename)

    @admin_router.delete("/exports/{filename}")
    async def admin_delete_export(filename: str) -> Dict[str, Any]:
        exports.delete_export(filename)
        return {"success": True, "message": "File deleted successfully"}

    @admin_router.patch("/users/{user_id}/status")
    async def admin_set_user_status(user_id: int, payload: UserStatusRequest) -> Dict[str, Any]:
        user = directory.set_active(user_id, payload.is_active)
        state = "activated" if payload.is_active else "deactivated"
        return {"success": True, "message": f"User {state} successfully", "user": user.to_dict()}

    @admin_router.patch("/users/{user_id}/role")
    async def admin_change_role(user_id: int, payload: UserRoleRequest) -> Dict[str, Any]:
        validate_role(payload.role)
        user = directory.change_role(user_id, payload.role)
        return {"success": True, "message": f"User role changed to {payload.role}", "user": user.to_dict()}

    @admin_router.patch("/bookings/{booking_id}/status")
    async def admin_set_booking_status(booking_id: int, payload: BookingStatusRequest) -> Dict[str, Any]:
        validate_status(payload.status)
        booking = ledger.update(booking_id, status=payload.status)
        return {
            "success": True,
            "message": f"Booking status updated to {payload.status}",
            "booking": booking.to_dict(),
        }

    app.include_router(admin_router)

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: object, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(ValidationFailedError)
    async def handle_validation_error(_: object, exc: ValidationFailedError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "errors": exc.messages},
        )

    @app.exception_handler(DuplicateEmailError)
    async def handle_duplicate_email(_: object, exc: DuplicateEmailError):
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(_: object, exc: NotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(InvalidCredentialsError)
    async def handle_invalid_credentials(_: object, exc: InvalidCredentialsError):
        return _error(status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.exception_handler(StorageError)
    async def handle_storage_error(_: object, exc: StorageError):
        logger.error("Storage failure: %s", exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    return app


__all__ = ["create_app"]
