"""Append-only catalog of bookable services."""
from __future__ import annotations

import logging
from typing import List

from .errors import ValidationFailedError
from .models import Service, utcnow
from .store import SERVICES, RecordStore

logger = logging.getLogger("fastsewa.catalog")


class ServiceCatalog:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def list_services(self) -> List[Service]:
        return list(self._store.services())

    def create(
        self,
        name: str,
        description: str = "",
        price: float = 0,
        duration: int = 0,
    ) -> Service:
        normalized_name = (name or "").strip()
        if not normalized_name:
            raise ValidationFailedError(["Service name is required"])

        now = utcnow()
        service = Service(
            id=self._store.next_id(SERVICES),
            name=normalized_name,
            description=description or "",
            price=price or 0,
            duration=duration or 0,
            created_at=now,
            updated_at=now,
        )
        self._store.add_service(service)
        logger.info("Service #%d (%s) added to the catalog", service.id, service.name)
        return service


__all__ = ["ServiceCatalog"]
