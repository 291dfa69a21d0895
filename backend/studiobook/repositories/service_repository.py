# backend/studiobook/repositories/service_repository.py
"""
Service Repository

Tenant scoping for services is the typed predicate
``studio_id IN ids OR created_by IN ids``.
"""

import logging
from typing import Collection, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models.service import Service
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def service_scope_predicate(lookup_ids: Collection[str]):
    ids = list(lookup_ids)
    return or_(Service.studio_id.in_(ids), Service.created_by.in_(ids))


class ServiceRepository(BaseRepository[Service]):
    def __init__(self, db: Session):
        super().__init__(db, Service)
        self.logger = logging.getLogger(__name__)

    def list_bookable_in_scope(self, lookup_ids: Collection[str]) -> List[Service]:
        """Active, public services owned by any of ``lookup_ids``."""
        if not lookup_ids:
            return []
        query = (
            self._build_query()
            .filter(
                service_scope_predicate(lookup_ids),
                Service.is_active.is_(True),
                Service.is_public.is_(True),
            )
            .order_by(Service.name, Service.id)
        )
        return self._execute_query(query)
