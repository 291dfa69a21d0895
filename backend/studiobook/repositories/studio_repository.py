# backend/studiobook/repositories/studio_repository.py
"""
Studio Repository

Tenancy lookups used by the membership resolver: studios, staff rows and
account profiles. Every scoped query takes a concrete collection of ids and
binds it with IN (...); nothing is assembled from strings.
"""

from dataclasses import dataclass
import logging
from typing import Collection, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models.studio import (
    BOOKABLE_STAFF_TYPES,
    TRAINER_PROFILE_ROLES,
    Profile,
    StaffMember,
    Studio,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileInfo:
    role: str
    studio_id: Optional[str]


class StudioRepository(BaseRepository[Studio]):
    def __init__(self, db: Session):
        super().__init__(db, Studio)
        self.logger = logging.getLogger(__name__)

    def get_by_owner(self, owner_id: str) -> Optional[Studio]:
        query = self._build_query().filter(Studio.owner_id == owner_id).order_by(Studio.id)
        return self._execute_first(query)

    def get_by_id_or_owner(self, studio_key: str) -> Optional[Studio]:
        """Solo practitioners use their account id as studio key."""
        query = (
            self._build_query()
            .filter(or_(Studio.id == studio_key, Studio.owner_id == studio_key))
            .order_by((Studio.id == studio_key).desc(), Studio.id)
        )
        return self._execute_first(query)

    def list_by_ids(self, studio_ids: Collection[str]) -> List[Studio]:
        if not studio_ids:
            return []
        query = self._build_query().filter(Studio.id.in_(list(studio_ids))).order_by(Studio.id)
        return self._execute_query(query)

    def get_owner_id(self, studio_id: str) -> Optional[str]:
        query = self.db.query(Studio.owner_id).filter(Studio.id == studio_id)
        return self._execute_scalar(query)

    def owner_has_studio_in(self, owner_id: str, studio_ids: Collection[str]) -> bool:
        if not studio_ids:
            return False
        query = (
            self.db.query(Studio.id)
            .filter(Studio.owner_id == owner_id, Studio.id.in_(list(studio_ids)))
            .limit(1)
        )
        return self._execute_scalar(query) is not None

    # Staff

    def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        query = self.db.query(StaffMember).filter(StaffMember.id == staff_id)
        return self._execute_first(query)

    def is_bookable_staff_in(self, staff_id: str, studio_ids: Collection[str]) -> bool:
        if not studio_ids:
            return False
        query = (
            self.db.query(StaffMember.id)
            .filter(
                StaffMember.id == staff_id,
                StaffMember.staff_type.in_(BOOKABLE_STAFF_TYPES),
                StaffMember.studio_id.in_(list(studio_ids)),
            )
            .limit(1)
        )
        return self._execute_scalar(query) is not None

    def list_bookable_staff(self, studio_ids: Collection[str]) -> List[StaffMember]:
        if not studio_ids:
            return []
        query = (
            self.db.query(StaffMember)
            .filter(
                StaffMember.studio_id.in_(list(studio_ids)),
                StaffMember.staff_type.in_(BOOKABLE_STAFF_TYPES),
            )
            .order_by(StaffMember.last_name, StaffMember.first_name, StaffMember.id)
        )
        return self._execute_query(query)

    def staff_studio_ids(self, staff_id: str) -> List[str]:
        query = self.db.query(StaffMember.studio_id).filter(StaffMember.id == staff_id)
        return [row[0] for row in self._execute_query(query) if row[0]]

    # Profiles

    def get_profile(self, user_id: str) -> Optional[Profile]:
        query = self.db.query(Profile).filter(Profile.id == user_id)
        return self._execute_first(query)

    def list_trainer_profiles(self, user_ids: Collection[str]) -> List[Profile]:
        """Profiles among ``user_ids`` whose role lets them take bookings."""
        if not user_ids:
            return []
        query = (
            self.db.query(Profile)
            .filter(Profile.id.in_(list(user_ids)), Profile.role.in_(TRAINER_PROFILE_ROLES))
            .order_by(Profile.last_name, Profile.first_name, Profile.id)
        )
        return self._execute_query(query)

    def resolve_profile(self, user_id: str) -> Optional[ProfileInfo]:
        profile = self.get_profile(user_id)
        if profile is None:
            return None
        return ProfileInfo(role=profile.role, studio_id=profile.studio_id)
