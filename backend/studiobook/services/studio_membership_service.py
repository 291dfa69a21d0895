# backend/studiobook/services/studio_membership_service.py
"""
Studio Membership Service

Resolves which tenant scope a client belongs to. A scope is a set of ids:
studio ids and owner account ids are interchangeable keys because solo
practitioners use their own account id as their studio id.

Everything a client may see or book (services, trainers, the governing
studio's policies) is filtered through this set. An empty set authorizes
nothing.
"""

from dataclasses import dataclass
import logging
from typing import Collection, Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.exceptions import NotFoundException, RepositoryException, ServiceException
from ..models.client import Client
from ..models.service import Service
from ..models.studio import TRAINER_PROFILE_ROLES, Profile, ProfileRole, StaffType, Studio
from ..repositories import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainerListing:
    """A bookable person as shown to clients."""

    id: str
    studio_id: str
    staff_type: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: Profile, studio_id: str) -> "TrainerListing":
        staff_type = (
            StaffType.TRAINER.value
            if profile.role == ProfileRole.TRAINER.value
            else StaffType.OWNER.value
        )
        return cls(
            id=profile.id,
            studio_id=studio_id,
            staff_type=staff_type,
            first_name=profile.first_name,
            last_name=profile.last_name,
        )


class StudioMembershipService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.client_repository = RepositoryFactory.create_client_repository(db)
        self.studio_repository = RepositoryFactory.create_studio_repository(db)
        self.service_repository = RepositoryFactory.create_service_repository(db)

    def get_client(self, client_id: str) -> Client:
        client = self.client_repository.get_by_id(client_id)
        if client is None:
            raise NotFoundException("Client not found")
        return client

    @BaseService.measure_operation("resolve_lookup_ids")
    def resolve_lookup_ids(self, client: Client, repair: bool = True) -> Set[str]:
        """
        Expand a client into the set of tenant keys it may act within.

        Args:
            client: Client record
            repair: Persist an inferred studio onto a client that has none

        Returns:
            Deduplicated ids; empty when no scope could be found
        """
        lookup_ids: Set[str] = set()
        studio_id = client.studio_id
        if studio_id:
            lookup_ids.add(studio_id)

        if client.invited_by:
            lookup_ids.add(client.invited_by)
            inviter = self.studio_repository.get_staff(client.invited_by)
            if inviter is not None and inviter.studio_id:
                lookup_ids.add(inviter.studio_id)
                if not studio_id:
                    studio_id = inviter.studio_id
                    if repair:
                        self.repair_client_studio(client, inviter.studio_id)

        if studio_id:
            owner_id = self.studio_repository.get_owner_id(studio_id)
            if owner_id:
                lookup_ids.add(owner_id)

        return lookup_ids

    def repair_client_studio(self, client: Client, studio_id: str) -> None:
        """
        Backfill a client's missing studio from its inviter's affiliation.

        Resolution runs before any booking write, so the backfill commits on
        its own. A failure is logged and resolution carries on.
        """
        try:
            with self.transaction():
                if self.client_repository.set_studio_id(client.id, studio_id):
                    self.logger.info(
                        "Backfilled studio %s onto client %s from inviter", studio_id, client.id
                    )
        except (RepositoryException, ServiceException, SQLAlchemyError) as exc:
            self.logger.error(
                "Studio backfill failed for client %s (continuing): %s", client.id, exc
            )

    # Scope predicates

    @staticmethod
    def service_in_scope(service: Service, lookup_ids: Collection[str]) -> bool:
        return bool(
            (service.studio_id and service.studio_id in lookup_ids)
            or (service.created_by and service.created_by in lookup_ids)
        )

    def trainer_in_scope(self, trainer_id: str, lookup_ids: Collection[str]) -> bool:
        """Direct id match, bookable staff of a studio in scope, or owner of such a studio."""
        if not lookup_ids or not trainer_id:
            return False
        if trainer_id in lookup_ids:
            return True
        if self.studio_repository.is_bookable_staff_in(trainer_id, lookup_ids):
            return True

        profile = self.studio_repository.resolve_profile(trainer_id)
        if profile is not None and profile.role in TRAINER_PROFILE_ROLES:
            return self.studio_repository.owner_has_studio_in(trainer_id, lookup_ids)
        return False

    def get_governing_studio(self, studio_key: Optional[str]) -> Optional[Studio]:
        """The studio whose policies apply, looked up by studio id or owner id."""
        if not studio_key:
            return None
        return self.studio_repository.get_by_id_or_owner(studio_key)

    def governing_studio_for_client(
        self, client: Client, lookup_ids: Collection[str]
    ) -> Optional[Studio]:
        if client.studio_id:
            studio = self.get_governing_studio(client.studio_id)
            if studio is not None:
                return studio
        for key in sorted(lookup_ids):
            studio = self.get_governing_studio(key)
            if studio is not None:
                return studio
        return None

    # Client-facing listings

    @BaseService.measure_operation("list_bookable_services")
    def list_bookable_services(self, client_id: str) -> List[Service]:
        client = self.get_client(client_id)
        lookup_ids = self.resolve_lookup_ids(client)
        return self.service_repository.list_bookable_in_scope(lookup_ids)

    @BaseService.measure_operation("list_trainers")
    def list_trainers(self, client_id: str) -> List[TrainerListing]:
        """
        Everyone the client may book with.

        Staff rows come first. Trainer-role profiles among the lookup ids
        (solo practitioners have no staff row) and owners of studios in scope
        follow, each id listed once.
        """
        client = self.get_client(client_id)
        lookup_ids = self.resolve_lookup_ids(client)

        trainers: Dict[str, TrainerListing] = {}
        for member in self.studio_repository.list_bookable_staff(lookup_ids):
            trainers.setdefault(
                member.id,
                TrainerListing(
                    id=member.id,
                    studio_id=member.studio_id,
                    staff_type=member.staff_type,
                    first_name=member.first_name,
                    last_name=member.last_name,
                ),
            )

        for profile in self.studio_repository.list_trainer_profiles(lookup_ids):
            if profile.id not in trainers:
                trainers[profile.id] = TrainerListing.from_profile(
                    profile, profile.studio_id or profile.id
                )

        for studio in self.studio_repository.list_by_ids(lookup_ids):
            if studio.owner_id in trainers:
                continue
            owner = self.studio_repository.get_profile(studio.owner_id)
            if owner is not None:
                trainers[studio.owner_id] = TrainerListing.from_profile(owner, studio.id)
            else:
                trainers[studio.owner_id] = TrainerListing(
                    id=studio.owner_id,
                    studio_id=studio.id,
                    staff_type=StaffType.OWNER.value,
                )

        return list(trainers.values())

    # Staff access

    def staff_can_manage(self, staff_id: str, trainer_id: str, studio_id: Optional[str]) -> bool:
        """A staff actor may manage bookings they train, or any booking of their studio."""
        if staff_id == trainer_id:
            return True
        if not studio_id:
            return False
        if staff_id == studio_id:
            return True
        studio = self.get_governing_studio(studio_id)
        scope = {studio_id}
        if studio is not None:
            if studio.owner_id == staff_id:
                return True
            scope.add(studio.id)
        return bool(scope & set(self.studio_repository.staff_studio_ids(staff_id)))

    def managed_trainer_ids(self, staff_id: str) -> Set[str]:
        """Trainers whose calendars a staff actor may work with, themself included."""
        studio_ids = set(self.studio_repository.staff_studio_ids(staff_id))
        owned = self.studio_repository.get_by_owner(staff_id)
        if owned is not None:
            studio_ids.update({owned.id, staff_id})

        trainer_ids = {staff_id}
        trainer_ids.update(
            member.id for member in self.studio_repository.list_bookable_staff(studio_ids)
        )
        return trainer_ids

    def get_client_for_staff(self, staff_id: str, client_id: str) -> Client:
        """Load a client the staff actor serves; clients of other studios look missing."""
        client = self.get_client(client_id)
        if not self.trainer_in_scope(staff_id, self.resolve_lookup_ids(client)):
            raise NotFoundException("Client not found")
        return client
