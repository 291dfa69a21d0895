# backend/studiobook/repositories/client_repository.py
"""
Client Repository

Client lookups plus the guarded updates on the legacy credit counter.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.client import Client
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ClientRepository(BaseRepository[Client]):
    def __init__(self, db: Session):
        super().__init__(db, Client)
        self.logger = logging.getLogger(__name__)

    def get_for_update(self, client_id: str) -> Optional[Client]:
        """Load a client row locked for the rest of the transaction."""
        query = self._build_query().filter(Client.id == client_id).with_for_update()
        return self._execute_first(query)

    def set_studio_id(self, client_id: str, studio_id: str) -> bool:
        """
        Set studio_id only if it is still unset.

        Returns True when a row was changed; calling it again is a no-op.
        """
        try:
            updated = (
                self.db.query(Client)
                .filter(Client.id == client_id, Client.studio_id.is_(None))
                .update({Client.studio_id: studio_id}, synchronize_session="fetch")
            )
            self.db.flush()
            return updated == 1
        except SQLAlchemyError as exc:
            self.logger.error("Failed to backfill studio for client %s: %s", client_id, exc)
            raise RepositoryException("Failed to update client studio") from exc

    def debit_legacy_credits(self, client_id: str, amount: int) -> bool:
        """
        Decrement the legacy counter if it still covers ``amount``.

        The guard lives in the WHERE clause so two concurrent debits can never
        both succeed against the same balance.
        """
        try:
            updated = (
                self.db.query(Client)
                .filter(Client.id == client_id, Client.credits >= amount)
                .update({Client.credits: Client.credits - amount}, synchronize_session="fetch")
            )
            return updated == 1
        except SQLAlchemyError as exc:
            self.logger.error("Failed to debit legacy credits for %s: %s", client_id, exc)
            raise RepositoryException("Failed to debit legacy credits") from exc

    def credit_legacy_credits(self, client_id: str, amount: int) -> None:
        try:
            (
                self.db.query(Client)
                .filter(Client.id == client_id)
                .update({Client.credits: Client.credits + amount}, synchronize_session="fetch")
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to credit legacy credits for %s: %s", client_id, exc)
            raise RepositoryException("Failed to credit legacy credits") from exc

    def get_legacy_balance(self, client_id: str) -> int:
        query = self.db.query(Client.credits).filter(Client.id == client_id)
        return int(self._execute_scalar(query) or 0)
