# backend/studiobook/api/dependencies/auth.py
"""
Caller identity.

Authentication happens upstream; the gateway forwards the authenticated
account id in ``X-Client-Id`` (client apps) or ``X-Staff-Id`` (studio
staff apps). A request without the expected header is rejected with 401.
"""

import logging
from typing import Optional

from fastapi import Header

from ...core.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)

CLIENT_ID_HEADER = "X-Client-Id"
STAFF_ID_HEADER = "X-Staff-Id"


def _require(value: Optional[str], header: str) -> str:
    if not value or not value.strip():
        logger.debug("Rejected request without %s header", header)
        raise UnauthorizedException(
            f"Missing {header} header", code="NOT_AUTHENTICATED"
        ).to_http_exception()
    return value.strip()


def get_current_client_id(
    x_client_id: Optional[str] = Header(None, alias=CLIENT_ID_HEADER)
) -> str:
    """Id of the client making the request."""
    return _require(x_client_id, CLIENT_ID_HEADER)


def get_current_staff_id(x_staff_id: Optional[str] = Header(None, alias=STAFF_ID_HEADER)) -> str:
    """Id of the trainer, owner or front-desk member making the request."""
    return _require(x_staff_id, STAFF_ID_HEADER)
