# backend/studiobook/schemas/common.py
from typing import Dict

from ._strict_base import StrictModel


class HealthResponse(StrictModel):
    status: str
    version: str
    database: str
    pool: Dict[str, int]
