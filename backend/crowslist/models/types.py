"""
Column types shared by the Crowslist models.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Integer
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntFlag(TypeDecorator):
    """
    A Python bool stored as an INTEGER 0/1 column.

    The flag columns are plain integers in both the SQLite and PostgreSQL
    schemas, so the encoding lives here and nowhere else: models and services
    only ever see True/False.
    """

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value: Optional[bool], dialect) -> Optional[int]:
        if value is None:
            return None
        return 1 if value else 0

    def process_result_value(self, value: Optional[int], dialect) -> Optional[bool]:
        if value is None:
            return None
        return bool(value)
