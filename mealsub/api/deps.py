"""
FastAPI dependencies (DB session, clock)
"""
from datetime import datetime

from mealsub.config import get_settings
from mealsub.domain.calendar import local_now
from mealsub.infrastructure.db.session import get_db as _get_db


# Re-export get_db for convenience
get_db = _get_db


def get_now() -> datetime:
    """
    Current wall-clock time in the delivery timezone

    The engine never reads the clock itself; endpoints take `now` from here
    so tests can override it.
    """
    return local_now(get_settings().TIMEZONE)
