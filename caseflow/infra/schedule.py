from __future__ import annotations

import os
from functools import lru_cache
from zoneinfo import ZoneInfo

from caseflow.domain.deadlines import BusinessWindow

BUSINESS_HOURS_START = int(os.getenv("BUSINESS_HOURS_START", "10"))
BUSINESS_HOURS_END = int(os.getenv("BUSINESS_HOURS_END", "19"))
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Asia/Kolkata")
DRAWING_DEADLINE_HOURS = int(os.getenv("DRAWING_DEADLINE_HOURS", "4"))


@lru_cache(maxsize=1)
def get_business_window() -> BusinessWindow:
    return BusinessWindow(start_hour=BUSINESS_HOURS_START, end_hour=BUSINESS_HOURS_END)


@lru_cache(maxsize=1)
def get_business_timezone() -> ZoneInfo:
    return ZoneInfo(BUSINESS_TIMEZONE)
