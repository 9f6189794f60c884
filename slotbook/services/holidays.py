from datetime import date
from functools import lru_cache
from typing import Optional

import holidays
import structlog

logger = structlog.get_logger(__name__)


class HolidayService:
    """Public holiday lookups for businesses that close on national holidays.

    Uses the `holidays` library; ``country`` is an ISO 3166-1 alpha-2 code.
    """

    @staticmethod
    @lru_cache(maxsize=32)
    def _country_holidays(country: str, year: int) -> holidays.HolidayBase:
        return holidays.country_holidays(country, years=year)

    @staticmethod
    def is_supported(country: str) -> bool:
        return country.upper() in holidays.list_supported_countries()

    @classmethod
    def is_holiday(cls, country: Optional[str], day: date) -> bool:
        if not country:
            return False
        try:
            cal = cls._country_holidays(country.upper(), day.year)
        except NotImplementedError:
            logger.warning("Unsupported holiday country", country=country)
            return False
        return day in cal

    @classmethod
    def get_holiday_name(cls, country: Optional[str], day: date) -> Optional[str]:
        if not cls.is_holiday(country, day):
            return None
        return cls._country_holidays(country.upper(), day.year).get(day)
