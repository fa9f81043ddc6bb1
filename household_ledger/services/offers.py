"""
Flyer Offers

Builds a flyer search link per preferred store and decides when the
automatic daily check is due.

Links are plain web searches, so there is no scraping and no API key to
fail; top offers are left empty.
"""

import time
from typing import Optional, Sequence
from urllib.parse import quote

from household_ledger.config import get_settings
from household_ledger.models.household import FlyerOffer, OfferPreferences


FLYER_SEARCH_URL = "https://www.google.com/search?q=flyer+{store}+{city}+current"
VALID_UNTIL_HINT = "See flyer"


def now_ms() -> int:
    return int(time.time() * 1000)


class OfferFinder:
    """Flyer lookup for a city and a set of stores."""

    def __init__(self, check_interval_ms: Optional[int] = None):
        if check_interval_ms is None:
            check_interval_ms = get_settings().app.offer_check_interval_ms
        self._interval_ms = check_interval_ms

    @property
    def check_interval_ms(self) -> int:
        return self._interval_ms

    def find_offers(self, city: str, store_names: Sequence[str]) -> list[FlyerOffer]:
        city = city.strip()
        offers = []
        for name in dict.fromkeys(s.strip() for s in store_names if s and s.strip()):
            offers.append(FlyerOffer(
                store_name=name,
                flyer_link=FLYER_SEARCH_URL.format(
                    store=quote(name, safe=""),
                    city=quote(city, safe=""),
                ),
                valid_until=VALID_UNTIL_HINT,
            ))
        return offers

    def is_check_due(self, preferences: OfferPreferences, at_ms: Optional[int] = None) -> bool:
        """
        True when notifications are on, a city and stores are chosen, and a
        full interval has passed since the last check.
        """
        if not preferences.has_enabled_notifications:
            return False
        if not preferences.city.strip() or not preferences.selected_stores:
            return False
        at_ms = now_ms() if at_ms is None else at_ms
        return at_ms - preferences.last_check_date >= self._interval_ms
