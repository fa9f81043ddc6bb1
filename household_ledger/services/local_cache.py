"""
Device-Local Preference Cache

Small JSON blobs kept on this device only:
- family_profile: the last active profile, so the app reopens the session
- offer_preferences: flyer-check city, stores and last check time

Offer preferences are never synced and survive logout.
"""

import json
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from household_ledger.config import get_settings
from household_ledger.models.household import FamilyProfile, OfferPreferences


PROFILE_KEY = "family_profile"
OFFER_PREFERENCES_KEY = "offer_preferences"

logger = structlog.get_logger("household_ledger.local_cache")


class LocalPreferenceCache:
    """JSON file per key under a data directory."""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        if data_dir is None:
            data_dir = get_settings().app.data_dir
        self._dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def _load_json(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            # Corrupt cache starts fresh
            logger.warning("local_cache_unreadable", key=key, error=str(e))
            return None

    def _save_json(self, key: str, data: Any) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        with self._path(key).open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def _delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    # ---- Family profile ----------------------------------------------------

    def load_profile(self) -> Optional[FamilyProfile]:
        raw = self._load_json(PROFILE_KEY)
        if raw is None:
            return None
        try:
            return FamilyProfile.model_validate(raw)
        except ValidationError as e:
            logger.warning("local_cache_invalid", key=PROFILE_KEY, error=str(e))
            return None

    def save_profile(self, profile: FamilyProfile) -> None:
        self._save_json(PROFILE_KEY, profile.model_dump(mode="json", by_alias=True))

    def clear_profile(self) -> None:
        self._delete(PROFILE_KEY)

    # ---- Offer preferences -------------------------------------------------

    def load_offer_preferences(self) -> OfferPreferences:
        raw = self._load_json(OFFER_PREFERENCES_KEY)
        if raw is None:
            return OfferPreferences()
        try:
            return OfferPreferences.model_validate(raw)
        except ValidationError as e:
            logger.warning("local_cache_invalid", key=OFFER_PREFERENCES_KEY, error=str(e))
            return OfferPreferences()

    def save_offer_preferences(self, preferences: OfferPreferences) -> None:
        self._save_json(
            OFFER_PREFERENCES_KEY,
            preferences.model_dump(mode="json", by_alias=True),
        )
