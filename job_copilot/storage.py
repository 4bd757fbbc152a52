from __future__ import annotations

import logging
import time
from enum import Enum

from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import StoredRecord
from .profile import AppSettings, UserProfile, default_profile


class StorageKey(str, Enum):
    PROFILE = "user_profile"
    SETTINGS = "app_settings"


class ProfileStore:
    """Profile and app settings persisted as JSON rows keyed by StorageKey."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _read(self, key: StorageKey) -> str | None:
        record = self.session.get(StoredRecord, key.value)
        return record.payload if record else None

    def _write(self, key: StorageKey, payload: str) -> None:
        record = self.session.get(StoredRecord, key.value)
        if record is None:
            record = StoredRecord(key=key.value, payload=payload)
        else:
            record.payload = payload
        self.session.add(record)
        self.session.commit()

    def get_profile(self) -> UserProfile:
        """Stored profile, or the default placeholder when missing or unreadable."""
        raw = self._read(StorageKey.PROFILE)
        if raw is None:
            return default_profile()
        try:
            return UserProfile.model_validate_json(raw)
        except ValidationError as exc:
            logging.error("profile_load_failed reason=%s", exc)
            return default_profile()

    def save_profile(self, profile: UserProfile) -> UserProfile:
        updated = profile.model_copy(
            update={"meta": profile.meta.model_copy(update={"last_updated": int(time.time() * 1000)})}
        )
        self._write(StorageKey.PROFILE, updated.model_dump_json(by_alias=True))
        logging.info("profile_saved version=%s", updated.meta.version)
        return updated

    def get_settings(self) -> AppSettings:
        raw = self._read(StorageKey.SETTINGS)
        if raw is None:
            return AppSettings()
        try:
            return AppSettings.model_validate_json(raw)
        except ValidationError as exc:
            logging.error("settings_load_failed reason=%s", exc)
            return AppSettings()

    def save_settings(self, app_settings: AppSettings) -> AppSettings:
        self._write(StorageKey.SETTINGS, app_settings.model_dump_json(by_alias=True))
        return app_settings

    def clear_all(self) -> None:
        self.session.execute(delete(StoredRecord))
        self.session.commit()
        logging.warning("storage_cleared")
