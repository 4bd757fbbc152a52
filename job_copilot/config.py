from __future__ import annotations

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./job_copilot.db"
    headless: bool = False
    user_data_dir: str = "~/.job_copilot/browser"

    # control loop timings, milliseconds
    tick_interval_ms: int = 1500
    fill_settle_ms: int = 100
    refill_settle_ms: int = 500
    navigation_settle_ms: int = 3000
    click_settle_ms: int = 500

    # scanner heuristics
    max_label_length: int = 100
    button_label_length: int = 50
    sibling_label_depth: int = 2
    ancestor_label_depth: int = 3
    min_control_size_px: float = 10.0
    min_clickable_size_px: float = 5.0


def get_settings() -> Settings:
    return Settings()


settings = get_settings()
