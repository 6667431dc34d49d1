from __future__ import annotations

import os
from datetime import datetime
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, ValidationError


DEFAULT_UNIT_ID = "a0000000-0000-0000-0000-000000000001"


class Settings(BaseModel):
    bot_token: str
    supabase_url: HttpUrl
    supabase_service_key: str
    supabase_anon_key: str | None = None
    environment: Literal["local", "staging", "production"] = "local"
    default_unit_id: str = DEFAULT_UNIT_ID
    # Hour of day (0-23) when the daily automation run fires
    automation_hour: int = Field(default=8, ge=0, le=23)
    timezone: str = "America/Sao_Paulo"
    viacep_url: str = "https://viacep.com.br/ws"

    @property
    def is_debug(self) -> bool:
        return self.environment == "local"


def _build_settings() -> Settings:
    # Load .env file once on first settings build (for local development)
    load_dotenv()

    try:
        return Settings(
            bot_token=os.environ["BOT_TOKEN"],
            supabase_url=os.environ["SUPABASE_URL"],
            supabase_service_key=os.environ["SUPABASE_SERVICE_KEY"],
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
            environment=os.getenv("ENVIRONMENT", "local"),
            default_unit_id=os.getenv("DEFAULT_UNIT_ID", DEFAULT_UNIT_ID),
            automation_hour=os.getenv("AUTOMATION_HOUR", "8"),
            timezone=os.getenv("TIMEZONE", "America/Sao_Paulo"),
            viacep_url=os.getenv("VIACEP_URL", "https://viacep.com.br/ws"),
        )
    except KeyError as exc:
        required_keys = ("BOT_TOKEN", "SUPABASE_URL", "SUPABASE_SERVICE_KEY")
        missing = [key for key in required_keys if key not in os.environ]
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        ) from exc
    except ValidationError as exc:
        raise RuntimeError(f"Invalid settings: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Reads environment variables once and validates them with Pydantic.
    """

    return _build_settings()


def local_now() -> datetime:
    """Current time in the configured business timezone."""
    return datetime.now(ZoneInfo(get_settings().timezone))


def to_local(moment: datetime) -> datetime:
    """Convert an aware timestamp (e.g. from the database) to the business timezone."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(get_settings().timezone))
