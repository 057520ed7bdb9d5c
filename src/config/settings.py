"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are read from two sources (in priority order):
#
#   1. **Environment variables** - e.g., RELAY_URL=https://relay.example/proxy
#   2. **.env file** - key=value lines in the project root .env file
#
# Field ``relay_url`` maps to env var ``RELAY_URL`` (case-insensitive).
# Defaults below apply when neither source sets a field.
#
# Batch parameters (``batch_size`` ... ``run_timeout_seconds``) are the
# environment layer of the batch configuration; see src/config/loader.py
# for how they combine with config/config.yaml and CLI flags.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """animeHarvest application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Storage ===
    scrape_db_path: str = "data/scrape.db"

    # === Target site ===
    # Pages live at "{target_base_url}/{target_slug}-{id}".
    target_base_url: str = "https://hianime.pe"
    target_slug: str = "sakamoto-days"

    # === Relay ===
    # Empty string = fetch the site directly.  Otherwise requests go to
    # "{relay_url}?url=<encoded target>".
    relay_url: str = "https://proxy-api-kyot.onrender.com/proxy"
    fetch_timeout: float = 30.0
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    )
    referer: str = "https://hianime.pe/"

    # === Batch defaults ===
    batch_size: int = 10
    delay_ms: int = 3000
    delay_jitter_ms: int = 1000
    override_start_id: int = 0
    advancement_policy: str = "advance_attempted"
    retry_count: int = 2
    retry_delay_ms: int = 3000
    run_timeout_seconds: float | None = None

    # === Logging ===
    log_level: str = "INFO"
