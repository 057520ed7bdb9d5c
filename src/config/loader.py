"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   0. Settings field defaults - so every key is always present
#   1. config/config.yaml      - Static defaults checked into the repo
#   2. .env file               - Local overrides (not committed)
#   3. Environment vars        - Set by the cron host at deploy time
#
# Only settings that were explicitly provided (env or .env) override the
# YAML; a pydantic default never shadows a value written in config.yaml.
#
# The _deep_merge helper does recursive dict merging:
#   base = {"batch": {"batch_size": 10}}
#   overrides = {"batch": {"retry_count": 4}}
#   result = {"batch": {"batch_size": 10, "retry_count": 4}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings

# Config section -> Settings fields that feed it.
_SECTIONS: dict[str, tuple[str, ...]] = {
    "batch": (
        "batch_size",
        "delay_ms",
        "delay_jitter_ms",
        "override_start_id",
        "advancement_policy",
        "retry_count",
        "retry_delay_ms",
        "run_timeout_seconds",
    ),
    "fetch": (
        "target_base_url",
        "target_slug",
        "relay_url",
        "fetch_timeout",
        "user_agent",
        "referer",
    ),
    "storage": ("scrape_db_path",),
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is
              treated as empty.
        settings: Pre-built settings; a fresh ``Settings()`` is read otherwise.

    Returns:
        Fully resolved configuration dictionary with ``batch``, ``fetch``,
        ``storage`` and ``logging`` sections.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    explicit = settings.model_fields_set

    config: dict = {
        section: {name: Settings.model_fields[name].default for name in fields}
        for section, fields in _SECTIONS.items()
    }
    config["logging"] = {"level": Settings.model_fields["log_level"].default}

    env_overrides: dict = {
        section: {name: getattr(settings, name) for name in fields if name in explicit}
        for section, fields in _SECTIONS.items()
    }
    if "log_level" in explicit:
        env_overrides["logging"] = {"level": settings.log_level}

    _deep_merge(config, yaml_config)
    _deep_merge(config, env_overrides)
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
