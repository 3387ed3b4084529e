"""Configuration loading utilities for the Pixotchi report bot."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .models import MAX_INTERVAL_MINUTES, MIN_INTERVAL_MINUTES

logger = logging.getLogger(__name__)


DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"
DEFAULT_PONDER_API_URL = "https://api.mini.pixotchi.tech/graphql"
DEFAULT_BASE_RPC_URL = "https://mainnet.base.org"
PLACEHOLDER_CONTRACT = "0xYourSeedContractAddressHere"


class ConfigError(ValueError):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """Typed view over the report settings YAML file."""

    page_size: int
    manual_activity_window_minutes: int
    manual_burn_window_minutes: int
    item_cache_seconds: float
    restart_delay_seconds: float
    http_timeout_seconds: float
    page_buttons_timeout_seconds: float
    garden_item_fallback: Dict[str, str]
    village_buildings: Dict[int, str]
    town_buildings: Dict[int, str]
    quest_difficulties: Dict[int, str]
    quest_rewards: Dict[int, str]

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        reports = data.get("reports", {})
        http_cfg = data.get("http", {})
        items = data.get("items", {})
        buildings = data.get("buildings", {})
        quests = data.get("quests", {})
        page_size = int(reports.get("page_size", 6))
        if page_size < 1:
            raise ConfigError("reports.page_size must be at least 1")
        return Settings(
            page_size=page_size,
            manual_activity_window_minutes=int(reports.get("manual_activity_window_minutes", 180)),
            manual_burn_window_minutes=int(reports.get("manual_burn_window_minutes", 60)),
            item_cache_seconds=float(reports.get("item_cache_seconds", 300)),
            restart_delay_seconds=float(reports.get("restart_delay_seconds", 1.0)),
            http_timeout_seconds=float(http_cfg.get("timeout_seconds", 15)),
            page_buttons_timeout_seconds=float(reports.get("page_buttons_timeout_seconds", 900)),
            garden_item_fallback={str(k): str(v) for k, v in (items.get("garden_fallback") or {}).items()},
            village_buildings={int(k): str(v) for k, v in (buildings.get("village") or {}).items()},
            town_buildings={int(k): str(v) for k, v in (buildings.get("town") or {}).items()},
            quest_difficulties={int(k): str(v) for k, v in (quests.get("difficulty") or {}).items()},
            quest_rewards={int(k): str(v) for k, v in (quests.get("rewards") or {}).items()},
        )


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH
        self._cache: Settings | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        self._cache = Settings.from_dict(data)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


def _required(env: Mapping[str, str], key: str) -> str:
    value = (env.get(key) or "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable: {key}")
    return value


def _parse_int(raw: str, key: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a valid integer") from None


def parse_admin_ids(raw: str) -> List[int]:
    ids: List[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            logger.warning("Ignoring invalid admin user id %r", part)
    return ids


@dataclass(frozen=True)
class BotConfig:
    """Deployment configuration read from the environment."""

    token: str
    admin_user_ids: List[int]
    target_channel_id: int
    seed_contract_address: str
    seed_total_supply: float
    default_interval_minutes: int = 180
    default_seed_burn_interval_minutes: int = 60
    ponder_api_url: str = DEFAULT_PONDER_API_URL
    base_rpc_url: str = DEFAULT_BASE_RPC_URL
    base_rpc_backups: List[str] = field(default_factory=list)
    admin_webhook_url: Optional[str] = None
    pagination_max_chats: Optional[int] = None

    @property
    def rpc_urls(self) -> List[str]:
        return [self.base_rpc_url, *self.base_rpc_backups]

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "BotConfig":
        """Load and validate configuration from environment variables."""

        env = os.environ if env is None else env
        admin_ids = parse_admin_ids(_required(env, "ADMIN_USER_IDS"))
        if not admin_ids:
            raise ConfigError("ADMIN_USER_IDS must contain at least one valid user ID")

        target_channel = _parse_int(_required(env, "TARGET_CHANNEL_ID"), "TARGET_CHANNEL_ID")
        interval = _parse_int(env.get("DEFAULT_INTERVAL_MINUTES", "180"), "DEFAULT_INTERVAL_MINUTES")
        burn_interval = _parse_int(
            env.get("DEFAULT_SEED_BURN_INTERVAL_MINUTES", "60"),
            "DEFAULT_SEED_BURN_INTERVAL_MINUTES",
        )
        for key, value in (
            ("DEFAULT_INTERVAL_MINUTES", interval),
            ("DEFAULT_SEED_BURN_INTERVAL_MINUTES", burn_interval),
        ):
            if not MIN_INTERVAL_MINUTES <= value <= MAX_INTERVAL_MINUTES:
                raise ConfigError(
                    f"{key} must be between {MIN_INTERVAL_MINUTES} and {MAX_INTERVAL_MINUTES} minutes"
                )

        contract = _required(env, "SEED_CONTRACT_ADDRESS")
        if contract == PLACEHOLDER_CONTRACT:
            raise ConfigError("SEED_CONTRACT_ADDRESS must be set to a valid contract address")

        try:
            total_supply = float(_required(env, "SEED_TOTAL_SUPPLY"))
        except ValueError:
            raise ConfigError("SEED_TOTAL_SUPPLY must be a positive number") from None
        if total_supply <= 0:
            raise ConfigError("SEED_TOTAL_SUPPLY must be a positive number")

        backups = [
            env[key].strip()
            for key in ("BASE_RPC_BACKUP_1", "BASE_RPC_BACKUP_2", "BASE_RPC_BACKUP_3")
            if (env.get(key) or "").strip()
        ]

        max_chats_raw = (env.get("PAGINATION_MAX_CHATS") or "").strip()
        max_chats = _parse_int(max_chats_raw, "PAGINATION_MAX_CHATS") if max_chats_raw else None

        config = cls(
            token=_required(env, "DISCORD_TOKEN"),
            admin_user_ids=admin_ids,
            target_channel_id=target_channel,
            seed_contract_address=contract,
            seed_total_supply=total_supply,
            default_interval_minutes=interval,
            default_seed_burn_interval_minutes=burn_interval,
            ponder_api_url=env.get("PONDER_API_URL") or DEFAULT_PONDER_API_URL,
            base_rpc_url=env.get("BASE_RPC_URL") or DEFAULT_BASE_RPC_URL,
            base_rpc_backups=backups,
            admin_webhook_url=(env.get("ADMIN_WEBHOOK_URL") or "").strip() or None,
            pagination_max_chats=max_chats,
        )
        config.log_summary()
        return config

    def log_summary(self) -> None:
        logger.info("Bot configuration loaded")
        logger.info("- Target channel id: %s", self.target_channel_id)
        logger.info("- Admin users: %d", len(self.admin_user_ids))
        logger.info("- Activity interval: %dm", self.default_interval_minutes)
        logger.info("- SEED burn interval: %dm", self.default_seed_burn_interval_minutes)
        logger.info("- Indexer URL: %s", self.ponder_api_url)
        logger.info("- SEED contract: %s", self.seed_contract_address)
        logger.info("- RPC endpoints: %d", len(self.rpc_urls))


__all__ = [
    "BotConfig",
    "ConfigError",
    "Settings",
    "SettingsLoader",
    "get_settings",
    "parse_admin_ids",
]
