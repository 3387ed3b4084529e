"""Configuration loading tests."""
from __future__ import annotations

import pytest

from pixotchi_bot.config import (
    DEFAULT_BASE_RPC_URL,
    DEFAULT_PONDER_API_URL,
    BotConfig,
    ConfigError,
    Settings,
    SettingsLoader,
    parse_admin_ids,
)

VALID_ENV = {
    "DISCORD_TOKEN": "token",
    "ADMIN_USER_IDS": "111, 222",
    "TARGET_CHANNEL_ID": "999",
    "SEED_CONTRACT_ADDRESS": "0x546D239032b24eCEEE0cb05c92FC39090846adc7",
    "SEED_TOTAL_SUPPLY": "20000000",
}


def _env(**overrides):
    env = dict(VALID_ENV)
    env.update(overrides)
    return {key: value for key, value in env.items() if value is not None}


def test_packaged_settings_load(settings):
    assert settings.page_size == 6
    assert settings.manual_activity_window_minutes == 180
    assert settings.manual_burn_window_minutes == 60
    assert settings.village_buildings[0] == "Solar Panels"
    assert settings.town_buildings[7] == "Farmer House"
    assert settings.garden_item_fallback["1"] == "Water"
    assert settings.quest_difficulties[2] == "Hard"


def test_settings_loader_caches_until_forced(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("reports:\n  page_size: 4\n", encoding="utf-8")
    loader = SettingsLoader(path)

    first = loader.load()
    path.write_text("reports:\n  page_size: 9\n", encoding="utf-8")

    assert loader.load() is first
    assert loader.load(force=True).page_size == 9


def test_settings_reject_zero_page_size():
    with pytest.raises(ConfigError):
        Settings.from_dict({"reports": {"page_size": 0}})


def test_settings_defaults_for_empty_file():
    settings = Settings.from_dict({})
    assert settings.page_size == 6
    assert settings.restart_delay_seconds == 1.0
    assert settings.page_buttons_timeout_seconds == 900.0
    assert settings.village_buildings == {}


def test_from_env_applies_defaults():
    config = BotConfig.from_env(_env())

    assert config.admin_user_ids == [111, 222]
    assert config.target_channel_id == 999
    assert config.default_interval_minutes == 180
    assert config.default_seed_burn_interval_minutes == 60
    assert config.ponder_api_url == DEFAULT_PONDER_API_URL
    assert config.rpc_urls == [DEFAULT_BASE_RPC_URL]
    assert config.admin_webhook_url is None
    assert config.pagination_max_chats is None


def test_from_env_collects_rpc_backups_in_order():
    config = BotConfig.from_env(
        _env(
            BASE_RPC_URL="https://primary",
            BASE_RPC_BACKUP_1="https://one",
            BASE_RPC_BACKUP_3="https://three",
            BASE_RPC_BACKUP_2="  ",
        )
    )

    assert config.rpc_urls == ["https://primary", "https://one", "https://three"]


def test_from_env_reads_optional_values():
    config = BotConfig.from_env(
        _env(ADMIN_WEBHOOK_URL="https://hooks.example/admin", PAGINATION_MAX_CHATS="50")
    )

    assert config.admin_webhook_url == "https://hooks.example/admin"
    assert config.pagination_max_chats == 50


@pytest.mark.parametrize("missing", ["DISCORD_TOKEN", "ADMIN_USER_IDS", "TARGET_CHANNEL_ID", "SEED_TOTAL_SUPPLY"])
def test_from_env_requires_core_values(missing):
    with pytest.raises(ConfigError):
        BotConfig.from_env(_env(**{missing: None}))


@pytest.mark.parametrize(
    "overrides",
    [
        {"ADMIN_USER_IDS": "abc, def"},
        {"TARGET_CHANNEL_ID": "general"},
        {"DEFAULT_INTERVAL_MINUTES": "4"},
        {"DEFAULT_SEED_BURN_INTERVAL_MINUTES": "1441"},
        {"SEED_CONTRACT_ADDRESS": "0xYourSeedContractAddressHere"},
        {"SEED_TOTAL_SUPPLY": "0"},
        {"SEED_TOTAL_SUPPLY": "lots"},
        {"PAGINATION_MAX_CHATS": "many"},
    ],
)
def test_from_env_rejects_invalid_values(overrides):
    with pytest.raises(ConfigError):
        BotConfig.from_env(_env(**overrides))


def test_parse_admin_ids_skips_invalid_entries(caplog):
    assert parse_admin_ids("1, x, ,3") == [1, 3]
    assert "invalid admin user id" in caplog.text
