"""Shared fixtures for report bot tests."""
from __future__ import annotations

import pytest

from pixotchi_bot.config import BotConfig, get_settings


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def bot_config():
    return BotConfig(
        token="token",
        admin_user_ids=[111, 222],
        target_channel_id=999,
        seed_contract_address="0x546D239032b24eCEEE0cb05c92FC39090846adc7",
        seed_total_supply=20_000_000.0,
        default_interval_minutes=180,
        default_seed_burn_interval_minutes=60,
    )
