"""Configuration and connectivity checks for the Pixotchi report bot."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Mapping

from ..config import BotConfig, ConfigError, Settings, get_settings
from ..errors import SupplyFetchError
from ..services.activity import ActivityClient
from ..services.supply import SupplyReader


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: str
    detail: str


REQUIRED_ENV = [
    "DISCORD_TOKEN",
    "ADMIN_USER_IDS",
    "TARGET_CHANNEL_ID",
    "SEED_CONTRACT_ADDRESS",
    "SEED_TOTAL_SUPPLY",
]


def _status(level: str, name: str, detail: str) -> CheckResult:
    return CheckResult(name=name, status=level, detail=detail)


def run_config_checks(env: Mapping[str, str]) -> List[CheckResult]:
    results: List[CheckResult] = []

    for key in REQUIRED_ENV:
        if env.get(key):
            results.append(_status("ok", key, "present"))
        else:
            results.append(_status("error", key, "missing"))

    try:
        config = BotConfig.from_env(env)
    except ConfigError as exc:
        results.append(_status("error", "bot_config", str(exc)))
        return results
    results.append(_status("ok", "bot_config", f"{len(config.admin_user_ids)} admin(s) configured"))

    backups = len(config.base_rpc_backups)
    if backups:
        results.append(_status("ok", "rpc_backups", f"{backups} backup endpoint(s)"))
    else:
        results.append(_status("warning", "rpc_backups", "no backup RPC endpoints; supply reads have no failover"))

    if config.admin_webhook_url:
        results.append(_status("ok", "admin_webhook", "failures also post to webhook"))
    else:
        results.append(_status("warning", "admin_webhook", "no webhook configured; failures go to admin DMs only"))

    return results


async def run_connectivity_checks(config: BotConfig, settings: Settings) -> List[CheckResult]:
    results: List[CheckResult] = []
    client = ActivityClient(config.ponder_api_url, timeout=settings.http_timeout_seconds)
    if await client.test_connection():
        results.append(_status("ok", "indexer", config.ponder_api_url))
    else:
        results.append(_status("error", "indexer", f"query failed against {config.ponder_api_url}"))

    reader = SupplyReader(
        config.seed_contract_address,
        config.rpc_urls,
        timeout=settings.http_timeout_seconds,
    )
    try:
        supply = await reader.read_total_supply()
    except SupplyFetchError as exc:
        results.append(_status("error", "seed_contract", str(exc)))
    else:
        results.append(_status("ok", "seed_contract", f"current supply {supply:,.2f} SEED"))
    return results


def run_checks(env: Mapping[str, str], *, network: bool = True) -> List[CheckResult]:
    results = run_config_checks(env)
    if not network or any(result.status == "error" for result in results):
        return results
    config = BotConfig.from_env(env)
    results.extend(asyncio.run(run_connectivity_checks(config, get_settings())))
    return results


def _print_table(results: Iterable[CheckResult]) -> None:
    header = f"{'Check':<24} {'Status':<8} Detail"
    print(header)
    print("-" * len(header))
    for result in results:
        print(f"{result.name:<24} {result.status:<8} {result.detail}")


def main(argv: Iterable[str] | None = None) -> int:  # pragma: no cover - CLI entry point
    parser = argparse.ArgumentParser(description="Check Pixotchi report bot configuration and connections.")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Only validate configuration; skip indexer and RPC checks",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "WARNING").upper())
    results = run_checks(os.environ, network=not args.offline)
    _print_table(results)
    if any(result.status == "error" for result in results):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
