#!/usr/bin/env python3
"""Run a deposit / accrue / harvest / withdraw scenario against simulated pools.

Usage:
    python scripts/simulate.py --config config/yieldsync.example.yaml --days 30
"""

import argparse
import asyncio
import logging
from pathlib import Path

import yaml

from yieldsync.config import Settings, load_config
from yieldsync.factory import build_vault
from yieldsync.simulation import InMemoryAsset, SimulatedPool, StaticYieldOracle

logger = logging.getLogger(__name__)

DEFAULT_POOLS = [
    {"id": "A", "apy_bps": 1500},
    {"id": "B", "apy_bps": 1200},
    {"id": "C", "apy_bps": 800},
]
DEFAULT_DEPOSITORS = {"alice": 1_000, "bob": 500}


def load_scenario(path: str | None) -> dict:
    """Read the optional ``simulation`` section of the config file."""
    if path is None:
        return {}
    with open(Path(path)) as f:
        data = yaml.safe_load(f) or {}
    return data.get("simulation", {})


async def run(config_path: str | None, days: int, harvests: int) -> None:
    config = load_config(config_path)
    scenario = load_scenario(config_path or Settings().config_path)
    pool_entries = scenario.get("pools", DEFAULT_POOLS)
    depositors = scenario.get("depositors", DEFAULT_DEPOSITORS)
    admin = config.allocator.admins[0]

    asset = InMemoryAsset()
    oracle = StaticYieldOracle()
    vault = build_vault(asset, oracle, config)

    pools = {}
    for entry in pool_entries:
        pool_id = entry["id"]
        oracle.set_apy(pool_id, entry["apy_bps"])
        if "capacity" in entry:
            oracle.set_capacity(pool_id, entry["capacity"])
        pools[pool_id] = SimulatedPool(pool_id, asset, vault.address, apy_bps=entry["apy_bps"])
        await vault.add_pool(admin, pool_id, pools[pool_id], entry["apy_bps"])

    for user, amount in depositors.items():
        asset.mint(user, amount)
        asset.approve(user, vault.address, amount)
        shares = await vault.deposit(user, amount)
        logger.info(f"{user} deposited {amount} for {shares} shares")

    for round_number in range(1, harvests + 1):
        for pool in pools.values():
            await pool.accrue_days(days)
        result = await vault.harvest("keeper")
        logger.info(
            f"Harvest {round_number}: gross {result.gross_yield}, fee {result.quote.fee}, "
            f"price {result.price_before:.6f} -> {result.price_after:.6f}"
        )

    for user in depositors:
        paid = await vault.withdraw(user, vault.balance_of(user))
        logger.info(f"{user} withdrew {paid}")

    conservation = await vault.check_conservation()
    snapshot = vault.snapshot()
    print(snapshot.model_dump_json(indent=2))
    print(f"Fees collected: {await asset.balance_of(config.vault.fee_collector)}")
    print(f"Ledger conserved: {conservation.holds}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate a YieldSync vault")
    parser.add_argument("--config", help="YAML config file (defaults to YIELDSYNC_CONFIG_PATH)")
    parser.add_argument("--days", type=int, default=30, help="Days of accrual between harvests")
    parser.add_argument("--harvests", type=int, default=4, help="Number of harvest rounds")
    args = parser.parse_args()

    logging.basicConfig(
        level=Settings().log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(run(args.config, args.days, args.harvests))


if __name__ == "__main__":
    main()
