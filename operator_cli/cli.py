"""Operator CLI for the asset bridge."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple

from bridge_engine.cache import FileCacheStore
from bridge_engine.config import MAX_UINT256, BridgeConfig
from bridge_engine.errors import BridgeError
from bridge_engine.models import AssetKind
from bridge_engine.sync import SyncController
from ledger_adapter.simulator import DEFAULT_CHAIN_ID, SimulatedBridge

BridgeAction = Callable[[SyncController, argparse.Namespace], Awaitable[dict]]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="bridge")
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ledger_parser = subparsers.add_parser("ledger")
    ledger_sub = ledger_parser.add_subparsers(dest="ledger_command", required=True)

    ledger_init = ledger_sub.add_parser("init")
    ledger_init.add_argument("--ledger", required=True)
    ledger_init.add_argument("--wallet", required=True)
    ledger_init.add_argument("--chain-id", default=DEFAULT_CHAIN_ID)
    ledger_init.add_argument("--native", type=int, default=0)
    ledger_init.set_defaults(func=_ledger_init)

    ledger_fungible = ledger_sub.add_parser("deploy-fungible")
    ledger_fungible.add_argument("--ledger", required=True)
    ledger_fungible.add_argument("--address", required=True)
    ledger_fungible.add_argument("--name", required=True)
    ledger_fungible.add_argument("--symbol", required=True)
    ledger_fungible.add_argument("--decimals", type=int, default=18)
    ledger_fungible.add_argument("--mint", type=int, default=0)
    ledger_fungible.add_argument("--approve-max", action="store_true")
    ledger_fungible.set_defaults(func=_ledger_deploy_fungible)

    ledger_non_fungible = ledger_sub.add_parser("deploy-non-fungible")
    ledger_non_fungible.add_argument("--ledger", required=True)
    ledger_non_fungible.add_argument("--address", required=True)
    ledger_non_fungible.add_argument("--name", required=True)
    ledger_non_fungible.add_argument("--symbol", required=True)
    ledger_non_fungible.add_argument("--token-id", type=int, action="append", default=[])
    ledger_non_fungible.set_defaults(func=_ledger_deploy_non_fungible)

    balances_parser = subparsers.add_parser("balances")
    _add_bridge_args(balances_parser)
    balances_parser.set_defaults(func=_bridge_command(_show_balances))

    token_parser = subparsers.add_parser("token")
    token_sub = token_parser.add_subparsers(dest="token_command", required=True)

    token_add = token_sub.add_parser("add")
    _add_bridge_args(token_add)
    token_add.add_argument("--kind", choices=("fungible", "non-fungible"), required=True)
    token_add.add_argument("--address", required=True)
    token_add.set_defaults(func=_bridge_command(_token_add))

    token_approve = token_sub.add_parser("approve")
    _add_bridge_args(token_approve)
    token_approve.add_argument("--address", required=True)
    token_approve.set_defaults(func=_bridge_command(_token_approve))

    token_deposit = token_sub.add_parser("deposit")
    _add_bridge_args(token_deposit)
    token_deposit.add_argument("--address", required=True)
    token_deposit.add_argument("--amount", required=True)
    token_deposit.set_defaults(func=_bridge_command(_token_deposit))

    token_withdraw = token_sub.add_parser("withdraw")
    _add_bridge_args(token_withdraw)
    token_withdraw.add_argument("--address", required=True)
    token_withdraw.add_argument("--amount", required=True, help="base units for fungible assets, token id otherwise")
    token_withdraw.set_defaults(func=_bridge_command(_token_withdraw))

    token_claim = token_sub.add_parser("claim")
    _add_bridge_args(token_claim)
    token_claim.add_argument("--address", required=True)
    token_claim.add_argument("--token-id")
    token_claim.set_defaults(func=_bridge_command(_token_claim))

    native_parser = subparsers.add_parser("native")
    native_sub = native_parser.add_subparsers(dest="native_command", required=True)

    native_deposit = native_sub.add_parser("deposit")
    _add_bridge_args(native_deposit)
    native_deposit.add_argument("--amount", required=True)
    native_deposit.set_defaults(func=_bridge_command(_native_deposit))

    native_withdraw = native_sub.add_parser("withdraw")
    _add_bridge_args(native_withdraw)
    native_withdraw.add_argument("--amount", required=True)
    native_withdraw.set_defaults(func=_bridge_command(_native_withdraw))

    native_claim = native_sub.add_parser("claim")
    _add_bridge_args(native_claim)
    native_claim.set_defaults(func=_bridge_command(_native_claim))

    cache_parser = subparsers.add_parser("cache")
    cache_sub = cache_parser.add_subparsers(dest="cache_command", required=True)

    cache_show = cache_sub.add_parser("show")
    _add_bridge_args(cache_show)
    cache_show.set_defaults(func=_cache_show)

    cache_expire = cache_sub.add_parser("expire")
    _add_bridge_args(cache_expire)
    cache_expire.set_defaults(func=_cache_expire)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except (BridgeError, ValueError, KeyError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2


def _add_bridge_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--ledger", required=True)
    parser.add_argument("--cache", required=True)


def _open_controller(args: argparse.Namespace) -> Tuple[SimulatedBridge, SyncController]:
    bridge = _load_ledger(args.ledger)
    controller = SyncController(
        home=bridge.home,
        child=bridge.child,
        escrow=bridge.escrow,
        cache=FileCacheStore(Path(args.cache)),
        config=BridgeConfig.from_env(),
    )
    return bridge, controller


def _bridge_command(action: BridgeAction) -> Callable[[argparse.Namespace], int]:
    def run(args: argparse.Namespace) -> int:
        bridge, controller = _open_controller(args)
        output = asyncio.run(_with_started(controller, args, action))
        _save_ledger(args.ledger, bridge)
        print(json.dumps(output, indent=2))
        return 0

    return run


async def _with_started(
    controller: SyncController, args: argparse.Namespace, action: BridgeAction
) -> dict:
    await controller.start()
    return await action(controller, args)


async def _show_balances(controller: SyncController, args: argparse.Namespace) -> dict:
    return {
        "wallet_address": controller.wallet_address,
        "chain_id": controller.chain_id,
        "assets": [record.to_dict() for record in controller.registry.assets.values()],
        "balances": controller.balances.view().to_dict(),
    }


async def _token_add(controller: SyncController, args: argparse.Namespace) -> dict:
    record = await controller.transitions.register(args.address, AssetKind.parse(args.kind))
    return record.to_dict()


async def _token_approve(controller: SyncController, args: argparse.Namespace) -> dict:
    receipt = await controller.transitions.approve(args.address)
    return {
        "receipt": receipt.to_dict(),
        "asset": controller.registry.get(args.address).to_dict(),
    }


async def _token_deposit(controller: SyncController, args: argparse.Namespace) -> dict:
    receipt = await controller.transitions.deposit_asset(args.address, args.amount)
    return {"receipt": receipt.to_dict()}


async def _token_withdraw(controller: SyncController, args: argparse.Namespace) -> dict:
    receipt = await controller.transitions.withdraw_asset(args.address, args.amount)
    return {"receipt": receipt.to_dict()}


async def _token_claim(controller: SyncController, args: argparse.Namespace) -> dict:
    receipt = await controller.transitions.claim_asset_lockbox(args.address, args.token_id)
    return {"receipt": receipt.to_dict()}


async def _native_deposit(controller: SyncController, args: argparse.Namespace) -> dict:
    receipt = await controller.transitions.deposit_native(args.amount)
    return {"receipt": receipt.to_dict(), "native": controller.balances.view().native.to_dict()}


async def _native_withdraw(controller: SyncController, args: argparse.Namespace) -> dict:
    receipt = await controller.transitions.withdraw_native(args.amount)
    return {"receipt": receipt.to_dict(), "native": controller.balances.view().native.to_dict()}


async def _native_claim(controller: SyncController, args: argparse.Namespace) -> dict:
    receipt = await controller.transitions.claim_native_lockbox()
    return {"receipt": receipt.to_dict(), "native": controller.balances.view().native.to_dict()}


def _ledger_init(args: argparse.Namespace) -> int:
    bridge = SimulatedBridge(wallet=args.wallet, chain_id=args.chain_id)
    if args.native:
        bridge.mint_native(args.wallet, args.native, ledger="home")
    _save_ledger(args.ledger, bridge)
    print(json.dumps({"wallet": bridge.wallet, "chain_id": bridge.chain_id}, indent=2))
    return 0


def _ledger_deploy_fungible(args: argparse.Namespace) -> int:
    bridge = _load_ledger(args.ledger)
    bridge.deploy_fungible(args.address, args.name, args.symbol, args.decimals)
    if args.mint:
        bridge.mint_fungible(args.address, bridge.wallet, args.mint)
    if args.approve_max:
        bridge.set_allowance(args.address, bridge.wallet, bridge.escrow.address, MAX_UINT256)
    _save_ledger(args.ledger, bridge)
    print(args.address.strip().lower())
    return 0


def _ledger_deploy_non_fungible(args: argparse.Namespace) -> int:
    bridge = _load_ledger(args.ledger)
    bridge.deploy_non_fungible(args.address, args.name, args.symbol)
    for token_id in args.token_id:
        bridge.mint_non_fungible(args.address, bridge.wallet, token_id)
    _save_ledger(args.ledger, bridge)
    print(args.address.strip().lower())
    return 0


def _cache_show(args: argparse.Namespace) -> int:
    _, controller = _open_controller(args)
    cached = {kind.value: list(controller.registry.cached_addresses(kind)) for kind in AssetKind}
    print(json.dumps(cached, indent=2))
    return 0


def _cache_expire(args: argparse.Namespace) -> int:
    _, controller = _open_controller(args)
    controller.expire_cache()
    print("expired")
    return 0


def _load_ledger(path: str) -> SimulatedBridge:
    ledger_path = Path(path)
    if not ledger_path.exists():
        raise ValueError(f"Ledger file not found: {path}")
    return SimulatedBridge.from_dict(json.loads(ledger_path.read_text()))


def _save_ledger(path: str, bridge: SimulatedBridge) -> None:
    Path(path).write_text(json.dumps(bridge.to_dict(), indent=2))


if __name__ == "__main__":
    raise SystemExit(main())
