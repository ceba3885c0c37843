"""Startup, cache replay, reconnect and periodic reconciliation tests."""

import asyncio
import unittest

from bridge_engine.cache import MemoryCacheStore
from bridge_engine.config import MAX_UINT256, BridgeConfig
from bridge_engine.models import AssetKind, NativeBalance
from bridge_engine.sync import SyncController
from ledger_adapter.simulator import SimulatedBridge

WALLET = "0x" + "a1" * 20
OTHER_WALLET = "0x" + "b2" * 20
TOKEN = "0x" + "11" * 20
COLLECTIBLE = "0x" + "22" * 20
NOT_A_CONTRACT = "0x" + "33" * 20


class SyncControllerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.bridge = SimulatedBridge(wallet=WALLET)
        self.bridge.mint_native(WALLET, 3 * 10**18)
        self.bridge.deploy_fungible(TOKEN, "Test Token", "TT", 18)
        self.bridge.mint_fungible(TOKEN, WALLET, 10**18)
        self.bridge.set_allowance(TOKEN, WALLET, self.bridge.escrow.address, MAX_UINT256)
        self.bridge.deploy_non_fungible(COLLECTIBLE, "Collectible", "CLT")
        self.bridge.mint_non_fungible(COLLECTIBLE, WALLET, 4)
        self.cache = MemoryCacheStore()

    def _controller(self, **config) -> SyncController:
        config.setdefault("refresh_interval", None)
        return SyncController(
            home=self.bridge.home,
            child=self.bridge.child,
            escrow=self.bridge.escrow,
            cache=self.cache,
            config=BridgeConfig(**config),
        )

    async def test_start_restores_cache_and_reconciles(self) -> None:
        self.cache.save(AssetKind.FUNGIBLE, (TOKEN,))
        self.cache.save(AssetKind.NON_FUNGIBLE, (COLLECTIBLE,))
        controller = self._controller()

        view = await controller.start()

        self.assertEqual(controller.wallet_address, WALLET)
        self.assertEqual(controller.chain_id, self.bridge.chain_id)
        self.assertEqual(view.native.home_balance, 3 * 10**18)
        self.assertEqual(view.fungible[TOKEN].home_balance, 10**18)
        self.assertEqual(view.non_fungible[COLLECTIBLE].home_tokens, frozenset({4}))

    async def test_restore_skips_invalid_cached_address(self) -> None:
        self.cache.save(AssetKind.FUNGIBLE, (TOKEN, NOT_A_CONTRACT))
        self.cache.save(AssetKind.NON_FUNGIBLE, (COLLECTIBLE,))
        controller = self._controller()
        await controller.resolve_identity()

        with self.assertLogs("bridge_engine.sync", level="WARNING") as logs:
            restored = await controller.restore_cache()

        self.assertEqual(len(restored), 2)
        self.assertEqual(set(controller.registry.assets), {TOKEN, COLLECTIBLE})
        self.assertTrue(any(NOT_A_CONTRACT in line for line in logs.output))
        self.assertEqual(self.cache.load(AssetKind.FUNGIBLE), (TOKEN, NOT_A_CONTRACT))

    async def test_restore_reports_asset_registered_without_balances(self) -> None:
        self.cache.save(AssetKind.FUNGIBLE, (TOKEN,))
        controller = self._controller()
        await controller.resolve_identity()
        self.bridge.escrow.fail_reads = True

        with self.assertLogs("bridge_engine.sync", level="WARNING") as logs:
            restored = await controller.restore_cache()

        self.assertEqual([record.home_address for record in restored], [TOKEN])
        self.assertIn(TOKEN, controller.registry.assets)
        self.assertNotIn(TOKEN, controller.balances.view().fungible)
        self.assertTrue(any("without balances" in line for line in logs.output))
        self.assertFalse(any("Skipping" in line for line in logs.output))

        self.bridge.escrow.fail_reads = False
        view = await controller.refresh_all()
        self.assertEqual(view.fungible[TOKEN].home_balance, 10**18)

    async def test_auto_restore_can_be_disabled(self) -> None:
        self.cache.save(AssetKind.FUNGIBLE, (TOKEN,))
        controller = self._controller(auto_restore_cache=False)

        view = await controller.start()

        self.assertEqual(len(controller.registry.assets), 0)
        self.assertEqual(dict(view.fungible), {})
        self.assertEqual(view.native.home_balance, 3 * 10**18)

    async def test_resolve_identity_is_idempotent(self) -> None:
        controller = self._controller()
        first = await controller.resolve_identity()
        self.bridge.connect_wallet(OTHER_WALLET)

        second = await controller.resolve_identity()

        self.assertIs(first, second)
        self.assertEqual(controller.wallet_address, WALLET)

    async def test_reconnect_with_new_wallet_resets_balances(self) -> None:
        controller = self._controller()
        await controller.start()
        await controller.registry.register(TOKEN, AssetKind.FUNGIBLE)
        self.assertEqual(controller.balances.view().native.home_balance, 3 * 10**18)

        self.bridge.connect_wallet(OTHER_WALLET)
        identity = await controller.reconnect()

        self.assertEqual(identity.wallet_address, OTHER_WALLET)
        self.assertEqual(controller.balances.view().native, NativeBalance())
        self.assertEqual(dict(controller.balances.view().fungible), {})
        self.assertIn(TOKEN, controller.registry.assets)

        view = await controller.refresh_all()
        self.assertEqual(view.fungible[TOKEN].home_balance, 0)

    async def test_reconnect_with_same_wallet_keeps_balances(self) -> None:
        controller = self._controller()
        await controller.start()
        before = controller.balances.view()

        await controller.reconnect()

        self.assertEqual(controller.balances.view(), before)

    async def test_run_periodic_reconciles_until_stopped(self) -> None:
        controller = self._controller()
        await controller.resolve_identity()
        stop = asyncio.Event()

        task = asyncio.create_task(controller.run_periodic(stop, interval=0.01))
        await asyncio.sleep(0.1)
        stop.set()
        completed = await task

        self.assertGreaterEqual(completed, 1)
        self.assertEqual(controller.balances.view().native.home_balance, 3 * 10**18)

    async def test_run_periodic_starts_an_unstarted_controller(self) -> None:
        self.cache.save(AssetKind.FUNGIBLE, (TOKEN,))
        controller = self._controller()
        stop = asyncio.Event()

        task = asyncio.create_task(controller.run_periodic(stop, interval=0.01))
        await asyncio.sleep(0.1)
        stop.set()
        completed = await task

        self.assertGreaterEqual(completed, 1)
        self.assertEqual(controller.wallet_address, WALLET)
        self.assertIn(TOKEN, controller.registry.assets)
        self.assertEqual(controller.balances.view().fungible[TOKEN].home_balance, 10**18)

    async def test_run_periodic_logs_failed_cycles(self) -> None:
        controller = self._controller()
        await controller.resolve_identity()
        self.bridge.child.fail_reads = True
        stop = asyncio.Event()

        with self.assertLogs("bridge_engine.sync", level="WARNING") as logs:
            task = asyncio.create_task(controller.run_periodic(stop, interval=0.01))
            await asyncio.sleep(0.05)
            stop.set()
            completed = await task

        self.assertEqual(completed, 0)
        self.assertTrue(any("Reconciliation cycle failed" in line for line in logs.output))
        self.assertEqual(controller.balances.view().native, NativeBalance())

    async def test_run_periodic_stops_immediately_when_already_set(self) -> None:
        controller = self._controller()
        stop = asyncio.Event()
        stop.set()
        self.assertEqual(await controller.run_periodic(stop, interval=0.01), 0)

    async def test_run_periodic_requires_interval(self) -> None:
        controller = self._controller()
        with self.assertRaises(ValueError):
            await controller.run_periodic(asyncio.Event())

    async def test_expire_cache_clears_store(self) -> None:
        controller = self._controller()
        await controller.start()
        await controller.registry.register(TOKEN, AssetKind.FUNGIBLE)

        controller.expire_cache()

        self.assertEqual(self.cache.load(AssetKind.FUNGIBLE), ())
        self.assertIn(TOKEN, controller.registry.assets)


if __name__ == "__main__":
    unittest.main()
