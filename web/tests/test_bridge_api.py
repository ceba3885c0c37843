"""Tests for the local bridge web API."""

import time
import unittest

try:
    from fastapi.testclient import TestClient
except ImportError:  # pragma: no cover - optional dependency
    TestClient = None

try:
    from web import app as web_app
except ImportError:  # pragma: no cover - optional dependency
    web_app = None
from bridge_engine.cache import MemoryCacheStore
from bridge_engine.config import MAX_UINT256, BridgeConfig
from bridge_engine.sync import SyncController
from ledger_adapter.simulator import SimulatedBridge

WALLET = "0x" + "a1" * 20
TOKEN = "0x" + "11" * 20
COLLECTIBLE = "0x" + "22" * 20
ETHER = 10**18


@unittest.skipIf(TestClient is None or web_app is None, "FastAPI not available")
class BridgeApiTests(unittest.TestCase):
    def setUp(self) -> None:
        web_app._reset_state()
        self.bridge = SimulatedBridge(wallet=WALLET)
        self.bridge.mint_native(WALLET, 5 * ETHER)
        self.bridge.deploy_fungible(TOKEN, "Test Token", "TT", 18)
        self.bridge.mint_fungible(TOKEN, WALLET, 100 * ETHER)
        self.bridge.set_allowance(TOKEN, WALLET, self.bridge.escrow.address, MAX_UINT256)
        self.bridge.deploy_non_fungible(COLLECTIBLE, "Collectible", "CLT")
        self.bridge.mint_non_fungible(COLLECTIBLE, WALLET, 8)
        self.controller = SyncController(
            home=self.bridge.home,
            child=self.bridge.child,
            escrow=self.bridge.escrow,
            cache=MemoryCacheStore(),
            config=BridgeConfig(refresh_interval=None),
        )
        web_app.configure(self.controller)
        self.client = TestClient(web_app.app)

    def tearDown(self) -> None:
        web_app._reset_state()

    def test_unconfigured_bridge_is_unavailable(self) -> None:
        web_app._reset_state()
        response = self.client.get("/api/balances")
        self.assertEqual(response.status_code, 503)

    def test_start_resolves_identity(self) -> None:
        response = self.client.post("/api/sync/start")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["wallet_address"], WALLET)
        self.assertEqual(payload["balances"]["native"]["home_balance"], 5 * ETHER)

        identity = self.client.get("/api/identity").json()
        self.assertEqual(identity["chain_id"], self.bridge.chain_id)

    def test_register_before_start_conflicts(self) -> None:
        response = self.client.post("/api/tokens", json={"address": TOKEN, "kind": "fungible"})
        self.assertEqual(response.status_code, 409)
        self.assertIn("error", response.json())

    def test_register_deposit_and_refresh(self) -> None:
        self.client.post("/api/sync/start")

        registered = self.client.post("/api/tokens", json={"address": TOKEN, "kind": "fungible"})
        self.assertEqual(registered.status_code, 200)
        self.assertTrue(registered.json()["approved"])

        duplicate = self.client.post("/api/tokens", json={"address": TOKEN, "kind": "fungible"})
        self.assertEqual(duplicate.status_code, 409)

        deposit = self.client.post(f"/api/tokens/{TOKEN}/deposit", json={"amount": "10"})
        self.assertEqual(deposit.status_code, 200)
        self.assertEqual(deposit.json()["receipt"]["action"], "DEPOSIT_FUNGIBLE")

        refreshed = self.client.post("/api/balances/refresh").json()
        fungible = refreshed["balances"]["fungible"][TOKEN]
        self.assertEqual(fungible["home_balance"], 90 * ETHER)
        self.assertEqual(fungible["total_escrowed"], 10 * ETHER)

        tokens = self.client.get("/api/tokens").json()["tokens"]
        self.assertEqual([token["symbol"] for token in tokens], ["TT"])

    def test_non_fungible_approve_and_claim_errors(self) -> None:
        self.client.post("/api/sync/start")
        self.client.post("/api/tokens", json={"address": COLLECTIBLE, "kind": "non-fungible"})

        approved = self.client.post(f"/api/tokens/{COLLECTIBLE}/approve")
        self.assertEqual(approved.status_code, 200)
        self.assertTrue(approved.json()["token"]["approved"])

        claim = self.client.post(f"/api/tokens/{COLLECTIBLE}/claim", json={})
        self.assertEqual(claim.status_code, 400)
        self.assertIn("Token id is required", claim.json()["error"])

    def test_unknown_asset_is_not_found(self) -> None:
        self.client.post("/api/sync/start")
        response = self.client.post(f"/api/tokens/{TOKEN}/withdraw", json={"amount": "1"})
        self.assertEqual(response.status_code, 404)

    def test_native_deposit_and_cache(self) -> None:
        self.client.post("/api/sync/start")
        self.client.post("/api/tokens", json={"address": TOKEN, "kind": "fungible"})

        deposit = self.client.post("/api/native/deposit", json={"amount": "2"})
        self.assertEqual(deposit.status_code, 200)
        self.assertEqual(deposit.json()["native"]["child_balance"], 2 * ETHER)

        bad = self.client.post("/api/native/deposit", json={"amount": "-1"})
        self.assertEqual(bad.status_code, 400)

        self.assertEqual(self.client.get("/api/cache").json()["fungible"], [TOKEN])
        self.assertEqual(self.client.delete("/api/cache").json(), {"status": "expired"})
        self.assertEqual(self.client.get("/api/cache").json()["fungible"], [])

    def test_lifespan_runs_periodic_reconciliation(self) -> None:
        controller = SyncController(
            home=self.bridge.home,
            child=self.bridge.child,
            escrow=self.bridge.escrow,
            cache=MemoryCacheStore(),
            config=BridgeConfig(refresh_interval=0.01),
        )
        web_app.configure(controller)

        with TestClient(web_app.app) as client:
            task = web_app._REFRESH_TASK
            self.assertIsNotNone(task)
            deadline = time.monotonic() + 2.0
            while time.monotonic() < deadline:
                if controller.balances.view().native.home_balance:
                    break
                time.sleep(0.01)

            self.assertEqual(controller.wallet_address, WALLET)
            self.assertFalse(task.done())
            payload = client.get("/api/balances").json()
            self.assertEqual(payload["balances"]["native"]["home_balance"], 5 * ETHER)

        self.assertTrue(task.done())

    def test_lifespan_without_interval_starts_no_task(self) -> None:
        with TestClient(web_app.app) as client:
            self.assertIsNone(web_app._REFRESH_TASK)
            self.assertEqual(client.get("/api/identity").json()["wallet_address"], None)


if __name__ == "__main__":
    unittest.main()
