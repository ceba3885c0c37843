"""End-to-end tests for the bridge operator CLI against a ledger file."""

import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from io import StringIO
from pathlib import Path

from operator_cli.cli import main

WALLET = "0x" + "a1" * 20
TOKEN = "0x" + "11" * 20
COLLECTIBLE = "0x" + "22" * 20
ETHER = 10**18


class OperatorCliBridgeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tempdir = tempfile.TemporaryDirectory()
        self.ledger = str(Path(self.tempdir.name) / "ledger.json")
        self.cache = str(Path(self.tempdir.name) / "cache.json")
        self._ok(["ledger", "init", "--ledger", self.ledger, "--wallet", WALLET, "--native", str(5 * ETHER)])
        self._ok(
            [
                "ledger",
                "deploy-fungible",
                "--ledger",
                self.ledger,
                "--address",
                TOKEN,
                "--name",
                "Test Token",
                "--symbol",
                "TT",
                "--mint",
                str(100 * ETHER),
                "--approve-max",
            ]
        )

    def tearDown(self) -> None:
        self.tempdir.cleanup()

    def _run(self, args):
        out = StringIO()
        err = StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(args)
        return code, out.getvalue(), err.getvalue()

    def _ok(self, args):
        code, output, error = self._run(args)
        self.assertEqual(code, 0, error)
        return output

    def _bridge(self, *args):
        return json.loads(self._ok(list(args) + ["--ledger", self.ledger, "--cache", self.cache]))

    def test_register_and_deposit_flow(self) -> None:
        record = self._bridge("token", "add", "--kind", "fungible", "--address", TOKEN)
        self.assertTrue(record["approved"])
        self.assertEqual(record["symbol"], "TT")

        deposit = self._bridge("token", "deposit", "--address", TOKEN, "--amount", "25")
        self.assertEqual(deposit["receipt"]["ledger"], "home")
        self.assertEqual(deposit["receipt"]["action"], "DEPOSIT_FUNGIBLE")

        balances = self._bridge("balances")
        fungible = balances["balances"]["fungible"][TOKEN]
        self.assertEqual(fungible["home_balance"], 75 * ETHER)
        self.assertEqual(fungible["child_balance"], 25 * ETHER)
        self.assertEqual(balances["wallet_address"], WALLET)

    def test_cache_survives_between_invocations(self) -> None:
        self._bridge("token", "add", "--kind", "fungible", "--address", TOKEN)

        cached = self._bridge("cache", "show")
        self.assertEqual(cached["fungible"], [TOKEN])

        balances = self._bridge("balances")
        self.assertEqual([asset["home_address"] for asset in balances["assets"]], [TOKEN])

        self._ok(["cache", "expire", "--ledger", self.ledger, "--cache", self.cache])
        self.assertEqual(self._bridge("cache", "show")["fungible"], [])
        balances = self._bridge("balances")
        self.assertEqual(balances["assets"], [])

    def test_native_round_trip(self) -> None:
        deposit = self._bridge("native", "deposit", "--amount", "1.5")
        self.assertEqual(deposit["native"]["child_balance"], 3 * ETHER // 2)
        self.assertEqual(deposit["native"]["total_escrowed"], 3 * ETHER // 2)

        withdraw = self._bridge("native", "withdraw", "--amount", "1")
        self.assertEqual(withdraw["native"]["lockbox_balance"], ETHER)

        claim = self._bridge("native", "claim")
        self.assertEqual(claim["native"]["lockbox_balance"], 0)

    def test_non_fungible_claim_without_token_id_fails(self) -> None:
        self._ok(
            [
                "ledger",
                "deploy-non-fungible",
                "--ledger",
                self.ledger,
                "--address",
                COLLECTIBLE,
                "--name",
                "Collectible",
                "--symbol",
                "CLT",
                "--token-id",
                "1",
            ]
        )
        self._bridge("token", "add", "--kind", "non-fungible", "--address", COLLECTIBLE)

        code, _, error = self._run(
            ["token", "claim", "--address", COLLECTIBLE, "--ledger", self.ledger, "--cache", self.cache]
        )

        self.assertEqual(code, 2)
        self.assertIn("ERROR:", error)
        self.assertIn("Token id is required", error)

    def test_unknown_asset_exit_code(self) -> None:
        code, _, error = self._run(
            ["token", "approve", "--address", TOKEN, "--ledger", self.ledger, "--cache", self.cache]
        )
        self.assertEqual(code, 2)
        self.assertIn("not registered", error)

    def test_missing_ledger_file(self) -> None:
        missing = str(Path(self.tempdir.name) / "missing.json")
        code, _, error = self._run(["balances", "--ledger", missing, "--cache", self.cache])
        self.assertEqual(code, 2)
        self.assertIn("Ledger file not found", error)


if __name__ == "__main__":
    unittest.main()
