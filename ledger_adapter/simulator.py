"""Deterministic in-memory home/child ledgers joined by an escrow contract.

Every submitted intent is validated in full before any state changes, so a
failed transaction leaves both ledgers and the escrow untouched. Each
submission charges a flat fee of ``gas_used * gas_price`` to the sender in
native units on the ledger it was submitted to.
"""

from typing import Callable, Dict, List, Set
import hashlib

from bridge_engine.config import MAX_UINT256
from bridge_engine.errors import TransactionFailedError
from bridge_engine.ledger import Receipt, TransactionIntent, TxAction
from bridge_engine.models import normalize_address

from .adapter import AdapterError, intent_to_payload
from .models import SimulatedFungible, SimulatedNonFungible, TxPayload


class SimulationError(ValueError):
    """Raised when a simulated call or transaction cannot be performed."""


_DEFAULT_GAS_USED = 21_000
_DEFAULT_GAS_PRICE_WEI = 1
_CONTRACT_CODE = b"\x60\x80\x60\x40\x52"

DEFAULT_ESCROW_ADDRESS = "0x00000000000000000000000000000000000e5c40"
DEFAULT_CHAIN_ID = "0x716a8b37c1a9e7d6c2f4f7e1b6a4b5c90e5b4c1f"


class SimulatedLedger:
    """One ledger; implements the ledger connector interface."""

    def __init__(self, bridge: "SimulatedBridge", name: str) -> None:
        self.name = name
        self._bridge = bridge
        self.native: Dict[str, int] = {}
        self.fungibles: Dict[str, SimulatedFungible] = {}
        self.non_fungibles: Dict[str, SimulatedNonFungible] = {}
        self.block_number = 0
        self.submitted: List[TxPayload] = []
        self.fail_reads = False

    async def signer_address(self) -> str:
        return self._bridge.wallet

    async def chain_id(self) -> str:
        return self._bridge.chain_id

    async def native_balance_of(self, address: str) -> int:
        self._check_available()
        return self.native.get(normalize_address(address), 0)

    async def fungible_balance_of(self, contract: str, owner: str) -> int:
        return self.fungible(contract).balances.get(normalize_address(owner), 0)

    async def fungible_allowance(self, contract: str, owner: str, spender: str) -> int:
        return self.fungible(contract).allowance(
            normalize_address(owner), normalize_address(spender)
        )

    async def fungible_decimals(self, contract: str) -> int:
        return self.fungible(contract).decimals

    async def fungible_name(self, contract: str) -> str:
        return self.fungible(contract).name

    async def fungible_symbol(self, contract: str) -> str:
        return self.fungible(contract).symbol

    async def non_fungible_tokens_of(self, contract: str, owner: str) -> Set[int]:
        return self.non_fungible(contract).tokens_of(normalize_address(owner))

    async def non_fungible_operator_approved(
        self, contract: str, owner: str, operator: str
    ) -> bool:
        return self.non_fungible(contract).is_operator(
            normalize_address(owner), normalize_address(operator)
        )

    async def non_fungible_name(self, contract: str) -> str:
        return self.non_fungible(contract).name

    async def non_fungible_symbol(self, contract: str) -> str:
        return self.non_fungible(contract).symbol

    async def code_at(self, address: str) -> bytes:
        self._check_available()
        key = normalize_address(address)
        if key in self.fungibles or key in self.non_fungibles:
            return _CONTRACT_CODE
        return b""

    async def submit_and_await(self, intent: TransactionIntent) -> Receipt:
        try:
            payload = intent_to_payload(intent, self.name, self._bridge.escrow.address)
            self._bridge.apply(self, intent)
        except (AdapterError, SimulationError) as exc:
            raise TransactionFailedError(f"{intent.action.value} reverted: {exc}") from exc

        self.submitted.append(payload)
        self.block_number += 1
        digest = hashlib.sha256(
            f"{self.name}|{self.block_number}|{payload.data}".encode("ascii")
        ).hexdigest()
        return Receipt(
            tx_hash="0x" + digest,
            ledger=self.name,
            action=intent.action,
            block_number=self.block_number,
            gas_used=self._bridge.gas_used,
            cost_wei=self._bridge.fee,
        )

    def fungible(self, contract: str) -> SimulatedFungible:
        self._check_available()
        token = self.fungibles.get(normalize_address(contract))
        if token is None:
            raise SimulationError(f"No fungible contract at {contract} on {self.name}.")
        return token

    def non_fungible(self, contract: str) -> SimulatedNonFungible:
        self._check_available()
        token = self.non_fungibles.get(normalize_address(contract))
        if token is None:
            raise SimulationError(f"No non-fungible contract at {contract} on {self.name}.")
        return token

    def _check_available(self) -> None:
        if self.fail_reads:
            raise SimulationError(f"{self.name} ledger is unavailable.")

    def to_dict(self) -> Dict[str, object]:
        return {
            "native": dict(self.native),
            "block_number": self.block_number,
            "fungibles": {address: token.to_dict() for address, token in self.fungibles.items()},
            "non_fungibles": {
                address: token.to_dict() for address, token in self.non_fungibles.items()
            },
        }

    def load(self, data: Dict[str, object]) -> None:
        self.native = {address: int(value) for address, value in data.get("native", {}).items()}
        self.block_number = int(data.get("block_number", 0))
        self.fungibles = {
            address: SimulatedFungible.from_dict(token)
            for address, token in data.get("fungibles", {}).items()
        }
        self.non_fungibles = {
            address: SimulatedNonFungible.from_dict(token)
            for address, token in data.get("non_fungibles", {}).items()
        }


class SimulatedEscrow:
    """Escrow on the home ledger; implements the escrow reader interface."""

    def __init__(self, address: str) -> None:
        self.address = normalize_address(address)
        self.native: Dict[str, int] = {}
        self.fungible: Dict[str, Dict[str, int]] = {}
        self.non_fungible: Dict[str, Dict[str, Set[int]]] = {}
        self.fail_reads = False

    async def escrow_native_balance(self, key: str) -> int:
        self._check_available()
        return self.native.get(normalize_address(key), 0)

    async def escrow_fungible_balance(self, contract: str, key: str) -> int:
        self._check_available()
        return self.fungible.get(normalize_address(contract), {}).get(normalize_address(key), 0)

    async def escrow_non_fungible_tokens(self, contract: str, key: str) -> Set[int]:
        self._check_available()
        held = self.non_fungible.get(normalize_address(contract), {})
        return set(held.get(normalize_address(key), set()))

    def _check_available(self) -> None:
        if self.fail_reads:
            raise SimulationError("Escrow is unavailable.")

    def to_dict(self) -> Dict[str, object]:
        return {
            "address": self.address,
            "native": dict(self.native),
            "fungible": {contract: dict(keys) for contract, keys in self.fungible.items()},
            "non_fungible": {
                contract: {key: sorted(tokens) for key, tokens in keys.items()}
                for contract, keys in self.non_fungible.items()
            },
        }

    def load(self, data: Dict[str, object]) -> None:
        self.native = {key: int(value) for key, value in data.get("native", {}).items()}
        self.fungible = {
            contract: {key: int(value) for key, value in keys.items()}
            for contract, keys in data.get("fungible", {}).items()
        }
        self.non_fungible = {
            contract: {key: {int(token) for token in tokens} for key, tokens in keys.items()}
            for contract, keys in data.get("non_fungible", {}).items()
        }


class SimulatedBridge:
    def __init__(
        self,
        wallet: str,
        chain_id: str = DEFAULT_CHAIN_ID,
        escrow_address: str = DEFAULT_ESCROW_ADDRESS,
        gas_used: int = _DEFAULT_GAS_USED,
        gas_price: int = _DEFAULT_GAS_PRICE_WEI,
    ) -> None:
        self.wallet = normalize_address(wallet)
        self.chain_id = normalize_address(chain_id)
        self.gas_used = gas_used
        self.gas_price = gas_price
        self.home = SimulatedLedger(self, "home")
        self.child = SimulatedLedger(self, "child")
        self.escrow = SimulatedEscrow(escrow_address)
        self._handlers: Dict[TxAction, Callable[[SimulatedLedger, TransactionIntent], None]] = {
            TxAction.APPROVE_FUNGIBLE: self._approve_fungible,
            TxAction.APPROVE_NON_FUNGIBLE: self._approve_non_fungible,
            TxAction.DEPOSIT_NATIVE: self._deposit_native,
            TxAction.DEPOSIT_FUNGIBLE: self._deposit_fungible,
            TxAction.DEPOSIT_NON_FUNGIBLE: self._deposit_non_fungible,
            TxAction.WITHDRAW_NATIVE: self._withdraw_native,
            TxAction.WITHDRAW_FUNGIBLE: self._withdraw_fungible,
            TxAction.WITHDRAW_NON_FUNGIBLE: self._withdraw_non_fungible,
            TxAction.CLAIM_NATIVE: self._claim_native,
            TxAction.CLAIM_FUNGIBLE: self._claim_fungible,
            TxAction.CLAIM_NON_FUNGIBLE: self._claim_non_fungible,
        }
        self._home_actions = {
            TxAction.APPROVE_FUNGIBLE,
            TxAction.APPROVE_NON_FUNGIBLE,
            TxAction.DEPOSIT_NATIVE,
            TxAction.DEPOSIT_FUNGIBLE,
            TxAction.DEPOSIT_NON_FUNGIBLE,
            TxAction.CLAIM_NATIVE,
            TxAction.CLAIM_FUNGIBLE,
            TxAction.CLAIM_NON_FUNGIBLE,
        }

    @property
    def fee(self) -> int:
        return self.gas_used * self.gas_price

    def connect_wallet(self, wallet: str) -> None:
        self.wallet = normalize_address(wallet)

    def mint_native(self, address: str, amount: int, ledger: str = "home") -> None:
        target = self._ledger(ledger)
        key = normalize_address(address)
        target.native[key] = target.native.get(key, 0) + amount

    def deploy_fungible(self, address: str, name: str, symbol: str, decimals: int = 18) -> None:
        key = normalize_address(address)
        for ledger in (self.home, self.child):
            ledger.fungibles[key] = SimulatedFungible(name=name, symbol=symbol, decimals=decimals)

    def mint_fungible(self, contract: str, owner: str, amount: int, ledger: str = "home") -> None:
        token = self._ledger(ledger).fungible(contract)
        key = normalize_address(owner)
        token.balances[key] = token.balances.get(key, 0) + amount

    def set_allowance(self, contract: str, owner: str, spender: str, amount: int) -> None:
        token = self.home.fungible(contract)
        token.allowances.setdefault(normalize_address(owner), {})[
            normalize_address(spender)
        ] = amount

    def deploy_non_fungible(self, address: str, name: str, symbol: str) -> None:
        key = normalize_address(address)
        for ledger in (self.home, self.child):
            ledger.non_fungibles[key] = SimulatedNonFungible(name=name, symbol=symbol)

    def mint_non_fungible(self, contract: str, owner: str, token_id: int, ledger: str = "home") -> None:
        token = self._ledger(ledger).non_fungible(contract)
        if token_id in token.owners:
            raise SimulationError(f"Token {token_id} already minted.")
        token.owners[token_id] = normalize_address(owner)

    def set_operator(self, contract: str, owner: str, operator: str, approved: bool = True) -> None:
        token = self.home.non_fungible(contract)
        operators = token.operators.setdefault(normalize_address(owner), set())
        if approved:
            operators.add(normalize_address(operator))
        else:
            operators.discard(normalize_address(operator))

    def apply(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        expected = self.home if intent.action in self._home_actions else self.child
        if ledger is not expected:
            raise SimulationError(f"{intent.action.value} must be submitted on {expected.name}.")
        sender = normalize_address(intent.sender)
        value = intent.amount if intent.action in (
            TxAction.DEPOSIT_NATIVE,
            TxAction.WITHDRAW_NATIVE,
        ) else 0
        _require(
            ledger.native.get(sender, 0) >= self.fee + value,
            "insufficient native balance for value and fee",
        )
        self._handlers[intent.action](ledger, intent)
        ledger.native[sender] = ledger.native.get(sender, 0) - self.fee

    def _approve_fungible(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        token = ledger.fungible(intent.contract)
        token.allowances.setdefault(normalize_address(intent.sender), {})[
            normalize_address(intent.counterparty or self.escrow.address)
        ] = intent.amount

    def _approve_non_fungible(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        token = ledger.non_fungible(intent.contract)
        token.operators.setdefault(normalize_address(intent.sender), set()).add(
            normalize_address(intent.counterparty or self.escrow.address)
        )

    def _deposit_native(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        sender = normalize_address(intent.sender)
        recipient = normalize_address(intent.counterparty or sender)
        ledger.native[sender] -= intent.amount
        _credit(self.escrow.native, self.chain_id, intent.amount)
        _credit(self.child.native, recipient, intent.amount)

    def _deposit_fungible(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        sender = normalize_address(intent.sender)
        contract = normalize_address(intent.contract)
        recipient = normalize_address(intent.counterparty or sender)
        token = ledger.fungible(contract)
        allowance = token.allowance(sender, self.escrow.address)
        mirror = self.child.fungible(contract)
        _require(token.balances.get(sender, 0) >= intent.amount, "insufficient token balance")
        _require(allowance >= intent.amount, "insufficient allowance for escrow")

        token.balances[sender] -= intent.amount
        if allowance != MAX_UINT256:
            token.allowances[sender][self.escrow.address] = allowance - intent.amount
        _credit(self.escrow.fungible.setdefault(contract, {}), self.chain_id, intent.amount)
        _credit(mirror.balances, recipient, intent.amount)

    def _deposit_non_fungible(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        sender = normalize_address(intent.sender)
        contract = normalize_address(intent.contract)
        recipient = normalize_address(intent.counterparty or sender)
        token = ledger.non_fungible(contract)
        _require(token.owners.get(intent.token_id) == sender, "token not owned by sender")
        mirror = self.child.non_fungible(contract)
        _require(token.is_operator(sender, self.escrow.address), "escrow is not an approved operator")

        token.owners[intent.token_id] = self.escrow.address
        self._escrowed_tokens(contract, self.chain_id).add(intent.token_id)
        mirror.owners[intent.token_id] = recipient

    def _withdraw_native(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        sender = normalize_address(intent.sender)
        recipient = normalize_address(intent.counterparty or sender)
        ledger.native[sender] -= intent.amount
        _credit(self.escrow.native, recipient, intent.amount)

    def _withdraw_fungible(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        sender = normalize_address(intent.sender)
        contract = normalize_address(intent.contract)
        recipient = normalize_address(intent.counterparty or sender)
        token = ledger.fungible(contract)
        _require(token.balances.get(sender, 0) >= intent.amount, "insufficient child token balance")

        token.balances[sender] -= intent.amount
        _credit(self.escrow.fungible.setdefault(contract, {}), recipient, intent.amount)

    def _withdraw_non_fungible(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        sender = normalize_address(intent.sender)
        contract = normalize_address(intent.contract)
        recipient = normalize_address(intent.counterparty or sender)
        token = ledger.non_fungible(contract)
        _require(token.owners.get(intent.token_id) == sender, "child token not owned by sender")

        del token.owners[intent.token_id]
        self._escrowed_tokens(contract, recipient).add(intent.token_id)

    def _claim_native(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        sender = normalize_address(intent.sender)
        amount = self.escrow.native.get(sender, 0)
        _require(amount > 0, "lockbox is empty")
        _require(self.escrow.native.get(self.chain_id, 0) >= amount, "escrow is undercollateralized")

        self.escrow.native[sender] = 0
        self.escrow.native[self.chain_id] -= amount
        _credit(ledger.native, sender, amount)

    def _claim_fungible(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        sender = normalize_address(intent.sender)
        contract = normalize_address(intent.contract)
        token = ledger.fungible(contract)
        held = self.escrow.fungible.get(contract, {})
        amount = held.get(sender, 0)
        _require(amount > 0, "lockbox is empty")
        _require(held.get(self.chain_id, 0) >= amount, "escrow is undercollateralized")

        held[sender] = 0
        held[self.chain_id] -= amount
        _credit(token.balances, sender, amount)

    def _claim_non_fungible(self, ledger: SimulatedLedger, intent: TransactionIntent) -> None:
        sender = normalize_address(intent.sender)
        contract = normalize_address(intent.contract)
        token = ledger.non_fungible(contract)
        lockbox = self._escrowed_tokens(contract, sender)
        _require(intent.token_id in lockbox, "token is not in the lockbox")

        lockbox.discard(intent.token_id)
        self._escrowed_tokens(contract, self.chain_id).discard(intent.token_id)
        token.owners[intent.token_id] = sender

    def _escrowed_tokens(self, contract: str, key: str) -> Set[int]:
        return self.escrow.non_fungible.setdefault(contract, {}).setdefault(key, set())

    def _ledger(self, name: str) -> SimulatedLedger:
        if name == "home":
            return self.home
        if name == "child":
            return self.child
        raise ValueError(f"Unknown ledger: {name}")

    def to_dict(self) -> Dict[str, object]:
        return {
            "wallet": self.wallet,
            "chain_id": self.chain_id,
            "gas_used": self.gas_used,
            "gas_price": self.gas_price,
            "escrow": self.escrow.to_dict(),
            "home": self.home.to_dict(),
            "child": self.child.to_dict(),
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "SimulatedBridge":
        escrow = data.get("escrow", {})
        bridge = SimulatedBridge(
            wallet=data["wallet"],
            chain_id=data.get("chain_id", DEFAULT_CHAIN_ID),
            escrow_address=escrow.get("address", DEFAULT_ESCROW_ADDRESS),
            gas_used=int(data.get("gas_used", _DEFAULT_GAS_USED)),
            gas_price=int(data.get("gas_price", _DEFAULT_GAS_PRICE_WEI)),
        )
        bridge.escrow.load(escrow)
        bridge.home.load(data.get("home", {}))
        bridge.child.load(data.get("child", {}))
        return bridge


def _credit(balances: Dict[str, int], key: str, amount: int) -> None:
    balances[key] = balances.get(key, 0) + amount


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SimulationError(message)
