"""Transitions that move value between the home and child ledgers."""

from typing import Optional, Union, assert_never

from .balances import BalanceTracker
from .config import BridgeConfig
from .errors import MissingTokenIdError
from .ledger import LedgerConnector, Receipt, TransactionIntent, TxAction, submit
from .models import AssetKind, AssetRecord, FungibleAsset, NonFungibleAsset
from .registry import AssetRegistry
from .state import BridgeState
from .units import AmountLike, parse_token_id, parse_units

AmountOrTokenId = Union[str, int]


class TransitionOrchestrator:
    """Runs register, approve, deposit, withdraw and claim transitions.

    Each transition submits exactly one transaction and waits for inclusion.
    Nothing is retried here. Native transitions refresh native balances once
    the transaction is included; asset transitions return the receipt and
    leave refreshing to the caller or the periodic reconciliation.
    """

    def __init__(
        self,
        state: BridgeState,
        registry: AssetRegistry,
        tracker: BalanceTracker,
        home: LedgerConnector,
        child: LedgerConnector,
        config: Optional[BridgeConfig] = None,
    ) -> None:
        self._state = state
        self._registry = registry
        self._tracker = tracker
        self._home = home
        self._child = child
        self._config = config or BridgeConfig()

    async def register(self, address: str, kind: AssetKind) -> AssetRecord:
        return await self._registry.register(address, kind)

    async def approve(self, address: str) -> Receipt:
        return await self._registry.approve(address)

    async def deposit_native(self, amount: AmountLike) -> Receipt:
        identity = self._state.require_identity("deposit_native")
        value = parse_units(amount, self._config.native_decimals)
        intent = TransactionIntent(
            action=TxAction.DEPOSIT_NATIVE,
            sender=identity.wallet_address,
            amount=value,
            counterparty=identity.wallet_address,
        )
        receipt = await submit(self._home, intent, "deposit_native")
        await self._tracker.refresh_native()
        return receipt

    async def withdraw_native(self, amount: AmountLike) -> Receipt:
        identity = self._state.require_identity("withdraw_native")
        value = parse_units(amount, self._config.native_decimals)
        intent = TransactionIntent(
            action=TxAction.WITHDRAW_NATIVE,
            sender=identity.wallet_address,
            amount=value,
            counterparty=identity.wallet_address,
        )
        receipt = await submit(self._child, intent, "withdraw_native")
        await self._tracker.refresh_native()
        return receipt

    async def claim_native_lockbox(self) -> Receipt:
        identity = self._state.require_identity("claim_native_lockbox")
        intent = TransactionIntent(action=TxAction.CLAIM_NATIVE, sender=identity.wallet_address)
        receipt = await submit(self._home, intent, "claim_native_lockbox")
        await self._tracker.refresh_native()
        return receipt

    async def deposit_asset(self, address: str, amount_or_id: AmountOrTokenId) -> Receipt:
        record = self._state.require_asset(address, "deposit_asset")
        identity = self._state.require_identity("deposit_asset")
        wallet = identity.wallet_address

        if isinstance(record, FungibleAsset):
            intent = TransactionIntent(
                action=TxAction.DEPOSIT_FUNGIBLE,
                sender=wallet,
                contract=record.home_address,
                amount=parse_units(amount_or_id, record.decimals),
                counterparty=wallet,
            )
        elif isinstance(record, NonFungibleAsset):
            intent = TransactionIntent(
                action=TxAction.DEPOSIT_NON_FUNGIBLE,
                sender=wallet,
                contract=record.home_address,
                token_id=parse_token_id(amount_or_id),
                counterparty=wallet,
            )
        else:
            assert_never(record)

        return await submit(self._home, intent, "deposit_asset", record.home_address)

    async def withdraw_asset(self, address: str, amount_or_id: AmountOrTokenId) -> Receipt:
        record = self._state.require_asset(address, "withdraw_asset")
        identity = self._state.require_identity("withdraw_asset")
        wallet = identity.wallet_address

        if isinstance(record, FungibleAsset):
            # Fungible withdrawals are denominated in base units.
            intent = TransactionIntent(
                action=TxAction.WITHDRAW_FUNGIBLE,
                sender=wallet,
                contract=record.child_address,
                amount=parse_units(amount_or_id, 0),
                counterparty=wallet,
            )
        elif isinstance(record, NonFungibleAsset):
            intent = TransactionIntent(
                action=TxAction.WITHDRAW_NON_FUNGIBLE,
                sender=wallet,
                contract=record.child_address,
                token_id=parse_token_id(amount_or_id),
                counterparty=wallet,
            )
        else:
            assert_never(record)

        return await submit(self._child, intent, "withdraw_asset", record.home_address)

    async def claim_asset_lockbox(
        self, address: str, token_id: Optional[AmountOrTokenId] = None
    ) -> Receipt:
        record = self._state.require_asset(address, "claim_asset_lockbox")
        identity = self._state.require_identity("claim_asset_lockbox")
        wallet = identity.wallet_address

        if isinstance(record, FungibleAsset):
            intent = TransactionIntent(
                action=TxAction.CLAIM_FUNGIBLE,
                sender=wallet,
                contract=record.home_address,
            )
        elif isinstance(record, NonFungibleAsset):
            if token_id is None or token_id == "":
                raise MissingTokenIdError(
                    "Token id is required to claim a non-fungible asset.",
                    "claim_asset_lockbox",
                    record.home_address,
                )
            intent = TransactionIntent(
                action=TxAction.CLAIM_NON_FUNGIBLE,
                sender=wallet,
                contract=record.home_address,
                token_id=parse_token_id(token_id),
            )
        else:
            assert_never(record)

        return await submit(self._home, intent, "claim_asset_lockbox", record.home_address)
