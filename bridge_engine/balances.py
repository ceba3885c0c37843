"""Four-tier balance reconciliation for native currency and tracked assets."""

from typing import Callable, Dict, List, Optional, Tuple, Union, assert_never
import asyncio
import logging

from .change import ChangeDetector
from .ledger import EscrowReader, LedgerConnector, read
from .models import (
    AssetKind,
    AssetRecord,
    BalanceChannel,
    BalanceView,
    FungibleAsset,
    FungibleBalance,
    Identity,
    NativeBalance,
    NonFungibleAsset,
    NonFungibleBalance,
)
from .state import BridgeState

logger = logging.getLogger(__name__)

Listener = Callable[[BalanceChannel, object], None]
AssetBalance = Union[FungibleBalance, NonFungibleBalance]


class BalanceTracker:
    """Reads balances from both ledgers and the escrow, publishing only changes.

    A refresh cycle reads everything first and commits afterwards; a failed
    read aborts the cycle and the previously published snapshot stays in
    place. Publication is batched per channel, so one cycle emits at most one
    notification per channel.
    """

    def __init__(
        self,
        state: BridgeState,
        home: LedgerConnector,
        child: LedgerConnector,
        escrow: EscrowReader,
        detector: Optional[ChangeDetector] = None,
    ) -> None:
        self._state = state
        self._home = home
        self._child = child
        self._escrow = escrow
        self._detector = detector or ChangeDetector()
        self._listeners: List[Listener] = []

    @property
    def detector(self) -> ChangeDetector:
        return self._detector

    def view(self) -> BalanceView:
        return self._state.snapshot()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh_native(self) -> NativeBalance:
        identity = self._state.require_identity("refresh_native")
        update = await self._read_native(identity)
        self._commit_native(identity, update)
        return self._state.native

    async def refresh_assets(self, kind: Optional[AssetKind] = None) -> BalanceView:
        identity = self._state.require_identity("refresh_assets")
        records = self._state.assets_of_kind(kind)
        results = await self._read_assets(records, identity)
        self._commit_assets(kind, identity, records, results)
        return self._state.snapshot()

    async def refresh_all(self) -> BalanceView:
        identity = self._state.require_identity("refresh_all")
        records = self._state.assets_of_kind(None)

        native, results = await asyncio.gather(
            self._read_native(identity),
            self._read_assets(records, identity),
        )
        self._commit_native(identity, native)
        self._commit_assets(None, identity, records, results)
        return self._state.snapshot()

    async def _read_native(self, identity: Identity) -> NativeBalance:
        wallet = identity.wallet_address
        home_balance, child_balance, total_escrowed, lockbox_balance = await asyncio.gather(
            read(self._home.native_balance_of(wallet), "refresh_native"),
            read(self._child.native_balance_of(wallet), "refresh_native"),
            read(self._escrow.escrow_native_balance(identity.chain_id), "refresh_native"),
            read(self._escrow.escrow_native_balance(wallet), "refresh_native"),
        )
        return NativeBalance(
            home_balance=int(home_balance),
            child_balance=int(child_balance),
            total_escrowed=int(total_escrowed),
            lockbox_balance=int(lockbox_balance),
        )

    def _commit_native(self, identity: Identity, update: NativeBalance) -> None:
        if self._state.identity != identity:
            logger.info("Discarding native balances read for a replaced identity")
            return
        if self._detector.should_publish("native", self._state.native, update):
            self._state.replace_native(update)
            logger.info("Published native balances for %s", identity.wallet_address)
            self._notify(BalanceChannel.NATIVE, update)

    async def _read_assets(
        self, records: Tuple[AssetRecord, ...], identity: Identity
    ) -> List[AssetBalance]:
        return list(
            await asyncio.gather(*(self._read_asset(record, identity) for record in records))
        )

    def _commit_assets(
        self,
        kind: Optional[AssetKind],
        identity: Identity,
        records: Tuple[AssetRecord, ...],
        results: List[AssetBalance],
    ) -> None:
        if self._state.identity != identity:
            logger.info("Discarding asset balances read for a replaced identity")
            return

        fungible_updates: Dict[str, FungibleBalance] = {}
        non_fungible_updates: Dict[str, NonFungibleBalance] = {}
        for record, balance in zip(records, results):
            if isinstance(balance, FungibleBalance):
                fungible_updates[record.home_address] = balance
            else:
                non_fungible_updates[record.home_address] = balance

        kinds: Tuple[AssetKind, ...] = (kind,) if kind is not None else tuple(AssetKind)
        for target in kinds:
            if target is AssetKind.FUNGIBLE:
                self._publish_fungible(fungible_updates)
            elif target is AssetKind.NON_FUNGIBLE:
                self._publish_non_fungible(non_fungible_updates)
            else:
                assert_never(target)

    async def _read_asset(self, record: AssetRecord, identity: Identity) -> AssetBalance:
        if isinstance(record, FungibleAsset):
            return await self._read_fungible(record, identity)
        elif isinstance(record, NonFungibleAsset):
            return await self._read_non_fungible(record, identity)
        else:
            assert_never(record)

    async def _read_fungible(self, record: FungibleAsset, identity: Identity) -> FungibleBalance:
        wallet = identity.wallet_address
        address = record.home_address
        home_balance, child_balance, total_escrowed, lockbox_balance = await asyncio.gather(
            read(self._home.fungible_balance_of(address, wallet), "refresh_assets", address),
            read(
                self._child.fungible_balance_of(record.child_address, wallet),
                "refresh_assets",
                address,
            ),
            read(
                self._escrow.escrow_fungible_balance(address, identity.chain_id),
                "refresh_assets",
                address,
            ),
            read(self._escrow.escrow_fungible_balance(address, wallet), "refresh_assets", address),
        )
        return FungibleBalance(
            home_balance=int(home_balance),
            child_balance=int(child_balance),
            total_escrowed=int(total_escrowed),
            lockbox_balance=int(lockbox_balance),
        )

    async def _read_non_fungible(
        self, record: NonFungibleAsset, identity: Identity
    ) -> NonFungibleBalance:
        wallet = identity.wallet_address
        address = record.home_address
        home_tokens, child_tokens, escrowed_tokens, lockbox_tokens = await asyncio.gather(
            read(self._home.non_fungible_tokens_of(address, wallet), "refresh_assets", address),
            read(
                self._child.non_fungible_tokens_of(record.child_address, wallet),
                "refresh_assets",
                address,
            ),
            read(
                self._escrow.escrow_non_fungible_tokens(address, identity.chain_id),
                "refresh_assets",
                address,
            ),
            read(
                self._escrow.escrow_non_fungible_tokens(address, wallet),
                "refresh_assets",
                address,
            ),
        )
        return NonFungibleBalance(
            home_tokens=frozenset(int(token) for token in home_tokens),
            child_tokens=frozenset(int(token) for token in child_tokens),
            total_escrowed_tokens=frozenset(int(token) for token in escrowed_tokens),
            lockbox_tokens=frozenset(int(token) for token in lockbox_tokens),
        )

    def _publish_fungible(self, updates: Dict[str, FungibleBalance]) -> None:
        previous = self._state.fungible_balances
        merged = {**previous, **updates}
        if self._detector.should_publish("fungible", previous, merged):
            self._state.replace_fungible_balances(merged)
            logger.info("Published fungible balances for %d assets", len(merged))
            self._notify(BalanceChannel.FUNGIBLE, self._state.fungible_balances)

    def _publish_non_fungible(self, updates: Dict[str, NonFungibleBalance]) -> None:
        previous = self._state.non_fungible_balances
        merged = {**previous, **updates}
        if self._detector.should_publish("non_fungible", previous, merged):
            self._state.replace_non_fungible_balances(merged)
            logger.info("Published non-fungible balances for %d assets", len(merged))
            self._notify(BalanceChannel.NON_FUNGIBLE, self._state.non_fungible_balances)

    def _notify(self, channel: BalanceChannel, value: object) -> None:
        for listener in tuple(self._listeners):
            listener(channel, value)
