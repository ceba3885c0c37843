"""Registry of tracked bridge assets and their approval state."""

from dataclasses import replace
from typing import Mapping, Optional, Tuple, assert_never
import asyncio
import logging

from .balances import BalanceTracker
from .cache import CacheStore
from .config import BridgeConfig
from .errors import AlreadyRegisteredError, NotAContractError
from .ledger import (
    EscrowReader,
    LedgerConnector,
    Receipt,
    TransactionIntent,
    TxAction,
    read,
    submit,
)
from .models import AssetKind, AssetRecord, FungibleAsset, NonFungibleAsset, normalize_address
from .state import BridgeState

logger = logging.getLogger(__name__)


class AssetRegistry:
    """Tracks fungible and non-fungible assets keyed by home-chain address.

    Approval is observed from the ledger when an asset is registered and only
    ever flips to True afterwards, through :meth:`approve`.
    """

    def __init__(
        self,
        state: BridgeState,
        home: LedgerConnector,
        escrow: EscrowReader,
        cache: CacheStore,
        tracker: BalanceTracker,
        config: Optional[BridgeConfig] = None,
    ) -> None:
        self._state = state
        self._home = home
        self._escrow = escrow
        self._cache = cache
        self._tracker = tracker
        self._config = config or BridgeConfig()

    @property
    def assets(self) -> Mapping[str, AssetRecord]:
        return self._state.assets

    def get(self, address: str) -> AssetRecord:
        return self._state.require_asset(address, "get")

    def tracked_addresses(self, kind: AssetKind) -> Tuple[str, ...]:
        return tuple(record.home_address for record in self._state.assets_of_kind(kind))

    def cached_addresses(self, kind: AssetKind) -> Tuple[str, ...]:
        return tuple(self._cache.load(kind))

    async def register(self, address: str, kind: AssetKind) -> AssetRecord:
        identity = self._state.require_identity("register")
        key = normalize_address(address)

        code = await read(self._home.code_at(key), "register", key)
        if not code:
            raise NotAContractError("Address has no contract code.", "register", key)
        if key in self._state.assets:
            raise AlreadyRegisteredError("Asset is already registered.", "register", key)

        record = await self._load_record(key, kind, identity.wallet_address)
        self._state.insert_asset(record, "register")
        logger.info(
            "Registered %s %s (%s) approved=%s", kind.value, record.symbol, key, record.approved
        )
        self._remember(key, kind)

        await self._tracker.refresh_assets(kind)
        return self._state.assets[key]

    async def approve(self, address: str) -> Receipt:
        record = self._state.require_asset(address, "approve")
        identity = self._state.require_identity("approve")
        wallet = identity.wallet_address

        if isinstance(record, FungibleAsset):
            intent = TransactionIntent(
                action=TxAction.APPROVE_FUNGIBLE,
                sender=wallet,
                contract=record.home_address,
                amount=self._config.max_approval,
                counterparty=self._escrow.address,
            )
        elif isinstance(record, NonFungibleAsset):
            intent = TransactionIntent(
                action=TxAction.APPROVE_NON_FUNGIBLE,
                sender=wallet,
                contract=record.home_address,
                counterparty=self._escrow.address,
            )
        else:
            assert_never(record)

        receipt = await submit(self._home, intent, "approve", record.home_address)

        current = self._state.require_asset(record.home_address, "approve")
        if not current.approved:
            self._state.replace_asset(replace(current, approved=True))
            logger.info("Approved %s for escrow %s", record.home_address, self._escrow.address)
        return receipt

    def expire_cache(self) -> None:
        for kind in AssetKind:
            self._cache.clear(kind)
        logger.info("Expired tracked asset cache")

    async def _load_record(self, address: str, kind: AssetKind, wallet: str) -> AssetRecord:
        spender = self._escrow.address
        if kind is AssetKind.FUNGIBLE:
            allowance, name, decimals, symbol = await asyncio.gather(
                read(self._home.fungible_allowance(address, wallet, spender), "register", address),
                read(self._home.fungible_name(address), "register", address),
                read(self._home.fungible_decimals(address), "register", address),
                read(self._home.fungible_symbol(address), "register", address),
            )
            return FungibleAsset(
                home_address=address,
                child_address=address,
                name=name,
                symbol=symbol,
                decimals=int(decimals),
                approved=int(allowance) >= self._config.max_approval,
            )
        elif kind is AssetKind.NON_FUNGIBLE:
            name, symbol, approved = await asyncio.gather(
                read(self._home.non_fungible_name(address), "register", address),
                read(self._home.non_fungible_symbol(address), "register", address),
                read(
                    self._home.non_fungible_operator_approved(address, wallet, spender),
                    "register",
                    address,
                ),
            )
            return NonFungibleAsset(
                home_address=address,
                child_address=address,
                name=name,
                symbol=symbol,
                approved=bool(approved),
            )
        else:
            assert_never(kind)

    def _remember(self, address: str, kind: AssetKind) -> None:
        cached = tuple(self._cache.load(kind))
        if address not in cached:
            self._cache.save(kind, cached + (address,))
