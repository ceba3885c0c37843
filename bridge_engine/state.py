"""Owned state for one wallet identity.

Every mutation swaps in a whole new record or mapping, so readers holding a
reference always see a complete snapshot.
"""

from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .errors import AlreadyRegisteredError, IdentityUnresolvedError, UnknownAssetError
from .models import (
    AssetKind,
    AssetRecord,
    BalanceView,
    FungibleBalance,
    Identity,
    NativeBalance,
    NonFungibleBalance,
    normalize_address,
)


class BridgeState:
    def __init__(self) -> None:
        self._identity: Optional[Identity] = None
        self._assets: Mapping[str, AssetRecord] = MappingProxyType({})
        self._native = NativeBalance()
        self._fungible: Mapping[str, FungibleBalance] = MappingProxyType({})
        self._non_fungible: Mapping[str, NonFungibleBalance] = MappingProxyType({})

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def assets(self) -> Mapping[str, AssetRecord]:
        return self._assets

    @property
    def native(self) -> NativeBalance:
        return self._native

    @property
    def fungible_balances(self) -> Mapping[str, FungibleBalance]:
        return self._fungible

    @property
    def non_fungible_balances(self) -> Mapping[str, NonFungibleBalance]:
        return self._non_fungible

    def require_identity(self, operation: str) -> Identity:
        if self._identity is None:
            raise IdentityUnresolvedError("Wallet identity is not resolved.", operation)
        return self._identity

    def require_asset(self, address: str, operation: str) -> AssetRecord:
        key = normalize_address(address)
        record = self._assets.get(key)
        if record is None:
            raise UnknownAssetError("Asset is not registered.", operation, key)
        return record

    def assets_of_kind(self, kind: Optional[AssetKind] = None) -> Tuple[AssetRecord, ...]:
        return tuple(
            record for record in self._assets.values() if kind is None or record.kind == kind
        )

    def set_identity(self, identity: Identity) -> bool:
        """Install ``identity``; returns True when balances were invalidated."""
        previous = self._identity
        self._identity = identity
        if previous is not None and previous != identity:
            self.reset_balances()
            return True
        return False

    def insert_asset(self, record: AssetRecord, operation: str) -> None:
        if record.home_address in self._assets:
            raise AlreadyRegisteredError(
                "Asset is already registered.", operation, record.home_address
            )
        updated = dict(self._assets)
        updated[record.home_address] = record
        self._assets = MappingProxyType(updated)

    def replace_asset(self, record: AssetRecord) -> None:
        updated = dict(self._assets)
        updated[record.home_address] = record
        self._assets = MappingProxyType(updated)

    def replace_native(self, balance: NativeBalance) -> None:
        self._native = balance

    def replace_fungible_balances(self, balances: Mapping[str, FungibleBalance]) -> None:
        self._fungible = MappingProxyType(dict(balances))

    def replace_non_fungible_balances(
        self, balances: Mapping[str, NonFungibleBalance]
    ) -> None:
        self._non_fungible = MappingProxyType(dict(balances))

    def reset_balances(self) -> None:
        self._native = NativeBalance()
        self._fungible = MappingProxyType({})
        self._non_fungible = MappingProxyType({})

    def snapshot(self) -> BalanceView:
        return BalanceView(
            native=self._native,
            fungible=self._fungible,
            non_fungible=self._non_fungible,
        )
