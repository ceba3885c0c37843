"""Domain models for the bridge engine."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Union


class AssetKind(Enum):
    FUNGIBLE = "fungible"
    NON_FUNGIBLE = "non_fungible"

    @staticmethod
    def parse(value: str) -> "AssetKind":
        """Accept `fungible`, `non-fungible` or `non_fungible`, any case."""
        normalized = value.strip().lower().replace("-", "_")
        for kind in AssetKind:
            if kind.value == normalized:
                return kind
        raise ValueError(f"Unsupported asset kind: {value}")


class BalanceChannel(Enum):
    NATIVE = "native"
    FUNGIBLE = "fungible"
    NON_FUNGIBLE = "non_fungible"


def normalize_address(address: str) -> str:
    return address.strip().lower()


@dataclass(frozen=True)
class Identity:
    """Active wallet and the child chain it bridges to."""

    wallet_address: str
    chain_id: str


@dataclass(frozen=True)
class NativeBalance:
    home_balance: int = 0
    child_balance: int = 0
    total_escrowed: int = 0
    lockbox_balance: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "home_balance": self.home_balance,
            "child_balance": self.child_balance,
            "total_escrowed": self.total_escrowed,
            "lockbox_balance": self.lockbox_balance,
        }


@dataclass(frozen=True)
class FungibleBalance:
    home_balance: int = 0
    child_balance: int = 0
    total_escrowed: int = 0
    lockbox_balance: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "home_balance": self.home_balance,
            "child_balance": self.child_balance,
            "total_escrowed": self.total_escrowed,
            "lockbox_balance": self.lockbox_balance,
        }


@dataclass(frozen=True)
class NonFungibleBalance:
    """Token id sets; equality ignores ordering."""

    home_tokens: FrozenSet[int] = frozenset()
    child_tokens: FrozenSet[int] = frozenset()
    total_escrowed_tokens: FrozenSet[int] = frozenset()
    lockbox_tokens: FrozenSet[int] = frozenset()

    def to_dict(self) -> Dict[str, list]:
        return {
            "home_tokens": sorted(self.home_tokens),
            "child_tokens": sorted(self.child_tokens),
            "total_escrowed_tokens": sorted(self.total_escrowed_tokens),
            "lockbox_tokens": sorted(self.lockbox_tokens),
        }


@dataclass(frozen=True)
class FungibleAsset:
    home_address: str
    child_address: str
    name: str
    symbol: str
    decimals: int
    approved: bool = False

    @property
    def kind(self) -> AssetKind:
        return AssetKind.FUNGIBLE

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "home_address": self.home_address,
            "child_address": self.child_address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "approved": self.approved,
        }


@dataclass(frozen=True)
class NonFungibleAsset:
    home_address: str
    child_address: str
    name: str
    symbol: str
    approved: bool = False

    @property
    def kind(self) -> AssetKind:
        return AssetKind.NON_FUNGIBLE

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "home_address": self.home_address,
            "child_address": self.child_address,
            "name": self.name,
            "symbol": self.symbol,
            "approved": self.approved,
        }


AssetRecord = Union[FungibleAsset, NonFungibleAsset]


@dataclass(frozen=True)
class BalanceView:
    """Point-in-time snapshot of every published balance."""

    native: NativeBalance = field(default_factory=NativeBalance)
    fungible: Mapping[str, FungibleBalance] = field(default_factory=lambda: MappingProxyType({}))
    non_fungible: Mapping[str, NonFungibleBalance] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def to_dict(self) -> Dict[str, object]:
        return {
            "native": self.native.to_dict(),
            "fungible": {
                address: balance.to_dict() for address, balance in sorted(self.fungible.items())
            },
            "non_fungible": {
                address: balance.to_dict()
                for address, balance in sorted(self.non_fungible.items())
            },
        }
