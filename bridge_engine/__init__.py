from .balances import BalanceTracker
from .cache import CacheStore, FileCacheStore, MemoryCacheStore
from .change import ChangeDetector
from .config import MAX_UINT256, BridgeConfig
from .errors import (
    AlreadyRegisteredError,
    BridgeError,
    IdentityUnresolvedError,
    LedgerReadFailedError,
    MissingTokenIdError,
    NotAContractError,
    TransactionFailedError,
    UnknownAssetError,
)
from .ledger import EscrowReader, LedgerConnector, Receipt, TransactionIntent, TxAction
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
from .registry import AssetRegistry
from .state import BridgeState
from .sync import SyncController
from .transitions import TransitionOrchestrator

__all__ = [
    "AlreadyRegisteredError",
    "AssetKind",
    "AssetRecord",
    "AssetRegistry",
    "BalanceChannel",
    "BalanceTracker",
    "BalanceView",
    "BridgeConfig",
    "BridgeError",
    "BridgeState",
    "CacheStore",
    "ChangeDetector",
    "EscrowReader",
    "FileCacheStore",
    "FungibleAsset",
    "FungibleBalance",
    "Identity",
    "IdentityUnresolvedError",
    "LedgerConnector",
    "LedgerReadFailedError",
    "MAX_UINT256",
    "MemoryCacheStore",
    "MissingTokenIdError",
    "NativeBalance",
    "NonFungibleAsset",
    "NonFungibleBalance",
    "NotAContractError",
    "Receipt",
    "SyncController",
    "TransactionFailedError",
    "TransactionIntent",
    "TransitionOrchestrator",
    "TxAction",
    "UnknownAssetError",
]
