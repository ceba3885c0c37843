"""Top-level driver wiring identity, registry, balances and transitions."""

from typing import List, Optional
import asyncio
import logging

from .balances import BalanceTracker
from .cache import CacheStore
from .change import ChangeDetector
from .config import BridgeConfig
from .errors import BridgeError
from .ledger import EscrowReader, LedgerConnector, read
from .models import AssetKind, AssetRecord, BalanceView, Identity, normalize_address
from .registry import AssetRegistry
from .state import BridgeState
from .transitions import TransitionOrchestrator

logger = logging.getLogger(__name__)


class SyncController:
    """Owns the state of one wallet identity and drives reconciliation.

    Startup order is: resolve identity, replay the cache (when enabled), then
    one full reconciliation. Later reconciliations run on demand through
    :meth:`refresh_all` or on a timer through :meth:`run_periodic`.
    """

    def __init__(
        self,
        home: LedgerConnector,
        child: LedgerConnector,
        escrow: EscrowReader,
        cache: CacheStore,
        config: Optional[BridgeConfig] = None,
    ) -> None:
        self._config = config or BridgeConfig()
        self._child = child
        self._cache = cache
        self._state = BridgeState()
        self._resolve_lock = asyncio.Lock()
        self.balances = BalanceTracker(self._state, home, child, escrow, ChangeDetector())
        self.registry = AssetRegistry(
            self._state, home, escrow, cache, self.balances, self._config
        )
        self.transitions = TransitionOrchestrator(
            self._state, self.registry, self.balances, home, child, self._config
        )

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def identity(self) -> Optional[Identity]:
        return self._state.identity

    @property
    def wallet_address(self) -> Optional[str]:
        identity = self._state.identity
        return identity.wallet_address if identity else None

    @property
    def chain_id(self) -> Optional[str]:
        identity = self._state.identity
        return identity.chain_id if identity else None

    async def resolve_identity(self) -> Identity:
        async with self._resolve_lock:
            if self._state.identity is not None:
                return self._state.identity
            return await self._resolve()

    async def reconnect(self) -> Identity:
        """Re-resolve after the wallet or chain connection changed."""
        async with self._resolve_lock:
            return await self._resolve()

    async def restore_cache(self) -> List[AssetRecord]:
        restored = []
        for kind in AssetKind:
            for address in self._cache.load(kind):
                key = normalize_address(address)
                tracked_before = key in self._state.assets
                try:
                    restored.append(await self.registry.register(address, kind))
                except (BridgeError, ValueError) as exc:
                    record = self._state.assets.get(key)
                    if record is None or tracked_before:
                        logger.warning("Skipping cached %s asset %s: %s", kind.value, address, exc)
                        continue
                    # Registered, but the initial balance refresh failed.
                    restored.append(record)
                    logger.warning(
                        "Restored cached %s asset %s without balances: %s", kind.value, address, exc
                    )
        logger.info("Restored %d cached assets", len(restored))
        return restored

    async def start(self) -> BalanceView:
        await self.resolve_identity()
        if self._config.auto_restore_cache:
            await self.restore_cache()
        return await self.refresh_all()

    async def refresh_all(self) -> BalanceView:
        return await self.balances.refresh_all()

    def expire_cache(self) -> None:
        self.registry.expire_cache()

    async def run_periodic(
        self, stop: asyncio.Event, interval: Optional[float] = None
    ) -> int:
        """Reconcile every ``interval`` seconds until ``stop`` is set.

        Until an identity has been resolved each cycle runs :meth:`start`
        instead of a bare refresh. A failed cycle is logged and the loop
        carries on; the previously published balances stay authoritative.
        Returns the number of cycles that completed.
        """
        period = interval if interval is not None else self._config.refresh_interval
        if period is None:
            raise ValueError("Periodic reconciliation is disabled.")

        completed = 0
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=period)
                break
            except asyncio.TimeoutError:
                pass
            try:
                if self._state.identity is None:
                    await self.start()
                else:
                    await self.refresh_all()
                completed += 1
            except BridgeError as exc:
                logger.warning("Reconciliation cycle failed: %s", exc)
        return completed

    async def _resolve(self) -> Identity:
        wallet, chain_id = await asyncio.gather(
            read(self._child.signer_address(), "resolve_identity"),
            read(self._child.chain_id(), "resolve_identity"),
        )
        identity = Identity(wallet_address=normalize_address(wallet), chain_id=str(chain_id))
        if self._state.set_identity(identity):
            logger.info("Identity changed; balance state invalidated")
        logger.info("Resolved identity %s on chain %s", identity.wallet_address, identity.chain_id)
        return identity
