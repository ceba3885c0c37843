"""Bridge engine configuration."""

from dataclasses import dataclass
from typing import Mapping, Optional
import os

MAX_UINT256 = 2**256 - 1

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class BridgeConfig:
    auto_restore_cache: bool = True
    refresh_interval: Optional[float] = 15.0
    max_approval: int = MAX_UINT256
    native_decimals: int = 18

    def __post_init__(self) -> None:
        if self.refresh_interval is not None and self.refresh_interval <= 0:
            raise ValueError("refresh_interval must be positive or None.")
        if self.max_approval <= 0:
            raise ValueError("max_approval must be positive.")
        if self.native_decimals < 0:
            raise ValueError("native_decimals must be non-negative.")

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "BridgeConfig":
        env = os.environ if environ is None else environ
        defaults = BridgeConfig()

        auto_restore = defaults.auto_restore_cache
        raw_restore = env.get("BRIDGE_AUTO_RESTORE")
        if raw_restore is not None:
            auto_restore = _parse_bool(raw_restore, "BRIDGE_AUTO_RESTORE")

        interval = defaults.refresh_interval
        raw_interval = env.get("BRIDGE_REFRESH_INTERVAL")
        if raw_interval is not None:
            interval = None if raw_interval.strip() in ("", "0", "off") else float(raw_interval)

        decimals = int(env.get("BRIDGE_NATIVE_DECIMALS", defaults.native_decimals))

        return BridgeConfig(
            auto_restore_cache=auto_restore,
            refresh_interval=interval,
            native_decimals=decimals,
        )


def _parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {value!r}.")
