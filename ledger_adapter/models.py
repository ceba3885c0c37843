"""Simulated ledger models for unsigned payloads and contract state."""

from dataclasses import dataclass, field
from typing import Dict, Set


@dataclass(frozen=True)
class TxPayload:
    ledger: str
    to_address: str
    data: str
    value_wei: int


@dataclass
class SimulatedFungible:
    name: str
    symbol: str
    decimals: int
    balances: Dict[str, int] = field(default_factory=dict)
    allowances: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(owner, {}).get(spender, 0)

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "balances": dict(self.balances),
            "allowances": {owner: dict(spenders) for owner, spenders in self.allowances.items()},
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "SimulatedFungible":
        return SimulatedFungible(
            name=data["name"],
            symbol=data["symbol"],
            decimals=int(data["decimals"]),
            balances={owner: int(value) for owner, value in data.get("balances", {}).items()},
            allowances={
                owner: {spender: int(value) for spender, value in spenders.items()}
                for owner, spenders in data.get("allowances", {}).items()
            },
        )


@dataclass
class SimulatedNonFungible:
    name: str
    symbol: str
    owners: Dict[int, str] = field(default_factory=dict)
    operators: Dict[str, Set[str]] = field(default_factory=dict)

    def tokens_of(self, owner: str) -> Set[int]:
        return {token_id for token_id, holder in self.owners.items() if holder == owner}

    def is_operator(self, owner: str, operator: str) -> bool:
        return operator in self.operators.get(owner, set())

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "owners": {str(token_id): owner for token_id, owner in sorted(self.owners.items())},
            "operators": {owner: sorted(ops) for owner, ops in self.operators.items()},
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "SimulatedNonFungible":
        return SimulatedNonFungible(
            name=data["name"],
            symbol=data["symbol"],
            owners={int(token_id): owner for token_id, owner in data.get("owners", {}).items()},
            operators={owner: set(ops) for owner, ops in data.get("operators", {}).items()},
        )
