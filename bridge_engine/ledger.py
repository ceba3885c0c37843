"""Interfaces consumed from ledger connectors and the escrow contract."""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Dict, Iterable, Optional, Protocol, TypeVar
import logging

from .errors import BridgeError, LedgerReadFailedError, TransactionFailedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TxAction(Enum):
    APPROVE_FUNGIBLE = "APPROVE_FUNGIBLE"
    APPROVE_NON_FUNGIBLE = "APPROVE_NON_FUNGIBLE"
    DEPOSIT_NATIVE = "DEPOSIT_NATIVE"
    DEPOSIT_FUNGIBLE = "DEPOSIT_FUNGIBLE"
    DEPOSIT_NON_FUNGIBLE = "DEPOSIT_NON_FUNGIBLE"
    WITHDRAW_NATIVE = "WITHDRAW_NATIVE"
    WITHDRAW_FUNGIBLE = "WITHDRAW_FUNGIBLE"
    WITHDRAW_NON_FUNGIBLE = "WITHDRAW_NON_FUNGIBLE"
    CLAIM_NATIVE = "CLAIM_NATIVE"
    CLAIM_FUNGIBLE = "CLAIM_FUNGIBLE"
    CLAIM_NON_FUNGIBLE = "CLAIM_NON_FUNGIBLE"


@dataclass(frozen=True)
class TransactionIntent:
    """What to submit; encoding and signing belong to the connector."""

    action: TxAction
    sender: str
    contract: Optional[str] = None
    amount: int = 0
    token_id: Optional[int] = None
    counterparty: Optional[str] = None


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    ledger: str
    action: TxAction
    block_number: int
    gas_used: int
    cost_wei: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "tx_hash": self.tx_hash,
            "ledger": self.ledger,
            "action": self.action.value,
            "block_number": self.block_number,
            "gas_used": self.gas_used,
            "cost_wei": self.cost_wei,
        }


class LedgerConnector(Protocol):
    name: str

    async def signer_address(self) -> str:
        ...

    async def chain_id(self) -> str:
        ...

    async def native_balance_of(self, address: str) -> int:
        ...

    async def fungible_balance_of(self, contract: str, owner: str) -> int:
        ...

    async def fungible_allowance(self, contract: str, owner: str, spender: str) -> int:
        ...

    async def fungible_decimals(self, contract: str) -> int:
        ...

    async def fungible_name(self, contract: str) -> str:
        ...

    async def fungible_symbol(self, contract: str) -> str:
        ...

    async def non_fungible_tokens_of(self, contract: str, owner: str) -> Iterable[int]:
        ...

    async def non_fungible_operator_approved(
        self, contract: str, owner: str, operator: str
    ) -> bool:
        ...

    async def non_fungible_name(self, contract: str) -> str:
        ...

    async def non_fungible_symbol(self, contract: str) -> str:
        ...

    async def code_at(self, address: str) -> bytes:
        ...

    async def submit_and_await(self, intent: TransactionIntent) -> Receipt:
        ...


class EscrowReader(Protocol):
    """Escrow reads; ``key`` is a chain id (aggregate) or a wallet (lockbox)."""

    address: str

    async def escrow_native_balance(self, key: str) -> int:
        ...

    async def escrow_fungible_balance(self, contract: str, key: str) -> int:
        ...

    async def escrow_non_fungible_tokens(self, contract: str, key: str) -> Iterable[int]:
        ...


async def read(
    call: Awaitable[T],
    operation: str,
    address: Optional[str] = None,
) -> T:
    try:
        return await call
    except BridgeError:
        raise
    except Exception as exc:
        raise LedgerReadFailedError(f"Ledger read failed: {exc}", operation, address) from exc


async def submit(
    ledger: LedgerConnector,
    intent: TransactionIntent,
    operation: str,
    address: Optional[str] = None,
) -> Receipt:
    logger.info("Submitting %s on %s", intent.action.value, ledger.name)
    try:
        receipt = await ledger.submit_and_await(intent)
    except TransactionFailedError as exc:
        if exc.operation is None:
            raise TransactionFailedError(str(exc), operation, address) from exc
        raise
    except BridgeError:
        raise
    except Exception as exc:
        raise TransactionFailedError(f"Transaction failed: {exc}", operation, address) from exc
    logger.info("Included %s as %s in block %d", intent.action.value, receipt.tx_hash, receipt.block_number)
    return receipt
