"""Error taxonomy for the bridge engine."""

from typing import Optional


class BridgeError(RuntimeError):
    """Base class; carries the failing operation and asset address."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        address: Optional[str] = None,
    ) -> None:
        context = [part for part in (operation, address) if part]
        if context:
            message = f"{message} [{' '.join(context)}]"
        super().__init__(message)
        self.operation = operation
        self.address = address


class IdentityUnresolvedError(BridgeError):
    """Raised when wallet address and chain id have not been resolved."""


class NotAContractError(BridgeError):
    """Raised when an address carries no code on the home ledger."""


class AlreadyRegisteredError(BridgeError):
    """Raised when registering an address that is already tracked."""


class UnknownAssetError(BridgeError):
    """Raised when an operation targets an address that is not registered."""


class MissingTokenIdError(BridgeError):
    """Raised when a non-fungible claim is attempted without a token id."""


class TransactionFailedError(BridgeError):
    """Raised when a transaction fails to submit or to be included."""


class LedgerReadFailedError(BridgeError):
    """Raised when a ledger or escrow read fails."""
