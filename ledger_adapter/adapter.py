"""Translate transaction intents into unsigned payloads."""

from typing import Dict

from bridge_engine.ledger import TransactionIntent, TxAction

from .models import TxPayload


class AdapterError(ValueError):
    """Raised when an intent cannot be adapted to a payload."""


CHILD_SYSTEM_ADDRESS = "0x0000000000000000000000000000000000000064"

_ACTION_TO_METHOD: Dict[TxAction, str] = {
    TxAction.APPROVE_FUNGIBLE: "approve",
    TxAction.APPROVE_NON_FUNGIBLE: "setApprovalForAll",
    TxAction.DEPOSIT_NATIVE: "depositEth",
    TxAction.DEPOSIT_FUNGIBLE: "depositERC20",
    TxAction.DEPOSIT_NON_FUNGIBLE: "depositERC721",
    TxAction.WITHDRAW_NATIVE: "withdrawEth",
    TxAction.WITHDRAW_FUNGIBLE: "withdraw",
    TxAction.WITHDRAW_NON_FUNGIBLE: "withdraw",
    TxAction.CLAIM_NATIVE: "withdrawEth",
    TxAction.CLAIM_FUNGIBLE: "withdrawERC20",
    TxAction.CLAIM_NON_FUNGIBLE: "withdrawERC721",
}

_CONTRACT_ACTIONS = {
    TxAction.APPROVE_FUNGIBLE,
    TxAction.APPROVE_NON_FUNGIBLE,
    TxAction.DEPOSIT_FUNGIBLE,
    TxAction.DEPOSIT_NON_FUNGIBLE,
    TxAction.WITHDRAW_FUNGIBLE,
    TxAction.WITHDRAW_NON_FUNGIBLE,
    TxAction.CLAIM_FUNGIBLE,
    TxAction.CLAIM_NON_FUNGIBLE,
}

_TOKEN_ID_ACTIONS = {
    TxAction.DEPOSIT_NON_FUNGIBLE,
    TxAction.WITHDRAW_NON_FUNGIBLE,
    TxAction.CLAIM_NON_FUNGIBLE,
}


def intent_to_payload(intent: TransactionIntent, ledger: str, escrow_address: str) -> TxPayload:
    _validate_intent(intent)

    return TxPayload(
        ledger=ledger,
        to_address=_target_address(intent, escrow_address),
        data=_encode_intent_data(intent),
        value_wei=intent.amount if intent.action == TxAction.DEPOSIT_NATIVE else 0,
    )


def _validate_intent(intent: TransactionIntent) -> None:
    if intent.action not in _ACTION_TO_METHOD:
        raise AdapterError(f"Unsupported action: {intent.action}")
    if not intent.sender:
        raise AdapterError("Intent must name a sender.")
    if intent.amount < 0:
        raise AdapterError("Intent amount must be non-negative.")
    if intent.action in _CONTRACT_ACTIONS and not intent.contract:
        raise AdapterError(f"{intent.action.value} requires a contract address.")
    if intent.action in _TOKEN_ID_ACTIONS and intent.token_id is None:
        raise AdapterError(f"{intent.action.value} requires a token id.")


def _target_address(intent: TransactionIntent, escrow_address: str) -> str:
    if intent.action in (
        TxAction.APPROVE_FUNGIBLE,
        TxAction.APPROVE_NON_FUNGIBLE,
        TxAction.WITHDRAW_FUNGIBLE,
        TxAction.WITHDRAW_NON_FUNGIBLE,
    ):
        return intent.contract
    if intent.action == TxAction.WITHDRAW_NATIVE:
        return CHILD_SYSTEM_ADDRESS
    return escrow_address


def _encode_intent_data(intent: TransactionIntent) -> str:
    fields = [_ACTION_TO_METHOD[intent.action]]
    if intent.counterparty:
        fields.append(intent.counterparty)
    if intent.contract:
        fields.append(intent.contract)
    if intent.token_id is not None:
        fields.append(str(intent.token_id))
    elif intent.amount:
        fields.append(str(intent.amount))
    return _to_hex("|".join(fields).encode("ascii"))


def _to_hex(data: bytes) -> str:
    return "0x" + data.hex()
