"""Local-first FastAPI shell for the asset bridge."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional, Union
import asyncio
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from bridge_engine.errors import (
    AlreadyRegisteredError,
    BridgeError,
    IdentityUnresolvedError,
    UnknownAssetError,
)
from bridge_engine.models import AssetKind
from bridge_engine.sync import SyncController

logger = logging.getLogger(__name__)

_CONTROLLER: Optional[SyncController] = None
_REFRESH_TASK: Optional[asyncio.Task] = None


@asynccontextmanager
async def _lifespan(app: FastAPI):
    global _REFRESH_TASK
    stop = asyncio.Event()
    task = None
    controller = _CONTROLLER
    if controller is not None and controller.config.refresh_interval is not None:
        task = asyncio.create_task(controller.run_periodic(stop), name="bridge.periodic_refresh")
        _REFRESH_TASK = task
        logger.info("Periodic reconciliation every %ss", controller.config.refresh_interval)
    try:
        yield
    finally:
        stop.set()
        if task is not None:
            completed = await task
            logger.info("Periodic reconciliation stopped after %d cycles", completed)


app = FastAPI(title="Asset Bridge", description="Local-first bridge shell", lifespan=_lifespan)


class RegisterRequest(BaseModel):
    address: str
    kind: str


class AmountRequest(BaseModel):
    amount: Union[str, int]


class ClaimRequest(BaseModel):
    token_id: Optional[Union[str, int]] = None


@app.middleware("http")
async def _local_only(request: Request, call_next):
    client = request.client
    if client is not None:
        host = client.host
        if host not in {"127.0.0.1", "::1", "testclient"}:
            return JSONResponse({"error": "Remote access disabled."}, status_code=403)
    return await call_next(request)


def _error_handler(status_code: int):
    async def handle(request: Request, exc: Exception):
        return JSONResponse({"error": str(exc)}, status_code=status_code)

    return handle


app.add_exception_handler(UnknownAssetError, _error_handler(404))
app.add_exception_handler(AlreadyRegisteredError, _error_handler(409))
app.add_exception_handler(IdentityUnresolvedError, _error_handler(409))
app.add_exception_handler(BridgeError, _error_handler(400))
app.add_exception_handler(ValueError, _error_handler(400))


@app.post("/api/sync/start")
async def start_sync():
    controller = _require_controller()
    await controller.start()
    return _balances_payload(controller)


@app.post("/api/sync/reconnect")
async def reconnect():
    controller = _require_controller()
    identity = await controller.reconnect()
    return {"wallet_address": identity.wallet_address, "chain_id": identity.chain_id}


@app.get("/api/identity")
async def identity():
    controller = _require_controller()
    return {"wallet_address": controller.wallet_address, "chain_id": controller.chain_id}


@app.get("/api/balances")
async def balances():
    return _balances_payload(_require_controller())


@app.post("/api/balances/refresh")
async def refresh_balances():
    controller = _require_controller()
    await controller.refresh_all()
    return _balances_payload(controller)


@app.get("/api/tokens")
async def list_tokens():
    controller = _require_controller()
    return {
        "tokens": [record.to_dict() for record in controller.registry.assets.values()],
    }


@app.post("/api/tokens")
async def register_token(payload: RegisterRequest):
    controller = _require_controller()
    record = await controller.transitions.register(payload.address, AssetKind.parse(payload.kind))
    return record.to_dict()


@app.post("/api/tokens/{address}/approve")
async def approve_token(address: str):
    controller = _require_controller()
    receipt = await controller.transitions.approve(address)
    return {
        "receipt": receipt.to_dict(),
        "token": controller.registry.get(address).to_dict(),
    }


@app.post("/api/tokens/{address}/deposit")
async def deposit_token(address: str, payload: AmountRequest):
    controller = _require_controller()
    receipt = await controller.transitions.deposit_asset(address, payload.amount)
    return {"receipt": receipt.to_dict()}


@app.post("/api/tokens/{address}/withdraw")
async def withdraw_token(address: str, payload: AmountRequest):
    controller = _require_controller()
    receipt = await controller.transitions.withdraw_asset(address, payload.amount)
    return {"receipt": receipt.to_dict()}


@app.post("/api/tokens/{address}/claim")
async def claim_token(address: str, payload: ClaimRequest):
    controller = _require_controller()
    receipt = await controller.transitions.claim_asset_lockbox(address, payload.token_id)
    return {"receipt": receipt.to_dict()}


@app.post("/api/native/deposit")
async def deposit_native(payload: AmountRequest):
    controller = _require_controller()
    receipt = await controller.transitions.deposit_native(payload.amount)
    return {"receipt": receipt.to_dict(), "native": controller.balances.view().native.to_dict()}


@app.post("/api/native/withdraw")
async def withdraw_native(payload: AmountRequest):
    controller = _require_controller()
    receipt = await controller.transitions.withdraw_native(payload.amount)
    return {"receipt": receipt.to_dict(), "native": controller.balances.view().native.to_dict()}


@app.post("/api/native/claim")
async def claim_native():
    controller = _require_controller()
    receipt = await controller.transitions.claim_native_lockbox()
    return {"receipt": receipt.to_dict(), "native": controller.balances.view().native.to_dict()}


@app.get("/api/cache")
async def show_cache():
    controller = _require_controller()
    return {kind.value: list(controller.registry.cached_addresses(kind)) for kind in AssetKind}


@app.delete("/api/cache")
async def expire_cache():
    controller = _require_controller()
    controller.expire_cache()
    return {"status": "expired"}


def _require_controller() -> SyncController:
    if _CONTROLLER is None:
        raise HTTPException(status_code=503, detail="Bridge is not configured.")
    return _CONTROLLER


def _balances_payload(controller: SyncController) -> dict:
    return {
        "wallet_address": controller.wallet_address,
        "chain_id": controller.chain_id,
        "balances": controller.balances.view().to_dict(),
    }


def configure(controller: SyncController) -> None:
    global _CONTROLLER
    _CONTROLLER = controller


def _reset_state() -> None:
    global _CONTROLLER, _REFRESH_TASK
    _CONTROLLER = None
    _REFRESH_TASK = None
