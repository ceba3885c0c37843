from .adapter import AdapterError, intent_to_payload
from .models import SimulatedFungible, SimulatedNonFungible, TxPayload
from .simulator import SimulatedBridge, SimulatedEscrow, SimulatedLedger, SimulationError

__all__ = [
    "AdapterError",
    "SimulatedBridge",
    "SimulatedEscrow",
    "SimulatedFungible",
    "SimulatedLedger",
    "SimulatedNonFungible",
    "SimulationError",
    "TxPayload",
    "intent_to_payload",
]
