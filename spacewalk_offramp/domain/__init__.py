from .models import (
    Currency,
    FinalizationResult,
    ModuleErrorInfo,
    RawEvent,
    RedeemCall,
    RedeemExecution,
    RedeemRequest,
    SigningIdentity,
    VaultIdentity,
)

__all__ = [
    "Currency",
    "FinalizationResult",
    "ModuleErrorInfo",
    "RawEvent",
    "RedeemCall",
    "RedeemExecution",
    "RedeemRequest",
    "SigningIdentity",
    "VaultIdentity",
]
