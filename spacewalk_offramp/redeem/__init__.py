from .correlator import EventCorrelator, PendingWaiter
from .outcome import (
    DispatchOutcome,
    DispatchSuccess,
    ExtrinsicFailedUnknown,
    ModuleFailure,
    OpaqueFailure,
    classify_dispatch,
)
from .requester import RedeemRequester
from .serializer import SlotToken, SubmissionSerializer

__all__ = [
    "DispatchOutcome",
    "DispatchSuccess",
    "EventCorrelator",
    "ExtrinsicFailedUnknown",
    "ModuleFailure",
    "OpaqueFailure",
    "PendingWaiter",
    "RedeemRequester",
    "SlotToken",
    "SubmissionSerializer",
    "classify_dispatch",
]
