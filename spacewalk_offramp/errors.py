from __future__ import annotations

from typing import Any


class CoordinatorError(RuntimeError):
    """Base class for every failure raised by the redeem coordinator."""


class SubmissionError(CoordinatorError):
    """The chain connection failed while the request was being submitted."""


class DispatchError(CoordinatorError):
    """The request was finalized but the runtime rejected it."""


class ModuleDispatchError(DispatchError):
    def __init__(self, section: str, method: str, name: str, *, call: str = ""):
        self.section = section
        self.method = method
        self.name = name
        self.call = call
        super().__init__(f"Dispatch error: {section}.{method}:: {name}")


class UnknownDispatchError(DispatchError):
    def __init__(
        self,
        message: str,
        *,
        phase: str | None = None,
        section: str | None = None,
        method: str | None = None,
        raw_data_len: int | None = None,
    ):
        self.phase = phase
        self.section = section
        self.method = method
        self.raw_data_len = raw_data_len
        super().__init__(message)

    def context(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "section": self.section,
            "method": self.method,
            "raw_data_len": self.raw_data_len,
        }


class CorrelationNotFound(CoordinatorError):
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"No redeem event found for account {address}")


class WaitTimeoutError(CoordinatorError, TimeoutError):
    def __init__(self, waited_ms: int, *, what: str = "event", redeem_id: str | None = None):
        self.waited_ms = waited_ms
        self.what = what
        self.redeem_id = redeem_id
        suffix = f" {redeem_id}" if redeem_id else ""
        super().__init__(f"Max waiting time exceeded for {what}{suffix} after {waited_ms}ms")


class InvalidAssetShape(CoordinatorError, ValueError):
    """Wrapped asset is neither StellarNative, AlphaNum4 nor AlphaNum12."""
