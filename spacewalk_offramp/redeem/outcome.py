"""Classification of a finalized submission into a DispatchOutcome."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from spacewalk_offramp.domain.models import FinalizationResult, ModuleErrorInfo, RawEvent
from spacewalk_offramp.redeem.events import is_extrinsic_failed


@dataclass(frozen=True)
class DispatchSuccess:
    pass


@dataclass(frozen=True)
class ModuleFailure:
    section: str
    method: str
    name: str


@dataclass(frozen=True)
class ExtrinsicFailedUnknown:
    section: str
    method: str
    phase: str
    raw_data: Any


@dataclass(frozen=True)
class OpaqueFailure:
    description: str


DispatchOutcome = Union[DispatchSuccess, ModuleFailure, ExtrinsicFailedUnknown, OpaqueFailure]


def failed_event(events: Sequence[RawEvent]) -> RawEvent | None:
    return next((event for event in events if is_extrinsic_failed(event)), None)


def first_datum(data: Any) -> Any:
    if isinstance(data, Mapping):
        if "dispatch_error" in data:
            return data["dispatch_error"]
        return next(iter(data.values()), None)
    if isinstance(data, Sequence) and not isinstance(data, (str, bytes)) and data:
        return data[0]
    return None


def classify_dispatch(
    result: FinalizationResult,
    decode_module_error: Callable[[Any], ModuleErrorInfo],
) -> DispatchOutcome:
    failed = failed_event(result.events)
    error = result.dispatch_error
    if error is None and failed is not None:
        error = first_datum(failed.data)
    if error is None:
        if failed is None:
            return DispatchSuccess()
        return ExtrinsicFailedUnknown(
            section=failed.section, method=failed.method, phase=failed.phase, raw_data=failed.data
        )

    try:
        info = decode_module_error(error)
    except (ValueError, LookupError):
        info = None
    if info is not None:
        return ModuleFailure(section=info.section, method=info.method, name=info.name)

    if failed is not None:
        return ExtrinsicFailedUnknown(
            section=failed.section, method=failed.method, phase=failed.phase, raw_data=failed.data
        )
    return OpaqueFailure(description=repr(error))
