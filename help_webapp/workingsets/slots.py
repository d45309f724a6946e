from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

from .models import StoreWarning, StoreWarningKind

logger = logging.getLogger(__name__)

HEADER_SEPARATOR = "<"
DEFAULT_TTL = 5 * 365 * 24 * 60 * 60


@dataclass
class SlotLimits:
    """
    Capacity of the slot medium. A browser accepts about 20 cookies per domain
    and the servlet connector refuses header lines over 4096 bytes, so one
    cookie must hold its name, the slot-1 length header and the payload.
    """

    max_slots: int = 15
    slot_capacity: int = 4096
    slot_name_prefix: str = "wset"
    ttl: int = DEFAULT_TTL
    max_payload: Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_slots <= 0:
            raise ValueError(f"max_slots must be positive, got {self.max_slots}")
        if self.max_payload is None:
            # The largest declared length is below max_slots * slot_capacity.
            header = len(str(self.max_slots * self.slot_capacity) + HEADER_SEPARATOR)
            framing = len(f"{self.slot_name_prefix}{self.max_slots:02d}=") + header + 1
            self.max_payload = self.slot_capacity - framing
        if self.max_payload <= 0:
            raise ValueError(f"Slot capacity {self.slot_capacity} leaves no room for payload")


class SlotTransport(Protocol):
    def read_slot(self, index: int) -> Optional[str]:
        ...

    def write_slot(self, index: int, payload: str, ttl: int) -> None:
        ...

    def expire_slot(self, index: int) -> None:
        ...


class InMemorySlotTransport:
    """
    Dict-backed slots for tests and scripts. Keeps a log of writes and
    expirations so callers can check the order slots were touched in.
    """

    def __init__(self, slots: Optional[Dict[int, str]] = None):
        self.slots: Dict[int, str] = dict(slots or {})
        self.history: List[Tuple[str, int]] = []

    def read_slot(self, index: int) -> Optional[str]:
        return self.slots.get(index)

    def write_slot(self, index: int, payload: str, ttl: int) -> None:
        self.slots[index] = payload
        self.history.append(("write", index))

    def expire_slot(self, index: int) -> None:
        self.slots.pop(index, None)
        self.history.append(("expire", index))


class CookieSlotTransport:
    """
    Slots stored as browser cookies named ``<prefix><index>``. Reads come from
    the incoming request, writes go to the outgoing response. Slots written or
    expired during this request shadow the request cookies.
    """

    def __init__(self, request, response, prefix: str = "wset", path: str = "/"):
        self.request = request
        self.response = response
        self.prefix = prefix
        self.path = path
        self._pending: Dict[int, Optional[str]] = {}

    def _name(self, index: int) -> str:
        return f"{self.prefix}{index}"

    def read_slot(self, index: int) -> Optional[str]:
        if index in self._pending:
            return self._pending[index]
        return self.request.cookies.get(self._name(index))

    def write_slot(self, index: int, payload: str, ttl: int) -> None:
        self.response.set_cookie(self._name(index), payload, max_age=ttl, path=self.path)
        self._pending[index] = payload

    def expire_slot(self, index: int) -> None:
        self.response.delete_cookie(self._name(index), path=self.path)
        self._pending[index] = None


def slots_required(length: int, max_payload: int) -> int:
    return -(-length // max_payload)


def split_into_slots(data: str, max_payload: int) -> List[str]:
    """
    Split data into slot payloads. The first payload is prefixed with the
    total data length and the header separator; the header does not count
    against max_payload.
    """
    length = len(data)
    payloads = []
    for i in range(slots_required(length, max_payload)):
        chunk = data[i * max_payload : (i + 1) * max_payload]
        if i == 0:
            chunk = f"{length}{HEADER_SEPARATOR}{chunk}"
        payloads.append(chunk)
    return payloads


def parse_header(payload: str) -> Tuple[int, str]:
    length_str, sep, first_chunk = payload.partition(HEADER_SEPARATOR)
    if not sep:
        raise ValueError(f"Missing {HEADER_SEPARATOR!r} in slot header")
    if not (length_str.isascii() and length_str.isdigit()):
        raise ValueError(f"Declared length must be a decimal number, got {length_str!r}")
    length = int(length_str)
    if length <= 0:
        raise ValueError(f"Declared length must be positive, got {length}")
    return length, first_chunk


@dataclass
class ChunkedSlotStore:
    """
    Stores one string across numbered slots: slot 1 holds ``<len><chunk``,
    slots 2..N hold the following chunks. Writes are all-or-nothing and
    stale slots beyond the new count are expired.
    """

    transport: SlotTransport
    limits: SlotLimits = field(default_factory=SlotLimits)
    warnings: List[StoreWarning] = field(default_factory=list)

    def _warn(self, kind: StoreWarningKind, message: str, detail: Optional[str] = None) -> None:
        logger.warning("%s: %s", kind.value, message)
        self.warnings.append(StoreWarning(kind=kind, message=message, detail=detail))

    def write_string(self, data: str) -> bool:
        max_payload = self.limits.max_payload
        needed = slots_required(len(data), max_payload)
        if needed > self.limits.max_slots:
            self._warn(
                StoreWarningKind.CAPACITY_EXCEEDED,
                f"State of {len(data)} characters needs {needed} slots, "
                f"only {self.limits.max_slots} available; not saved",
            )
            return False

        payloads = split_into_slots(data, max_payload)
        for index, payload in enumerate(payloads, start=1):
            logger.debug("Writing slot %s (%s chars)", index, len(payload))
            self.transport.write_slot(index, payload, self.limits.ttl)
        for index in range(len(payloads) + 1, self.limits.max_slots + 1):
            self.transport.expire_slot(index)
        return True

    def read_string(self) -> Optional[str]:
        first = self.transport.read_slot(1)
        if first is None:
            return None
        try:
            length, first_chunk = parse_header(first)
        except ValueError as exc:
            self._warn(StoreWarningKind.MALFORMED_HEADER, f"Ignoring stored state: {exc}", first[:32])
            return None

        parts = [first_chunk]
        needed = min(slots_required(length, self.limits.max_payload), self.limits.max_slots)
        for index in range(2, needed + 1):
            chunk = self.transport.read_slot(index)
            if chunk is None:
                self._warn(
                    StoreWarningKind.MISSING_SLOT,
                    f"Slot {index} of {needed} is missing; ignoring stored state",
                )
                return None
            parts.append(chunk)

        data = "".join(parts)
        if len(data) != length:
            self._warn(
                StoreWarningKind.LENGTH_MISMATCH,
                f"Verification error: data length is {len(data)} instead of {length}",
            )
            data = data[:length]
        return data
