"""Permitted status transitions for transport requests, quotes and carrier requests."""

from enum import Enum

from common.errors import InvalidTransitionError
from models.carrier_request import CarrierRequestStatus
from models.quote import QuoteStatus
from models.transport_request import TransportRequestStatus

CARRIER_REQUEST_TRANSITIONS: dict[CarrierRequestStatus, frozenset[CarrierRequestStatus]] = {
    CarrierRequestStatus.NEW: frozenset({CarrierRequestStatus.SENT}),
    # SENT -> NEW only releases an invitation claim whose dispatch failed
    CarrierRequestStatus.SENT: frozenset({CarrierRequestStatus.OFFERED, CarrierRequestStatus.NEW}),
    CarrierRequestStatus.OFFERED: frozenset({CarrierRequestStatus.WON, CarrierRequestStatus.REJECTED}),
    CarrierRequestStatus.WON: frozenset(),
    CarrierRequestStatus.REJECTED: frozenset(),
}

QUOTE_TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.PENDING: frozenset({QuoteStatus.ACCEPTED, QuoteStatus.DECLINED, QuoteStatus.EXPIRED}),
    QuoteStatus.ACCEPTED: frozenset(),
    QuoteStatus.DECLINED: frozenset(),
    QuoteStatus.EXPIRED: frozenset(),
}

TRANSPORT_REQUEST_TRANSITIONS: dict[TransportRequestStatus, frozenset[TransportRequestStatus]] = {
    TransportRequestStatus.NEW: frozenset(
        {TransportRequestStatus.MATCHING, TransportRequestStatus.MATCHED, TransportRequestStatus.CANCELLED}
    ),
    TransportRequestStatus.MATCHING: frozenset(
        {TransportRequestStatus.NEW, TransportRequestStatus.MATCHED, TransportRequestStatus.CANCELLED}
    ),
    TransportRequestStatus.MATCHED: frozenset({TransportRequestStatus.IN_TRANSIT, TransportRequestStatus.CANCELLED}),
    TransportRequestStatus.IN_TRANSIT: frozenset({TransportRequestStatus.DELIVERED, TransportRequestStatus.CANCELLED}),
    TransportRequestStatus.DELIVERED: frozenset(),
    TransportRequestStatus.CANCELLED: frozenset(),
}

_TABLES: dict[type[Enum], tuple[str, dict]] = {
    CarrierRequestStatus: ("CarrierRequest", CARRIER_REQUEST_TRANSITIONS),
    QuoteStatus: ("Quote", QUOTE_TRANSITIONS),
    TransportRequestStatus: ("TransportRequest", TRANSPORT_REQUEST_TRANSITIONS),
}


def can_transition(current: Enum, target: Enum) -> bool:
    _, table = _TABLES[type(current)]
    return target in table[current]


def ensure_transition(current: Enum, target: Enum) -> None:
    """Raise InvalidTransitionError unless current -> target is permitted."""
    if not can_transition(current, target):
        entity, _ = _TABLES[type(current)]
        raise InvalidTransitionError(entity, current.value, target.value)


def is_terminal(status: Enum) -> bool:
    _, table = _TABLES[type(status)]
    return not table[status]
