# tests/unit/test_asn_state.py
from __future__ import annotations

import pytest

from app.core.actor import Actor
from app.models.asn import AsnLine
from app.models.enums import AsnStatus, Role
from app.services.asn_state import (
    EDITABLE,
    PROCESSABLE,
    TERMINAL,
    TRANSITIONS,
    can_transition,
    process_status,
    receive_status,
)


def _line(qty: int, received: int, processed: int) -> AsnLine:
    return AsnLine(quantity=qty, received_quantity=received, processed_quantity=processed)


def test_every_status_has_a_transition_entry():
    assert set(TRANSITIONS) == set(AsnStatus)


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        ("draft", "confirmed", True),
        ("draft", "arrived", False),
        ("confirmed", "in_transit", True),
        ("in_transit", "arrived", True),
        ("arrived", "receiving", True),
        ("arrived", "completed", True),
        ("receiving", "completed", True),
        ("receiving", "arrived", False),
        ("completed", "cancelled", False),
        ("cancelled", "draft", False),
        ("in_transit", "cancelled", True),
    ],
)
def test_can_transition(current: str, target: str, allowed: bool):
    assert can_transition(current, target) is allowed


def test_status_groups():
    assert TERMINAL == {AsnStatus.COMPLETED, AsnStatus.CANCELLED}
    assert EDITABLE == {AsnStatus.DRAFT, AsnStatus.CONFIRMED}
    assert PROCESSABLE == {AsnStatus.ARRIVED, AsnStatus.RECEIVING}


@pytest.mark.parametrize(
    "qty,received,processed,recv,proc",
    [
        (10, 0, 0, "pending", "not_processed"),
        (10, 4, 0, "partial", "partial_processed"),
        (10, 4, 4, "partial", "fully_processed"),
        (10, 10, 3, "complete", "partial_processed"),
        (10, 10, 10, "complete", "fully_processed"),
    ],
)
def test_derived_line_statuses(qty, received, processed, recv, proc):
    line = _line(qty, received, processed)
    assert receive_status(line).value == recv
    assert process_status(line).value == proc
    assert line.unprocessed_quantity == received - processed


def test_actor_role_levels():
    supervisor = Actor(user_id=1, role=Role.SUPERVISOR)
    assert supervisor.has(Role.OPERATOR)
    assert supervisor.has("supervisor")
    assert not supervisor.has(Role.MANAGER)
    assert Actor(user_id=None).has(Role.VIEWER)
    assert not Actor(user_id=None).has(Role.OPERATOR)
