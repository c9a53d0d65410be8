from __future__ import annotations

import pytest

from coreops.control.rods import RodCatalogue, RodDirection, RodSequencer
from coreops.core.errors import ConfigurationError


def _catalogue(*ids: str) -> RodCatalogue:
    cat = RodCatalogue()
    for rod_id in ids:
        cat.register(rod_id)
    return cat


def test_insert_saturates_first_group_then_moves_to_next() -> None:
    cat = _catalogue("P", "R5")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["P", "R5"], [50.0, 100.0])
    move = seq.apply(RodDirection.INSERT, 120.0, {"P": 381.0, "R5": 381.0})
    assert move.positions["P"] == pytest.approx(331.0)
    assert move.positions["R5"] == pytest.approx(311.0)
    assert move.displacements["R5"] == pytest.approx(70.0)
    assert move.undistributed == 0.0
    assert move.total_displacement == pytest.approx(120.0)


def test_unreachable_magnitude_is_returned_not_raised() -> None:
    cat = _catalogue("P", "R5")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["P", "R5"], [50.0, 100.0])
    move = seq.apply(RodDirection.INSERT, 500.0, {"P": 381.0, "R5": 381.0})
    assert move.positions == pytest.approx({"P": 331.0, "R5": 281.0})
    assert move.undistributed == pytest.approx(350.0)
    assert move.total_displacement <= 500.0


def test_withdraw_limit_is_measured_from_bottom() -> None:
    cat = _catalogue("P")
    seq = RodSequencer(cat)
    seq.set_withdraw_sequence(["P"], [100.0])
    move = seq.apply(RodDirection.WITHDRAW, 200.0, {"P": 0.0})
    assert move.positions["P"] == pytest.approx(100.0)
    assert move.undistributed == pytest.approx(100.0)


def test_group_missing_from_direction_does_not_move() -> None:
    cat = _catalogue("P", "R5")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["P"], [381.0])
    move = seq.apply(RodDirection.INSERT, 50.0, {"P": 381.0, "R5": 381.0})
    assert move.positions["R5"] == 381.0
    assert move.positions["P"] == pytest.approx(331.0)
    # nothing configured for withdrawal
    out = seq.apply(RodDirection.WITHDRAW, 50.0, {"P": 100.0, "R5": 100.0})
    assert out.positions == {"P": 100.0, "R5": 100.0}
    assert out.undistributed == pytest.approx(50.0)


def test_overlap_partner_follows_and_is_charged() -> None:
    cat = RodCatalogue()
    cat.register("A", overlap="B")
    cat.register("B")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["A", "B"], [381.0, 381.0])
    move = seq.apply(RodDirection.INSERT, 100.0, {"A": 381.0, "B": 381.0})
    assert move.positions["A"] == pytest.approx(331.0)
    assert move.positions["B"] == pytest.approx(331.0)
    assert move.total_displacement == pytest.approx(100.0)
    assert move.undistributed == 0.0


def test_overlap_partner_stops_at_its_floor() -> None:
    cat = RodCatalogue()
    cat.register("A", overlap="B")
    cat.register("B")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["A", "B"], [381.0, 381.0])
    move = seq.apply(RodDirection.INSERT, 200.0, {"A": 381.0, "B": 381.0}, floors={"B": 350.0})
    # joint leg of 31 cm each, then A alone for the remaining 138 cm
    assert move.positions["B"] == pytest.approx(350.0)
    assert move.positions["A"] == pytest.approx(212.0)
    assert move.undistributed == 0.0
    assert seq.remaining_travel(RodDirection.INSERT, move.positions, floors={"B": 350.0}) == pytest.approx(212.0)


def test_overlap_partner_keeps_its_own_limit() -> None:
    cat = RodCatalogue()
    cat.register("A", overlap="B")
    cat.register("B")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["A", "B"], [381.0, 20.0])
    move = seq.apply(RodDirection.INSERT, 100.0, {"A": 381.0, "B": 381.0})
    assert move.positions["B"] == pytest.approx(361.0)
    assert move.positions["A"] == pytest.approx(301.0)


def test_unlisted_overlap_partner_does_not_move() -> None:
    cat = RodCatalogue()
    cat.register("A", overlap="B")
    cat.register("B")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["A"], [381.0])
    move = seq.apply(RodDirection.INSERT, 100.0, {"A": 381.0, "B": 381.0})
    assert move.positions["B"] == 381.0
    assert move.positions["A"] == pytest.approx(281.0)
    assert "B" not in move.displacements
    assert seq.remaining_travel(RodDirection.INSERT, {"A": 381.0, "B": 381.0}) == pytest.approx(381.0)


def test_floors_bound_insertion() -> None:
    cat = _catalogue("P")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["P"], [381.0])
    move = seq.apply(RodDirection.INSERT, 200.0, {"P": 381.0}, floors={"P": 300.0})
    assert move.positions["P"] == pytest.approx(300.0)
    assert move.undistributed == pytest.approx(119.0)


def test_motion_is_monotone_and_bounded() -> None:
    cat = _catalogue("P", "R3", "R4")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["R4", "R3", "P"], [381.0, 200.0, 100.0])
    start = {"P": 381.0, "R3": 250.0, "R4": 20.0}
    for magnitude in (0.0, 5.0, 150.0, 1000.0):
        move = seq.apply(RodDirection.INSERT, magnitude, start)
        assert move.total_displacement <= magnitude + 1e-9
        for rod_id, pos in move.positions.items():
            assert 0.0 <= pos <= 381.0
            assert pos <= start[rod_id]


def test_insert_fully_and_remaining_travel() -> None:
    cat = _catalogue("P", "R5")
    seq = RodSequencer(cat)
    seq.set_insert_sequence(["P", "R5"], [50.0, 100.0])
    positions = {"P": 381.0, "R5": 381.0}
    assert seq.remaining_travel(RodDirection.INSERT, positions) == pytest.approx(150.0)
    move = seq.insert_fully(positions)
    assert move.positions == pytest.approx({"P": 331.0, "R5": 281.0})
    assert seq.remaining_travel(RodDirection.INSERT, move.positions) == pytest.approx(0.0)


@pytest.mark.parametrize(
    "ids, limits, match",
    [
        (["P", "R5"], [50.0], "limits"),
        (["P", "P"], [50.0, 50.0], "twice"),
        (["P", "X9"], [50.0, 50.0], "unknown"),
        (["P"], [-1.0], ">= 0"),
    ],
)
def test_invalid_sequences_rejected(ids, limits, match) -> None:
    seq = RodSequencer(_catalogue("P", "R5"))
    with pytest.raises(ConfigurationError, match=match):
        seq.set_insert_sequence(ids, limits)


def test_negative_magnitude_rejected() -> None:
    seq = RodSequencer(_catalogue("P"))
    seq.set_insert_sequence(["P"], [381.0])
    with pytest.raises(ConfigurationError):
        seq.apply(RodDirection.INSERT, -1.0, {"P": 381.0})
