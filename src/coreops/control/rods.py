# ──────────────────────────────────────────────────────────────────────
# CoreOps — Rod Catalogue & Rod Sequencer
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Rod-group catalogue (the single position arena) and the sequencer that turns
a signed reactivity request into per-group rod motion.

Positions are centimetres above the fully inserted end of travel.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from coreops.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

FULL_TRAVEL_CM: Tuple[float, float] = (0.0, 381.0)

# Rod motion below this size is treated as no motion.
_MOTION_EPS = 1e-9


class RodDirection(IntEnum):
    INSERT = -1
    WITHDRAW = 1


@dataclass(frozen=True)
class RodGroup:
    rod_id: str
    overlap: Optional[str] = None
    travel: Tuple[float, float] = FULL_TRAVEL_CM

    def __post_init__(self) -> None:
        bottom, top = (float(v) for v in self.travel)
        if not (math.isfinite(bottom) and math.isfinite(top)) or top <= bottom:
            raise ConfigurationError(
                f"rod group {self.rod_id!r}: travel must satisfy bottom < top, got {self.travel}"
            )
        object.__setattr__(self, "travel", (bottom, top))
        if self.overlap == self.rod_id:
            raise ConfigurationError(f"rod group {self.rod_id!r} cannot overlap with itself.")

    @property
    def bottom(self) -> float:
        return self.travel[0]

    @property
    def top(self) -> float:
        return self.travel[1]

    @property
    def span(self) -> float:
        return self.travel[1] - self.travel[0]

    def clamp(self, position: float) -> float:
        return float(min(max(float(position), self.bottom), self.top))


class RodCatalogue:
    """Registered rod groups plus the shared map of current positions.

    Every operation and the margin analyzer read and write rod positions
    here; none of them keeps a private copy.
    """

    def __init__(self, groups: Iterable[RodGroup] = ()) -> None:
        self._groups: Dict[str, RodGroup] = {}
        self._positions: Dict[str, float] = {}
        self._pdil: Dict[str, Tuple[np.ndarray, np.ndarray]] = {}
        for group in groups:
            self.add(group)

    def register(
        self,
        rod_id: str,
        overlap: Optional[str] = None,
        travel: Tuple[float, float] = FULL_TRAVEL_CM,
    ) -> RodGroup:
        return self.add(RodGroup(rod_id=str(rod_id), overlap=overlap or None, travel=tuple(travel)))

    def add(self, group: RodGroup) -> RodGroup:
        if group.rod_id in self._groups:
            raise ConfigurationError(f"rod group {group.rod_id!r} is already registered.")
        self._groups[group.rod_id] = group
        self._positions[group.rod_id] = group.top
        return group

    def __contains__(self, rod_id: object) -> bool:
        return rod_id in self._groups

    def __iter__(self):
        return iter(self._groups.values())

    def __len__(self) -> int:
        return len(self._groups)

    @property
    def ids(self) -> List[str]:
        return list(self._groups)

    def group(self, rod_id: str) -> RodGroup:
        try:
            return self._groups[rod_id]
        except KeyError:
            raise ConfigurationError(f"unknown rod group {rod_id!r}") from None

    def require(self, rod_ids: Iterable[str]) -> None:
        unknown = [r for r in rod_ids if r not in self._groups]
        if unknown:
            raise ConfigurationError(
                f"unknown rod group(s) {unknown}; registered: {sorted(self._groups)}"
            )

    def validate(self) -> None:
        """Check overlap partners refer to registered groups."""
        for group in self._groups.values():
            if group.overlap is not None and group.overlap not in self._groups:
                raise ConfigurationError(
                    f"rod group {group.rod_id!r} overlaps unknown group {group.overlap!r}"
                )

    def partner(self, rod_id: str) -> Optional[RodGroup]:
        overlap = self.group(rod_id).overlap
        if overlap is None:
            return None
        return self.group(overlap)

    # ── Position arena ────────────────────────────────────────────────

    @property
    def positions(self) -> Dict[str, float]:
        return dict(self._positions)

    def position(self, rod_id: str) -> float:
        self.group(rod_id)
        return self._positions[rod_id]

    def update_positions(self, positions: Mapping[str, float]) -> None:
        self.require(positions)
        for rod_id, pos in positions.items():
            self._positions[rod_id] = self._groups[rod_id].clamp(pos)

    def all_out(self) -> Dict[str, float]:
        return {g.rod_id: g.top for g in self._groups.values()}

    def all_in(self) -> Dict[str, float]:
        return {g.rod_id: g.bottom for g in self._groups.values()}

    def inserted_fraction(self, rod_id: str, position: float) -> float:
        g = self.group(rod_id)
        return float(np.clip((g.top - float(position)) / g.span, 0.0, 1.0))

    # ── Power-dependent insertion limits ───────────────────────────────

    def set_pdil(self, rod_id: str, points: Sequence[Tuple[float, float]]) -> None:
        """Register (power_fraction, minimum position) pairs for ``rod_id``."""
        group = self.group(rod_id)
        if not points:
            raise ConfigurationError(f"PDIL for {rod_id!r} needs at least one point.")
        arr = np.asarray(sorted((float(p), float(z)) for p, z in points), dtype=np.float64)
        if not np.all(np.isfinite(arr)):
            raise ConfigurationError(f"PDIL for {rod_id!r} must be finite.")
        if np.any(np.diff(arr[:, 0]) <= 0.0):
            raise ConfigurationError(f"PDIL power points for {rod_id!r} must be distinct.")
        if np.any(arr[:, 1] < group.bottom) or np.any(arr[:, 1] > group.top):
            raise ConfigurationError(f"PDIL positions for {rod_id!r} must lie inside its travel.")
        self._pdil[rod_id] = (arr[:, 0], arr[:, 1])

    def pdil(self, rod_id: str, power_fraction: float) -> float:
        """Lowest allowed position of ``rod_id`` at ``power_fraction``."""
        group = self.group(rod_id)
        table = self._pdil.get(rod_id)
        if table is None:
            return group.bottom
        power, position = table
        return float(np.interp(float(power_fraction), power, position))

    def pdil_floors(self, power_fraction: float) -> Dict[str, float]:
        return {rod_id: self.pdil(rod_id, power_fraction) for rod_id in self._pdil}


@dataclass(frozen=True)
class RodMove:
    positions: Dict[str, float]
    undistributed: float
    displacements: Dict[str, float] = field(default_factory=dict)

    @property
    def total_displacement(self) -> float:
        return float(sum(self.displacements.values()))


class RodSequencer:
    """Distributes a rod-motion budget over ordered rod groups.

    Limits are travel distances measured from the end the motion starts at:
    an insertion limit ``L`` forbids positions below ``top - L`` and a
    withdrawal limit ``L`` forbids positions above ``bottom + L``.
    """

    def __init__(self, catalogue: RodCatalogue) -> None:
        self.catalogue = catalogue
        self._insert: List[Tuple[str, float]] = []
        self._withdraw: List[Tuple[str, float]] = []

    def _build(self, rod_ids: Sequence[str], limits: Sequence[float]) -> List[Tuple[str, float]]:
        ids = [str(r) for r in rod_ids]
        if len(ids) != len(limits):
            raise ConfigurationError(
                f"rod sequence has {len(ids)} groups but {len(limits)} limits."
            )
        if len(set(ids)) != len(ids):
            raise ConfigurationError(f"rod sequence lists a group twice: {ids}")
        self.catalogue.require(ids)
        out: List[Tuple[str, float]] = []
        for rod_id, limit in zip(ids, limits):
            lim = float(limit)
            if not math.isfinite(lim) or lim < 0.0:
                raise ConfigurationError(f"rod limit for {rod_id!r} must be finite and >= 0.")
            out.append((rod_id, lim))
        return out

    def set_insert_sequence(self, rod_ids: Sequence[str], limits: Sequence[float]) -> None:
        self._insert = self._build(rod_ids, limits)

    def set_withdraw_sequence(self, rod_ids: Sequence[str], limits: Sequence[float]) -> None:
        self._withdraw = self._build(rod_ids, limits)

    @property
    def insert_sequence(self) -> List[Tuple[str, float]]:
        return list(self._insert)

    @property
    def withdraw_sequence(self) -> List[Tuple[str, float]]:
        return list(self._withdraw)

    def sequence(self, direction: RodDirection) -> List[Tuple[str, float]]:
        return self.insert_sequence if direction == RodDirection.INSERT else self.withdraw_sequence

    def _bound(self, rod_id: str, limit: float, direction: RodDirection,
               floors: Mapping[str, float]) -> float:
        group = self.catalogue.group(rod_id)
        if direction == RodDirection.INSERT:
            bound = max(group.bottom, group.top - limit)
            if rod_id in floors:
                bound = max(bound, min(float(floors[rod_id]), group.top))
            return bound
        return min(group.top, group.bottom + limit)

    @staticmethod
    def _headroom(position: float, bound: float, direction: RodDirection) -> float:
        return max(0.0, (position - bound) if direction == RodDirection.INSERT else (bound - position))

    def apply(
        self,
        direction: RodDirection,
        magnitude: float,
        positions: Mapping[str, float],
        floors: Optional[Mapping[str, float]] = None,
    ) -> RodMove:
        """Move groups in sequence order by at most ``magnitude`` cm in total.

        An overlap partner follows its group by the same fraction of its own
        travel and its displacement is charged to the same budget. The partner
        keeps its own limit and floor; a partner missing from the sequence
        stays put. Whatever cannot be placed is returned as ``undistributed``.
        """
        direction = RodDirection(direction)
        budget = float(magnitude)
        if not math.isfinite(budget) or budget < 0.0:
            raise ConfigurationError("rod motion magnitude must be finite and >= 0.")
        floors = floors or {}
        out = {k: float(v) for k, v in positions.items()}
        moved: Dict[str, float] = {}
        sign = float(direction)
        sequence = self.sequence(direction)
        limits = dict(sequence)

        for rod_id, limit in sequence:
            if budget <= _MOTION_EPS:
                break
            group = self.catalogue.group(rod_id)
            pos = out.get(rod_id, self.catalogue.position(rod_id))
            room = self._headroom(pos, self._bound(rod_id, limit, direction, floors), direction)
            if room <= _MOTION_EPS:
                continue

            partner = self.catalogue.partner(rod_id)
            if partner is not None and partner.rod_id in limits:
                p_pos = out.get(partner.rod_id, self.catalogue.position(partner.rod_id))
                p_bound = self._bound(partner.rod_id, limits[partner.rod_id], direction, floors)
                p_room = self._headroom(p_pos, p_bound, direction)
                ratio = partner.span / group.span
                if p_room > _MOTION_EPS:
                    # joint leg: leader moves d, partner moves ratio * d
                    d = min(room, p_room / ratio, budget / (1.0 + ratio))
                    pos += sign * d
                    p_pos += sign * ratio * d
                    out[partner.rod_id] = partner.clamp(p_pos)
                    moved[partner.rod_id] = moved.get(partner.rod_id, 0.0) + ratio * d
                    moved[rod_id] = moved.get(rod_id, 0.0) + d
                    budget -= (1.0 + ratio) * d
                    room -= d

            d = min(room, budget)
            if d > _MOTION_EPS:
                pos += sign * d
                moved[rod_id] = moved.get(rod_id, 0.0) + d
                budget -= d
            out[rod_id] = group.clamp(pos)

        undistributed = max(0.0, budget)
        if undistributed > _MOTION_EPS:
            logger.debug(
                "rod sequence saturated: direction=%s requested=%.3f undistributed=%.3f",
                direction.name, float(magnitude), undistributed,
            )
        return RodMove(positions=out, undistributed=undistributed if undistributed > _MOTION_EPS else 0.0,
                       displacements=moved)

    def remaining_travel(
        self,
        direction: RodDirection,
        positions: Mapping[str, float],
        floors: Optional[Mapping[str, float]] = None,
    ) -> float:
        """Travel (cm) left before every group of ``direction`` reaches its limit.

        Overlap partners only move when they are listed themselves, so their
        travel is counted once under their own entry.
        """
        direction = RodDirection(direction)
        floors = floors or {}
        total = 0.0
        for rod_id, limit in self.sequence(direction):
            pos = float(positions.get(rod_id, self.catalogue.position(rod_id)))
            total += self._headroom(pos, self._bound(rod_id, limit, direction, floors), direction)
        return total

    def insert_fully(self, positions: Mapping[str, float],
                     floors: Optional[Mapping[str, float]] = None) -> RodMove:
        """Drive every insertion-sequence group to its insertion limit."""
        total = sum(self.catalogue.group(rod_id).span for rod_id, _ in self._insert)
        return self.apply(RodDirection.INSERT, total, positions, floors)
