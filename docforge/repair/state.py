"""Per-source repair phases."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RepairPhase(str, Enum):
    IDLE = "idle"
    REPAIRING = "repairing"
    REPAIRED = "repaired"
    EXHAUSTED = "exhausted"


class InvalidTransition(RuntimeError):
    """Raised when a repair phase change is not allowed from the current phase."""


@dataclass
class DiagramRepairState:
    """Repair progress for one diagram source value.

    idle -> repairing -> repaired | exhausted. Terminal phases never go back,
    so each distinct source is attempted at most once.
    """

    source: str
    phase: RepairPhase = RepairPhase.IDLE
    repaired_source: Optional[str] = None

    @property
    def attempted(self) -> bool:
        return self.phase is not RepairPhase.IDLE

    @property
    def in_flight(self) -> bool:
        return self.phase is RepairPhase.REPAIRING

    def _require(self, expected: RepairPhase, action: str) -> None:
        if self.phase is not expected:
            raise InvalidTransition(f"Cannot {action} from phase {self.phase.value}")

    def begin(self) -> None:
        self._require(RepairPhase.IDLE, "begin repair")
        self.phase = RepairPhase.REPAIRING

    def succeed(self, repaired_source: str) -> None:
        self._require(RepairPhase.REPAIRING, "complete repair")
        self.phase = RepairPhase.REPAIRED
        self.repaired_source = repaired_source

    def exhaust(self) -> None:
        self._require(RepairPhase.REPAIRING, "exhaust repair")
        self.phase = RepairPhase.EXHAUSTED
