"""An ordered sequence of phases forming one repeatable gait unit."""

from typing import Dict, List, Sequence, Tuple

from ..errors import ConfigurationError
from ..factors import ContactPoint
from .phase import Phase, PhaseState


class WalkCycle:
    def __init__(self, phases: Sequence[Phase] = ()):
        self._phases: List[Phase] = []
        for phase in phases:
            self.add_phase(phase)

    def add_phase(self, phase: Phase) -> "WalkCycle":
        if phase.state is PhaseState.INSTANTIATED:
            raise ConfigurationError("A walk cycle only accepts phases that are not instantiated")
        self._phases.append(phase)
        return self

    @property
    def phases(self) -> Tuple[Phase, ...]:
        return tuple(self._phases)

    @property
    def num_phases(self) -> int:
        return len(self._phases)

    def contact_points(self) -> Dict[str, ContactPoint]:
        """Contact point of every link in contact during some phase, first phase wins."""
        points: Dict[str, ContactPoint] = {}
        for phase in self._phases:
            for cp in phase.contact_points:
                points.setdefault(cp.link_name, cp)
        return points

    def link_names(self) -> List[str]:
        return list(self.contact_points())
