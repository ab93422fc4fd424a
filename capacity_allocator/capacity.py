from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from .models import (
    HORIZON_WEEKS,
    HOURS_PER_WEEK,
    ROLE_FALLBACK,
    Contractor,
    Role,
    RoleCapacity,
    Team,
    TeamCapacity,
)


def _contractor_hours_by_role(team_id: str, contractors: Iterable[Contractor]) -> Dict[Role, float]:
    hours: Dict[Role, float] = defaultdict(float)
    for contractor in contractors:
        if contractor.team_id == team_id:
            hours[contractor.role] += contractor.hours_per_week
    return dict(hours)


def calculate_team_capacity(team: Team, contractors: Iterable[Contractor] = ()) -> TeamCapacity:
    """Weekly project hours of a team, split across roles by FTE share.

    Contractor hours are added flat to their role here; the weeks outside a
    contractor's engagement are taken back out by :class:`CapacityGrid`.
    """
    role_fte = team.role_fte()
    total_fte = team.total_fte()
    total_hours_per_week = total_fte * HOURS_PER_WEEK
    after_klo = total_hours_per_week - team.klo_tlm_hours_per_week
    admin_hours = after_klo * (team.admin_pct / 100)
    project_capacity = max(0.0, after_klo - admin_hours)

    contractor_hours = _contractor_hours_by_role(team.id, contractors)

    roles: Dict[Role, RoleCapacity] = {}
    for role, fte in role_fte.items():
        extra_hours = contractor_hours.get(role, 0.0)
        if fte <= 0 and not extra_hours:
            continue
        if total_fte > 0:
            hours = (fte / total_fte) * project_capacity + extra_hours
        else:
            hours = 0.0
        roles[role] = RoleCapacity(
            fte=fte + extra_hours / HOURS_PER_WEEK,
            hours_per_week=hours,
        )

    return TeamCapacity(
        team_id=team.id,
        team_name=team.name,
        total_hours_per_week=total_hours_per_week,
        klo_tlm_hours=team.klo_tlm_hours_per_week,
        admin_hours=admin_hours,
        project_capacity_per_week=project_capacity,
        roles=roles,
    )


class CapacityGrid:
    """Remaining hours per (team, role, week) across the planning horizon.

    Owned by a single engine run and consumed destructively as projects are
    admitted in priority order.
    """

    def __init__(self, horizon: int = HORIZON_WEEKS) -> None:
        self.horizon = horizon
        self._cells: Dict[str, Dict[Role, List[float]]] = {}

    @classmethod
    def build(
        cls,
        team_capacities: Sequence[TeamCapacity],
        contractors: Sequence[Contractor] = (),
        horizon: int = HORIZON_WEEKS,
    ) -> "CapacityGrid":
        grid = cls(horizon)
        for tc in team_capacities:
            team_cells = grid._cells.setdefault(tc.team_id, {})
            for role, capacity in tc.roles.items():
                team_cells[role] = [capacity.hours_per_week] * horizon
            for contractor in contractors:
                if contractor.team_id != tc.team_id:
                    continue
                cells = team_cells.setdefault(contractor.role, [0.0] * horizon)
                hours = contractor.hours_per_week
                for week in range(horizon):
                    if contractor.is_active(week):
                        continue
                    cells[week] = max(0.0, cells[week] - hours)
        return grid

    def has_team(self, team_id: str) -> bool:
        return team_id in self._cells

    def roles(self, team_id: str) -> List[Role]:
        return list(self._cells.get(team_id, {}))

    def resolve_role(self, team_id: str, role: Role) -> Optional[Role]:
        """Role whose cells serve ``role`` for this team, applying the fallback."""
        team_cells = self._cells.get(team_id)
        if not team_cells:
            return None
        if role in team_cells:
            return role
        fallback = ROLE_FALLBACK.get(role)
        if fallback is not None and fallback in team_cells:
            return fallback
        return None

    def remaining(self, team_id: str, role: Role, week: int) -> float:
        cells = self._cells.get(team_id, {}).get(role)
        if cells is None or not 0 <= week < self.horizon:
            return 0.0
        return cells[week]

    def consume(self, team_id: str, role: Role, week: int, hours: float) -> float:
        """Take up to ``hours`` from one cell and return what was taken."""
        cells = self._cells[team_id][role]
        taken = min(hours, cells[week])
        if taken > 0:
            cells[week] -= taken
            return taken
        return 0.0

    def total_remaining(self, team_id: str) -> float:
        return sum(sum(cells) for cells in self._cells.get(team_id, {}).values())

    def snapshot(self) -> Dict[str, Dict[Role, List[float]]]:
        return {
            team_id: {role: list(cells) for role, cells in team_cells.items()}
            for team_id, team_cells in self._cells.items()
        }
