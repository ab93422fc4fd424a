from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .capacity import CapacityGrid, calculate_team_capacity
from .models import (
    HORIZON_WEEKS,
    PHASE_ROLE_MAP,
    AllocationReport,
    AllocationResult,
    Bottleneck,
    Contractor,
    PhaseSchedule,
    Project,
    Scenario,
    Team,
    TeamAllocation,
    TeamCapacity,
    TeamEstimate,
)

logger = logging.getLogger(__name__)


class InfeasibleProjectsError(RuntimeError):
    def __init__(self, projects: Sequence[AllocationResult]) -> None:
        names = ", ".join(f"{p.project_id} ({p.project_name})" for p in projects)
        super().__init__(f"{len(projects)} project(s) do not fit the {HORIZON_WEEKS}-week horizon: {names}")
        self.projects = list(projects)


def effective_priority(project: Project, priority_overrides: Mapping[str, float]) -> float:
    override = priority_overrides.get(project.id)
    return project.priority if override is None else override


def _schedule_estimate(
    grid: CapacityGrid,
    estimate: TeamEstimate,
    start_week: int,
    allocated_by_team: Dict[str, float],
) -> Tuple[PhaseSchedule, ...]:
    """Run one team's phases back to back from ``start_week``."""
    horizon = grid.horizon
    cursor = start_week
    phases: List[PhaseSchedule] = []
    for phase, hours in estimate.phase_hours():
        role = grid.resolve_role(estimate.team_id, PHASE_ROLE_MAP[phase])
        if role is None:
            logger.debug(
                "team %s has no %s or fallback capacity; dropping %.1fh of %s",
                estimate.team_id,
                PHASE_ROLE_MAP[phase].value,
                hours,
                phase.value,
            )
            continue
        remaining = hours
        phase_start = cursor
        weekly: List[float] = []
        while remaining > 0 and cursor < horizon:
            taken = grid.consume(estimate.team_id, role, cursor, remaining) if cursor >= 0 else 0.0
            remaining -= taken
            allocated_by_team[estimate.team_id] += taken
            weekly.append(taken)
            cursor += 1
        if remaining > 0:
            # Ran off the horizon: completion lies at or beyond the last week.
            end_week = max(cursor - 1, horizon)
        else:
            end_week = cursor - 1
        phases.append(
            PhaseSchedule(
                phase=phase,
                role=role,
                start_week=phase_start,
                end_week=end_week,
                hours_per_week=tuple(weekly),
                unallocated_hours=max(0.0, remaining),
            )
        )
    return tuple(phases)


def _bottleneck(team_allocations: Iterable[TeamAllocation]) -> Optional[Bottleneck]:
    best: Optional[Bottleneck] = None
    best_span = 0
    for team in team_allocations:
        span = team.end_week - team.start_week
        if span <= best_span:
            continue
        longest = max(team.phases, key=lambda p: p.end_week - p.start_week)
        best_span = span
        best = Bottleneck(team_id=team.team_id, team_name=team.team_name, role=longest.role, weeks=span)
    return best


def _allocate_project(
    project: Project,
    priority: float,
    grid: CapacityGrid,
    team_names: Mapping[str, str],
    allocated_by_team: Dict[str, float],
) -> AllocationResult:
    horizon = grid.horizon
    team_allocations: List[TeamAllocation] = []
    project_start = horizon
    project_end = 0
    for estimate in project.team_estimates:
        if estimate.team_id not in team_names or not grid.has_team(estimate.team_id):
            logger.debug("project %s references unknown team %s; skipped", project.id, estimate.team_id)
            continue
        phases = _schedule_estimate(grid, estimate, project.start_week_offset, allocated_by_team)
        team_allocation = TeamAllocation(
            team_id=estimate.team_id,
            team_name=team_names[estimate.team_id],
            phases=phases,
        )
        project_end = max(project_end, team_allocation.end_week)
        project_start = min(project_start, team_allocation.start_week)
        team_allocations.append(team_allocation)

    start_week = project_start if project_start < horizon else 0
    return AllocationResult(
        project_id=project.id,
        project_name=project.name,
        priority=priority,
        feasible=project_end < horizon,
        start_week=start_week,
        end_week=min(project_end, horizon - 1),
        total_weeks=project_end - start_week + 1,
        bottleneck=_bottleneck(team_allocations),
        team_allocations=tuple(team_allocations),
    )


def _with_utilization(
    team_capacities: Sequence[TeamCapacity],
    allocated_by_team: Mapping[str, float],
    horizon: int,
) -> Tuple[TeamCapacity, ...]:
    reported = []
    for tc in team_capacities:
        total_capacity = tc.project_capacity_per_week * horizon
        allocated = allocated_by_team.get(tc.team_id, 0.0)
        utilization = (allocated / total_capacity) * 100 if total_capacity > 0 else 0.0
        reported.append(replace(tc, allocated_hours=allocated, utilization=utilization))
    return tuple(reported)


def run_allocation_engine(
    teams: Sequence[Team],
    projects: Sequence[Project],
    contractors: Sequence[Contractor] = (),
    priority_overrides: Optional[Mapping[str, float]] = None,
) -> AllocationReport:
    """Admit projects in priority order against week-by-week team capacity.

    Higher-priority projects consume capacity first, so results depend on
    processing order and must not be computed per project in parallel.
    Allocations come back in that processing order. Unknown teams and
    roles without capacity are skipped rather than raised.
    """
    overrides = priority_overrides or {}
    contractors = tuple(contractors)
    ordered = sorted(projects, key=lambda p: effective_priority(p, overrides))

    # First definition of a repeated team id wins.
    unique_teams: Dict[str, Team] = {}
    for team in teams:
        if team.id in unique_teams:
            logger.debug("duplicate team %s ignored", team.id)
            continue
        unique_teams[team.id] = team
    team_names = {team_id: team.name for team_id, team in unique_teams.items()}

    team_capacities = [calculate_team_capacity(team, contractors) for team in unique_teams.values()]
    grid = CapacityGrid.build(team_capacities, contractors)

    allocated_by_team: Dict[str, float] = defaultdict(float)
    allocations: List[AllocationResult] = []
    for project in ordered:
        if project.is_complete():
            continue
        allocations.append(
            _allocate_project(
                project,
                effective_priority(project, overrides),
                grid,
                team_names,
                allocated_by_team,
            )
        )

    report = AllocationReport(
        allocations=tuple(allocations),
        team_capacities=_with_utilization(team_capacities, allocated_by_team, grid.horizon),
    )
    logger.info(
        "allocated %d project(s) across %d team(s): %d feasible",
        len(report.allocations),
        len(report.team_capacities),
        len(report.feasible()),
    )
    return report


def _float_or_none(value: object) -> Optional[float]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return float(value)


def teams_from_frame(df: pd.DataFrame) -> List[Team]:
    teams: List[Team] = []
    for row in df.itertuples(index=False):
        teams.append(
            Team(
                id=str(row.id),
                name=str(row.name),
                pm_fte=float(row.pm_fte),
                product_manager_fte=float(row.product_manager_fte),
                ux_designer_fte=_float_or_none(getattr(row, "ux_designer_fte", None)),
                business_analyst_fte=float(row.business_analyst_fte),
                scrum_master_fte=float(row.scrum_master_fte),
                architect_fte=float(row.architect_fte),
                developer_fte=float(row.developer_fte),
                qa_fte=float(row.qa_fte),
                devops_fte=float(row.devops_fte),
                dba_fte=float(row.dba_fte),
                klo_tlm_hours_per_week=float(row.klo_tlm_hours_per_week),
                admin_pct=float(row.admin_pct),
            )
        )
    return teams


def projects_from_frames(projects_df: pd.DataFrame, estimates_df: pd.DataFrame) -> List[Project]:
    estimates_by_project: Dict[str, List[TeamEstimate]] = defaultdict(list)
    for row in estimates_df.itertuples(index=False):
        estimates_by_project[str(row.project_id)].append(
            TeamEstimate(
                team_id=str(row.team_id),
                design=float(row.design),
                development=float(row.development),
                testing=float(row.testing),
                deployment=float(row.deployment),
                post_deploy=float(row.post_deploy),
            )
        )
    projects: List[Project] = []
    for row in projects_df.itertuples(index=False):
        project_id = str(row.id)
        projects.append(
            Project(
                id=project_id,
                name=str(row.name),
                priority=int(row.priority),
                status=str(row.status),
                start_week_offset=int(row.start_week_offset),
                team_estimates=tuple(estimates_by_project.get(project_id, ())),
            )
        )
    return projects


def plan(
    teams_df: pd.DataFrame,
    projects_df: pd.DataFrame,
    estimates_df: pd.DataFrame,
    scenario: Optional[Scenario] = None,
    *,
    strict: bool = False,
) -> AllocationReport:
    """Run the engine over validated portfolio frames."""
    teams = teams_from_frame(teams_df)
    projects = projects_from_frames(projects_df, estimates_df)
    contractors: Tuple[Contractor, ...] = scenario.contractors if scenario else ()
    overrides: Mapping[str, float] = scenario.priority_overrides if scenario else {}
    report = run_allocation_engine(teams, projects, contractors, overrides)
    infeasible = report.infeasible()
    if strict and infeasible:
        raise InfeasibleProjectsError(infeasible)
    return report
