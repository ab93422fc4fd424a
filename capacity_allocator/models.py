from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple


HORIZON_WEEKS = 52
HOURS_PER_WEEK = 40
COMPLETE_STATUS = "complete"


class Role(str, Enum):
    PM = "pm"
    PRODUCT_MANAGER = "productManager"
    UX_DESIGNER = "uxDesigner"
    BUSINESS_ANALYST = "businessAnalyst"
    SCRUM_MASTER = "scrumMaster"
    ARCHITECT = "architect"
    DEVELOPER = "developer"
    QA = "qa"
    DEVOPS = "devops"
    DBA = "dba"


class Phase(str, Enum):
    DESIGN = "design"
    DEVELOPMENT = "development"
    TESTING = "testing"
    DEPLOYMENT = "deployment"
    POST_DEPLOY = "postDeploy"


PHASE_ORDER: Tuple[Phase, ...] = (
    Phase.DESIGN,
    Phase.DEVELOPMENT,
    Phase.TESTING,
    Phase.DEPLOYMENT,
    Phase.POST_DEPLOY,
)

PHASE_ROLE_MAP: Dict[Phase, Role] = {
    Phase.DESIGN: Role.ARCHITECT,
    Phase.DEVELOPMENT: Role.DEVELOPER,
    Phase.TESTING: Role.QA,
    Phase.DEPLOYMENT: Role.DEVOPS,
    Phase.POST_DEPLOY: Role.DEVOPS,
}

# Tried once when a team has no capacity entry for the mapped role.
ROLE_FALLBACK: Dict[Role, Optional[Role]] = {
    role: (None if role is Role.DEVELOPER else Role.DEVELOPER) for role in Role
}


@dataclass(frozen=True)
class Team:
    """Team configuration row: FTE per role plus recurring overheads."""

    id: str
    name: str
    pm_fte: float = 0.0
    product_manager_fte: float = 0.0
    ux_designer_fte: Optional[float] = None
    business_analyst_fte: float = 0.0
    scrum_master_fte: float = 0.0
    architect_fte: float = 0.0
    developer_fte: float = 0.0
    qa_fte: float = 0.0
    devops_fte: float = 0.0
    dba_fte: float = 0.0
    klo_tlm_hours_per_week: float = 0.0
    admin_pct: float = 0.0

    def role_fte(self) -> Dict[Role, float]:
        return {
            Role.PM: self.pm_fte,
            Role.PRODUCT_MANAGER: self.product_manager_fte,
            Role.UX_DESIGNER: self.ux_designer_fte or 0.0,
            Role.BUSINESS_ANALYST: self.business_analyst_fte,
            Role.SCRUM_MASTER: self.scrum_master_fte,
            Role.ARCHITECT: self.architect_fte,
            Role.DEVELOPER: self.developer_fte,
            Role.QA: self.qa_fte,
            Role.DEVOPS: self.devops_fte,
            Role.DBA: self.dba_fte,
        }

    def total_fte(self) -> float:
        return sum(self.role_fte().values())


@dataclass(frozen=True)
class TeamEstimate:
    team_id: str
    design: float = 0.0
    development: float = 0.0
    testing: float = 0.0
    deployment: float = 0.0
    post_deploy: float = 0.0

    def phase_hours(self) -> List[Tuple[Phase, float]]:
        """Phases in schedule order, zero-hour phases dropped."""
        hours = {
            Phase.DESIGN: self.design,
            Phase.DEVELOPMENT: self.development,
            Phase.TESTING: self.testing,
            Phase.DEPLOYMENT: self.deployment,
            Phase.POST_DEPLOY: self.post_deploy,
        }
        return [(phase, hours[phase]) for phase in PHASE_ORDER if hours[phase] > 0]

    def total_hours(self) -> float:
        return self.design + self.development + self.testing + self.deployment + self.post_deploy


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    priority: float
    status: str = "active"
    start_week_offset: int = 0
    team_estimates: Tuple[TeamEstimate, ...] = ()

    def is_complete(self) -> bool:
        return self.status == COMPLETE_STATUS

    def total_hours(self) -> float:
        return sum(estimate.total_hours() for estimate in self.team_estimates)


@dataclass(frozen=True)
class Contractor:
    """Temporary augmentation of one team role for a window of weeks."""

    team_id: str
    role: Role
    fte: float
    weeks: int
    start_week: int = 0
    label: str = ""

    @property
    def hours_per_week(self) -> float:
        return self.fte * HOURS_PER_WEEK

    def is_active(self, week: int) -> bool:
        return self.start_week <= week < self.start_week + self.weeks


@dataclass(frozen=True)
class Scenario:
    """Named what-if input: contractor augmentation plus priority overrides."""

    name: str
    contractors: Tuple[Contractor, ...] = ()
    priority_overrides: Mapping[str, float] = field(default_factory=dict)
    locked: bool = False

    def contractor_fte(self) -> float:
        return sum(c.fte for c in self.contractors)


@dataclass(frozen=True)
class RoleCapacity:
    fte: float
    hours_per_week: float

    def to_dict(self) -> Dict[str, float]:
        return {"fte": self.fte, "hoursPerWeek": self.hours_per_week}


@dataclass(frozen=True)
class TeamCapacity:
    team_id: str
    team_name: str
    total_hours_per_week: float
    klo_tlm_hours: float
    admin_hours: float
    project_capacity_per_week: float
    roles: Dict[Role, RoleCapacity]
    allocated_hours: float = 0.0
    utilization: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "teamId": self.team_id,
            "teamName": self.team_name,
            "totalHoursPerWeek": self.total_hours_per_week,
            "kloTlmHours": self.klo_tlm_hours,
            "adminHours": self.admin_hours,
            "projectCapacityPerWeek": self.project_capacity_per_week,
            "utilization": self.utilization,
            "allocatedHours": self.allocated_hours,
            "roles": {role.value: cap.to_dict() for role, cap in self.roles.items()},
        }


@dataclass(frozen=True)
class PhaseSchedule:
    phase: Phase
    role: Role
    start_week: int
    end_week: int
    hours_per_week: Tuple[float, ...]
    unallocated_hours: float = 0.0

    @property
    def completed(self) -> bool:
        return self.unallocated_hours <= 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "phase": self.phase.value,
            "role": self.role.value,
            "startWeek": self.start_week,
            "endWeek": self.end_week,
            "hoursPerWeek": list(self.hours_per_week),
            "unallocatedHours": self.unallocated_hours,
        }


@dataclass(frozen=True)
class TeamAllocation:
    team_id: str
    team_name: str
    phases: Tuple[PhaseSchedule, ...]

    @property
    def start_week(self) -> int:
        return min((p.start_week for p in self.phases), default=0)

    @property
    def end_week(self) -> int:
        return max((p.end_week for p in self.phases), default=0)

    def allocated_hours(self) -> float:
        return sum(sum(p.hours_per_week) for p in self.phases)

    def to_dict(self) -> Dict[str, object]:
        return {
            "teamId": self.team_id,
            "teamName": self.team_name,
            "phases": [phase.to_dict() for phase in self.phases],
        }


@dataclass(frozen=True)
class Bottleneck:
    """Team with the longest span on a project.

    ``role`` is the role of that team's longest phase, not the fixed
    ``"Multiple"`` placeholder older consumers of this JSON shape received.
    """

    team_id: str
    team_name: str
    role: Role
    weeks: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "teamId": self.team_id,
            "teamName": self.team_name,
            "role": self.role.value,
            "weeks": self.weeks,
        }


@dataclass(frozen=True)
class AllocationResult:
    project_id: str
    project_name: str
    priority: float
    feasible: bool
    start_week: int
    end_week: int
    total_weeks: int
    bottleneck: Optional[Bottleneck]
    team_allocations: Tuple[TeamAllocation, ...]

    def allocated_hours(self) -> float:
        return sum(team.allocated_hours() for team in self.team_allocations)

    @property
    def scheduled(self) -> bool:
        """False when no team of the project could be resolved at all."""
        return any(team.phases for team in self.team_allocations)

    def to_dict(self) -> Dict[str, object]:
        return {
            "projectId": self.project_id,
            "projectName": self.project_name,
            "priority": self.priority,
            "feasible": self.feasible,
            "startWeek": self.start_week,
            "endWeek": self.end_week,
            "totalWeeks": self.total_weeks,
            "bottleneck": self.bottleneck.to_dict() if self.bottleneck else None,
            "teamAllocations": [team.to_dict() for team in self.team_allocations],
        }


@dataclass(frozen=True)
class AllocationReport:
    allocations: Tuple[AllocationResult, ...] = ()
    team_capacities: Tuple[TeamCapacity, ...] = ()

    def feasible(self) -> List[AllocationResult]:
        return [a for a in self.allocations if a.feasible]

    def infeasible(self) -> List[AllocationResult]:
        return [a for a in self.allocations if not a.feasible]

    def allocation_for(self, project_id: str) -> Optional[AllocationResult]:
        for allocation in self.allocations:
            if allocation.project_id == project_id:
                return allocation
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "allocations": [a.to_dict() for a in self.allocations],
            "teamCapacities": [tc.to_dict() for tc in self.team_capacities],
        }


@dataclass(frozen=True)
class PlanningConfig:
    planning_start: Optional[date] = None
    logging_level: str = "INFO"
    default_scenario: Optional[str] = None
