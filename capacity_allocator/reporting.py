"""
Reporting views over an allocation report.

Flattens allocation results into pandas frames for CSV output and builds the
capacity summary ("red line") consumed by dashboards and chat context:
- which projects fit the planning horizon and which fall below the line
- organisation-wide weekly project capacity and average utilisation
- the most utilised team
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import pandas as pd
from dateutil.relativedelta import relativedelta

from .models import HORIZON_WEEKS, AllocationReport, Project, Team

WEEK_FMT = "%Y-%m-%d"


@dataclass
class CapacitySummary:
    """Portfolio-level outcome of one engine run."""
    feasible_count: int
    infeasible_count: int
    infeasible_projects: List[str] = field(default_factory=list)
    total_project_capacity_per_week: float = 0.0
    average_utilization: float = 0.0
    most_utilized_team: Optional[str] = None
    most_utilized_pct: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "feasibleCount": self.feasible_count,
            "infeasibleCount": self.infeasible_count,
            "infeasibleProjects": list(self.infeasible_projects),
            "totalProjectCapacityPerWeek": self.total_project_capacity_per_week,
            "averageUtilization": self.average_utilization,
            "mostUtilizedTeam": self.most_utilized_team,
            "mostUtilizedPct": self.most_utilized_pct,
        }


def summarize(report: AllocationReport) -> CapacitySummary:
    capacities = report.team_capacities
    infeasible = report.infeasible()
    average = sum(tc.utilization for tc in capacities) / len(capacities) if capacities else 0.0
    busiest = max(capacities, key=lambda tc: tc.utilization, default=None)
    return CapacitySummary(
        feasible_count=len(report.allocations) - len(infeasible),
        infeasible_count=len(infeasible),
        infeasible_projects=[a.project_name for a in infeasible],
        total_project_capacity_per_week=sum(tc.project_capacity_per_week for tc in capacities),
        average_utilization=average,
        most_utilized_team=busiest.team_name if busiest else None,
        most_utilized_pct=busiest.utilization if busiest else 0.0,
    )


def week_label(planning_start: Optional[date], week: int) -> Optional[str]:
    if planning_start is None:
        return None
    return (planning_start + relativedelta(weeks=week)).strftime(WEEK_FMT)


def allocations_frame(report: AllocationReport, planning_start: Optional[date] = None) -> pd.DataFrame:
    rows = []
    for allocation in report.allocations:
        bottleneck = allocation.bottleneck
        rows.append(
            {
                "project_id": allocation.project_id,
                "project_name": allocation.project_name,
                "priority": allocation.priority,
                "feasible": allocation.feasible,
                "start_week": allocation.start_week,
                "end_week": allocation.end_week,
                "total_weeks": allocation.total_weeks,
                "start_date": week_label(planning_start, allocation.start_week),
                "end_date": week_label(planning_start, allocation.end_week),
                "allocated_hours": round(allocation.allocated_hours(), 4),
                "bottleneck_team": bottleneck.team_name if bottleneck else "",
                "bottleneck_role": bottleneck.role.value if bottleneck else "",
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "project_id",
            "project_name",
            "priority",
            "feasible",
            "start_week",
            "end_week",
            "total_weeks",
            "start_date",
            "end_date",
            "allocated_hours",
            "bottleneck_team",
            "bottleneck_role",
        ],
    )


def phase_schedule_frame(report: AllocationReport, planning_start: Optional[date] = None) -> pd.DataFrame:
    """One row per (project, team, phase, week) actually iterated."""
    rows = []
    for allocation in report.allocations:
        for team in allocation.team_allocations:
            for phase in team.phases:
                for offset, hours in enumerate(phase.hours_per_week):
                    week = phase.start_week + offset
                    rows.append(
                        {
                            "project_id": allocation.project_id,
                            "team_id": team.team_id,
                            "phase": phase.phase.value,
                            "role": phase.role.value,
                            "week": week,
                            "week_start": week_label(planning_start, week),
                            "hours": round(hours, 4),
                        }
                    )
    return pd.DataFrame(
        rows,
        columns=["project_id", "team_id", "phase", "role", "week", "week_start", "hours"],
    )


def team_capacity_frame(report: AllocationReport) -> pd.DataFrame:
    rows = []
    for tc in report.team_capacities:
        row: Dict[str, object] = {
            "team_id": tc.team_id,
            "team_name": tc.team_name,
            "total_hours_per_week": round(tc.total_hours_per_week, 4),
            "klo_tlm_hours": round(tc.klo_tlm_hours, 4),
            "admin_hours": round(tc.admin_hours, 4),
            "project_capacity_per_week": round(tc.project_capacity_per_week, 4),
            "allocated_hours": round(tc.allocated_hours, 4),
            "utilization_pct": round(tc.utilization, 2),
        }
        for role, capacity in tc.roles.items():
            row[f"{role.value}_hours_per_week"] = round(capacity.hours_per_week, 4)
        rows.append(row)
    return pd.DataFrame(rows)


def render_summary_markdown(
    report: AllocationReport,
    summary: Optional[CapacitySummary] = None,
    teams: Optional[List[Team]] = None,
    projects: Optional[List[Project]] = None,
) -> str:
    summary = summary or summarize(report)
    lines: List[str] = ["# Capacity Summary", ""]

    lines.append(f"## Team Capacities ({len(report.team_capacities)})")
    team_lookup = {team.id: team for team in teams or []}
    for tc in report.team_capacities:
        lines.append(
            f"- **{tc.team_name}**: {tc.total_hours_per_week:.0f}h total → {tc.klo_tlm_hours:.0f}h KLO/TLM "
            f"→ {tc.admin_hours:.0f}h admin → **{tc.project_capacity_per_week:.0f}h/wk project capacity** "
            f"| Utilization: {tc.utilization:.1f}%"
        )
        team = team_lookup.get(tc.team_id)
        if team:
            lines.append(
                f"  - Roles: Dev={team.developer_fte:g}, Arch={team.architect_fte:g}, QA={team.qa_fte:g}, "
                f"DevOps={team.devops_fte:g}, BA={team.business_analyst_fte:g}, PM={team.pm_fte:g}, "
                f"DBA={team.dba_fte:g}"
            )
    lines.append("")

    lines.append(f"## Projects ({len(report.allocations)}, by priority)")
    hours_lookup = {project.id: project.total_hours() for project in projects or []}
    for allocation in report.allocations:
        status = "Feasible" if allocation.feasible else "Exceeds capacity"
        hours = hours_lookup.get(allocation.project_id)
        hours_label = f"{hours:g}h total | " if hours is not None else ""
        line = (
            f"- {allocation.priority:g}. **{allocation.project_name}** - {hours_label}{status} "
            f"| Weeks {allocation.start_week}-{allocation.end_week} ({allocation.total_weeks} wks)"
        )
        if allocation.bottleneck:
            line += f" | Bottleneck: {allocation.bottleneck.team_name}"
        lines.append(line)
    lines.append("")

    lines.append("## The Red Line")
    lines.append(f"- **{summary.feasible_count} projects fit** within the {HORIZON_WEEKS}-week capacity window")
    lines.append(f"- **{summary.infeasible_count} projects exceed** capacity (below the red line)")
    if summary.infeasible_projects:
        lines.append(f"- Projects below the red line: {', '.join(summary.infeasible_projects)}")
    lines.append("")

    lines.append("## Key Metrics")
    lines.append(f"- Total organization project capacity: {summary.total_project_capacity_per_week:.0f} hours/week")
    lines.append(f"- Average utilization: {summary.average_utilization:.1f}%")
    if summary.most_utilized_team:
        lines.append(f"- Most utilized team: {summary.most_utilized_team} ({summary.most_utilized_pct:.1f}%)")
    return "\n".join(lines).strip() + "\n"
