from __future__ import annotations

import logging
from typing import Dict, List, Sequence

import pandas as pd

from .engine import run_allocation_engine
from .models import AllocationReport, Project, Scenario, Team
from .reporting import summarize

logger = logging.getLogger(__name__)

BASELINE = Scenario(name="Baseline")


def run_scenario(teams: Sequence[Team], projects: Sequence[Project], scenario: Scenario) -> AllocationReport:
    logger.debug(
        "running scenario %s (%d contractor(s), %d override(s))",
        scenario.name,
        len(scenario.contractors),
        len(scenario.priority_overrides),
    )
    return run_allocation_engine(teams, projects, scenario.contractors, scenario.priority_overrides)


def _with_baseline(scenarios: Sequence[Scenario], include_baseline: bool) -> List[Scenario]:
    ordered = list(scenarios)
    if include_baseline and all(s.name != BASELINE.name for s in ordered):
        ordered.insert(0, BASELINE)
    return ordered


def compare_scenarios(
    teams: Sequence[Team],
    projects: Sequence[Project],
    scenarios: Sequence[Scenario],
    include_baseline: bool = True,
) -> pd.DataFrame:
    """One summary row per scenario, each from an independent engine run."""
    rows = []
    for scenario in _with_baseline(scenarios, include_baseline):
        summary = summarize(run_scenario(teams, projects, scenario))
        rows.append(
            {
                "scenario": scenario.name,
                "locked": scenario.locked,
                "contractor_fte": scenario.contractor_fte(),
                "priority_overrides": len(scenario.priority_overrides),
                "feasible_count": summary.feasible_count,
                "infeasible_count": summary.infeasible_count,
                "average_utilization": round(summary.average_utilization, 2),
                "most_utilized_team": summary.most_utilized_team or "",
                "infeasible_projects": "; ".join(summary.infeasible_projects),
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "scenario",
            "locked",
            "contractor_fte",
            "priority_overrides",
            "feasible_count",
            "infeasible_count",
            "average_utilization",
            "most_utilized_team",
            "infeasible_projects",
        ],
    )


def feasibility_matrix(
    teams: Sequence[Team],
    projects: Sequence[Project],
    scenarios: Sequence[Scenario],
    include_baseline: bool = True,
) -> pd.DataFrame:
    """Project-by-scenario feasibility, indexed by project id in input order."""
    scheduled = [p for p in projects if not p.is_complete()]
    columns: Dict[str, List[bool]] = {}
    for scenario in _with_baseline(scenarios, include_baseline):
        report = run_scenario(teams, projects, scenario)
        feasible = {a.project_id: a.feasible for a in report.allocations}
        columns[scenario.name] = [feasible[p.id] for p in scheduled]
    frame = pd.DataFrame(columns, index=pd.Index([p.id for p in scheduled], name="project_id"))
    frame.insert(0, "project_name", [p.name for p in scheduled])
    return frame
