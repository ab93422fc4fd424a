from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from . import engine
from .engine import InfeasibleProjectsError
from .io_utils import (
    ensure_directory,
    find_scenario,
    load_config,
    load_estimates,
    load_projects,
    load_scenarios,
    load_teams,
    write_csv,
)
from .models import AllocationReport, PlanningConfig, Scenario
from .reporting import (
    allocations_frame,
    phase_schedule_frame,
    render_summary_markdown,
    summarize,
    team_capacity_frame,
)
from .scenarios import compare_scenarios


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Capacity allocation batch tool: schedule projects against team capacity (CSV in/out)."
    )
    parser.add_argument(
        "--project-dir",
        help="Portfolio directory containing input/ and output/ subfolders",
    )
    parser.add_argument("--teams", help="Path to teams CSV (overrides project-dir default)")
    parser.add_argument("--projects", help="Path to projects CSV (overrides project-dir default)")
    parser.add_argument("--estimates", help="Path to team estimates CSV (overrides project-dir default)")
    parser.add_argument("--scenarios", help="Path to scenarios JSON (optional)")
    parser.add_argument("--config", help="Path to configuration JSON (optional)")
    parser.add_argument("--scenario", help="Name of the scenario to apply (default: config.default_scenario)")
    parser.add_argument(
        "--compare",
        action="store_true",
        help="Also write scenario_comparison.csv covering the baseline and every scenario",
    )
    parser.add_argument(
        "--outdir",
        default=None,
        help="Output directory for generated files (default: <project-dir>/output or ./out)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail if any project does not fit within the planning horizon",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan and print summary without writing output files",
    )
    return parser.parse_args(argv)


def _resolve_io_paths(
    args: argparse.Namespace,
) -> Tuple[Path, Path, Path, Optional[Path], Optional[Path], Path]:
    project_dir = Path(args.project_dir).resolve() if args.project_dir else None
    if project_dir and not project_dir.exists():
        raise ValueError(f"project directory not found: {project_dir}")
    input_dir = project_dir / "input" if project_dir else None

    def _pick(path_value: Optional[str], default_name: str) -> Optional[Path]:
        if path_value:
            return Path(path_value)
        if input_dir:
            return input_dir / default_name
        return None

    teams_path = _pick(args.teams, "teams.csv")
    projects_path = _pick(args.projects, "projects.csv")
    estimates_path = _pick(args.estimates, "team_estimates.csv")
    scenarios_path = _pick(args.scenarios, "scenarios.json")
    config_path = _pick(args.config, "config.json")

    missing = [
        name
        for name, value in (("teams", teams_path), ("projects", projects_path), ("estimates", estimates_path))
        if value is None
    ]
    if missing:
        joined = ", ".join(f"--{name}" for name in missing)
        raise ValueError(f"missing required input paths: {joined} (or provide --project-dir)")

    for label, path in (("teams", teams_path), ("projects", projects_path), ("estimates", estimates_path)):
        if not path.exists():
            raise ValueError(f"{label} file not found at {path}")

    # Scenarios and config are optional when only implied by --project-dir.
    if scenarios_path and not scenarios_path.exists():
        if args.scenarios:
            raise ValueError(f"scenarios file not found at {scenarios_path}")
        scenarios_path = None
    if config_path and not config_path.exists():
        if args.config:
            raise ValueError(f"config file not found at {config_path}")
        config_path = None

    if args.outdir:
        outdir = Path(args.outdir)
    elif project_dir:
        outdir = project_dir / "output"
    else:
        outdir = Path("out")

    return teams_path, projects_path, estimates_path, scenarios_path, config_path, outdir


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _select_scenario(
    scenarios: List[Scenario], requested: Optional[str], cfg: PlanningConfig
) -> Optional[Scenario]:
    name = requested or cfg.default_scenario
    if not name:
        return None
    try:
        return find_scenario(scenarios, name)
    except KeyError as exc:
        raise ValueError(f"scenario '{name}' not found") from exc


def _print_dry_run_summary(report: AllocationReport) -> None:
    if not report.allocations:
        print("No projects scheduled.")
        return
    print("Scheduled projects:")
    for allocation in report.allocations:
        marker = "ok" if allocation.feasible else "OVER"
        weeks_label = "week" if allocation.total_weeks == 1 else "weeks"
        line = (
            f"- [{marker}] {allocation.project_id} {allocation.project_name}: "
            f"week {allocation.start_week} → {allocation.end_week} ({allocation.total_weeks} {weeks_label})"
        )
        if allocation.bottleneck:
            line += f" bottleneck {allocation.bottleneck.team_name}"
        print(line)
    summary = summarize(report)
    print(f"\nFeasible: {summary.feasible_count}, below the red line: {summary.infeasible_count}")
    print(f"Average utilization: {summary.average_utilization:.1f}%")


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    try:
        teams_path, projects_path, estimates_path, scenarios_path, config_path, outdir = _resolve_io_paths(args)
        cfg = load_config(config_path) if config_path else PlanningConfig()
        teams_df = load_teams(teams_path)
        projects_df = load_projects(projects_path)
        estimates_df = load_estimates(estimates_path)
        scenarios = load_scenarios(scenarios_path) if scenarios_path else []
        scenario = _select_scenario(scenarios, args.scenario, cfg)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)

    _configure_logging(cfg.logging_level)
    try:
        report = engine.plan(teams_df, projects_df, estimates_df, scenario, strict=args.strict)
    except InfeasibleProjectsError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    if args.dry_run:
        _print_dry_run_summary(report)
        return

    teams = engine.teams_from_frame(teams_df)
    projects = engine.projects_from_frames(projects_df, estimates_df)
    outdir_path = ensure_directory(outdir)
    written = []
    for name, frame in (
        ("project_allocations.csv", allocations_frame(report, cfg.planning_start)),
        ("phase_schedule.csv", phase_schedule_frame(report, cfg.planning_start)),
        ("team_capacity.csv", team_capacity_frame(report)),
    ):
        write_csv(frame, outdir_path / name)
        written.append(outdir_path / name)
    if args.compare:
        comparison_path = outdir_path / "scenario_comparison.csv"
        write_csv(compare_scenarios(teams, projects, scenarios), comparison_path)
        written.append(comparison_path)
    summary_path = outdir_path / "capacity_summary.md"
    summary_path.write_text(render_summary_markdown(report, summarize(report), teams, projects))
    written.append(summary_path)
    for path in written:
        print(f"Wrote {path}")
    infeasible = report.infeasible()
    if infeasible:
        print("Below the red line:")
        for allocation in infeasible:
            print(f"- {allocation.project_id} {allocation.project_name}")


if __name__ == "__main__":
    main()
