from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
from flask import Flask, jsonify, request

from capacity_allocator import engine
from capacity_allocator.io_utils import (
    find_scenario,
    load_config,
    load_estimates,
    load_projects,
    load_scenarios,
    load_teams,
    parse_contractor,
    parse_priority_overrides,
    prepare_estimates,
    prepare_projects,
    prepare_teams,
)
from capacity_allocator.models import PlanningConfig, Project, Scenario, Team
from capacity_allocator.reporting import render_summary_markdown, summarize
from capacity_allocator.scenarios import compare_scenarios

REQUIRED_INPUT_FILES = ("teams.csv", "projects.csv", "team_estimates.csv")


class PortfolioNotFound(LookupError):
    pass


def _default_portfolios_root() -> Path:
    return (Path(__file__).resolve().parent.parent / "portfolios").resolve()


def _resolve_portfolios_root() -> Path:
    env_value = os.getenv("PORTFOLIOS_ROOT")
    if env_value:
        return Path(env_value).expanduser().resolve()
    return _default_portfolios_root()


def _validate_within_root(path: Path, root: Path) -> None:
    try:
        path.relative_to(root)
    except ValueError as exc:
        raise ValueError(f"Portfolio directory must be inside {root}") from exc


def _check_input_dir(portfolio_dir: Path) -> Tuple[Path, List[str]]:
    input_dir = portfolio_dir / "input"
    missing: List[str] = []
    if not input_dir.is_dir():
        missing.extend(list(REQUIRED_INPUT_FILES))
        return input_dir, missing
    for name in REQUIRED_INPUT_FILES:
        if not (input_dir / name).is_file():
            missing.append(name)
    return input_dir, missing


def _list_portfolio_dirs(root: Path) -> List[Dict[str, object]]:
    entries: List[Dict[str, object]] = []
    if not root.exists():
        return entries
    for child in sorted(root.iterdir()):
        if not child.is_dir():
            continue
        input_dir, missing = _check_input_dir(child)
        entries.append(
            {
                "name": child.relative_to(root).as_posix(),
                "input_dir": input_dir.as_posix(),
                "is_valid": not missing,
                "missing": missing,
            }
        )
    return entries


class _Portfolio:
    """Validated inputs of one portfolio directory."""

    def __init__(self, portfolio_dir: Path) -> None:
        input_dir = portfolio_dir / "input"
        self.teams_df = load_teams(input_dir / "teams.csv")
        self.projects_df = load_projects(input_dir / "projects.csv")
        self.estimates_df = load_estimates(input_dir / "team_estimates.csv")
        scenarios_path = input_dir / "scenarios.json"
        self.scenarios: List[Scenario] = load_scenarios(scenarios_path) if scenarios_path.is_file() else []
        config_path = input_dir / "config.json"
        self.config = load_config(config_path) if config_path.is_file() else PlanningConfig()

    @property
    def teams(self) -> List[Team]:
        return engine.teams_from_frame(self.teams_df)

    @property
    def projects(self) -> List[Project]:
        return engine.projects_from_frames(self.projects_df, self.estimates_df)

    def scenario(self, name: Optional[str]) -> Optional[Scenario]:
        name = name or self.config.default_scenario
        if not name:
            return None
        try:
            return find_scenario(self.scenarios, name)
        except KeyError as exc:
            raise PortfolioNotFound(f"scenario '{name}' not found") from exc


def _load_portfolio(portfolio_name: str, root: Path) -> _Portfolio:
    portfolio_dir = (root / portfolio_name).resolve()
    _validate_within_root(portfolio_dir, root)
    if not portfolio_dir.is_dir():
        raise PortfolioNotFound(f"Portfolio not found: {portfolio_name}")
    _, missing = _check_input_dir(portfolio_dir)
    if missing:
        raise PortfolioNotFound(f"Portfolio {portfolio_name} is missing input files: {', '.join(missing)}")
    return _Portfolio(portfolio_dir)


def _frames_from_payload(
    payload: Dict[str, object],
) -> Tuple[Optional[pd.DataFrame], pd.DataFrame, pd.DataFrame]:
    teams = payload.get("teams", [])
    projects = payload.get("projects", [])
    if not isinstance(teams, list) or not isinstance(projects, list):
        raise ValueError("teams and projects must be arrays")
    estimate_rows = []
    project_rows = []
    for entry in projects:
        if not isinstance(entry, dict):
            raise ValueError("project entries must be objects")
        estimates = entry.get("team_estimates", [])
        if not isinstance(estimates, list):
            raise ValueError(f"team_estimates must be an array for project {entry.get('id')}")
        for estimate in estimates:
            if not isinstance(estimate, dict):
                raise ValueError("team estimate entries must be objects")
            estimate_rows.append({"project_id": entry.get("id"), **estimate})
        project_rows.append({key: value for key, value in entry.items() if key != "team_estimates"})
    teams_df = prepare_teams(pd.DataFrame(teams), "teams") if teams else None
    projects_df = prepare_projects(
        pd.DataFrame(project_rows, columns=None if project_rows else ["id", "name", "priority"]),
        "projects",
    )
    estimates_df = prepare_estimates(
        pd.DataFrame(estimate_rows, columns=None if estimate_rows else ["project_id", "team_id"]),
        "team_estimates",
    )
    return teams_df, projects_df, estimates_df


def _scenario_from_payload(payload: Dict[str, object]) -> Scenario:
    contractors = payload.get("contractors", [])
    if not isinstance(contractors, list):
        raise ValueError("contractors must be an array")
    return Scenario(
        name=str(payload.get("scenario_name") or "ad-hoc"),
        contractors=tuple(parse_contractor(item) for item in contractors),
        priority_overrides=parse_priority_overrides(payload.get("priority_overrides")),
    )


def create_app(portfolios_root: Optional[Path] = None) -> Flask:
    app = Flask(__name__)
    root = Path(portfolios_root).resolve() if portfolios_root else _resolve_portfolios_root()
    app.config["PORTFOLIOS_ROOT"] = root

    @app.errorhandler(PortfolioNotFound)
    def not_found(exc: PortfolioNotFound):
        return jsonify({"error": str(exc)}), 404

    @app.errorhandler(ValueError)
    def bad_request(exc: ValueError):
        return jsonify({"error": str(exc)}), 400

    @app.get("/api/portfolios")
    def portfolios():
        return jsonify({"portfolios": _list_portfolio_dirs(root)})

    @app.get("/api/allocations/<portfolio_name>")
    def portfolio_allocations(portfolio_name: str):
        portfolio = _load_portfolio(portfolio_name, root)
        scenario = portfolio.scenario(request.args.get("scenarioName"))
        report = engine.plan(portfolio.teams_df, portfolio.projects_df, portfolio.estimates_df, scenario)
        payload = report.to_dict()
        payload["scenario"] = scenario.name if scenario else None
        return jsonify(payload)

    @app.post("/api/allocations")
    def adhoc_allocations():
        """Run the engine on teams/projects posted in the request body."""
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "request body must be a JSON object"}), 400
        teams_df, projects_df, estimates_df = _frames_from_payload(payload)
        scenario = _scenario_from_payload(payload)
        teams = engine.teams_from_frame(teams_df) if teams_df is not None else []
        projects = engine.projects_from_frames(projects_df, estimates_df)
        report = engine.run_allocation_engine(teams, projects, scenario.contractors, scenario.priority_overrides)
        return jsonify(report.to_dict())

    @app.get("/api/summary/<portfolio_name>")
    def portfolio_summary(portfolio_name: str):
        portfolio = _load_portfolio(portfolio_name, root)
        scenario = portfolio.scenario(request.args.get("scenarioName"))
        report = engine.plan(portfolio.teams_df, portfolio.projects_df, portfolio.estimates_df, scenario)
        summary = summarize(report)
        return jsonify(
            {
                "summary": summary.to_dict(),
                "markdown": render_summary_markdown(report, summary, portfolio.teams, portfolio.projects),
            }
        )

    @app.get("/api/scenarios/<portfolio_name>/compare")
    def scenario_comparison(portfolio_name: str):
        portfolio = _load_portfolio(portfolio_name, root)
        frame = compare_scenarios(portfolio.teams, portfolio.projects, portfolio.scenarios)
        return jsonify({"scenarios": frame.to_dict(orient="records")})

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
