from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd
from dateutil import parser as dateparser

from .models import Contractor, PlanningConfig, Role, Scenario

FTE_COLUMNS = (
    "pm_fte",
    "product_manager_fte",
    "ux_designer_fte",
    "business_analyst_fte",
    "scrum_master_fte",
    "architect_fte",
    "developer_fte",
    "qa_fte",
    "devops_fte",
    "dba_fte",
)
PHASE_COLUMNS = ("design", "development", "testing", "deployment", "post_deploy")

_TEAM_REQUIRED_COLUMNS = {"id", "name", "klo_tlm_hours_per_week", "admin_pct"}
_PROJECT_REQUIRED_COLUMNS = {"id", "name", "priority"}
_ESTIMATE_REQUIRED_COLUMNS = {"project_id", "team_id"}


def _require_columns(df: pd.DataFrame, required: Iterable[str], source: str) -> None:
    missing = sorted(col for col in required if col not in df.columns)
    if missing:
        raise ValueError(f"{source} missing required columns: {', '.join(missing)}")


def _coerce_numeric(df: pd.DataFrame, columns: Iterable[str], source: str, *, allow_missing: bool = False) -> None:
    for col in columns:
        try:
            df[col] = pd.to_numeric(df[col])
        except (ValueError, TypeError) as exc:
            raise ValueError(f"{source}: invalid numeric value in column '{col}'") from exc
        if not allow_missing and df[col].isna().any():
            raise ValueError(f"{source}: column '{col}' contains missing values")
        if (df[col] < 0).any():
            raise ValueError(f"{source}: column '{col}' contains negative values")


def _require_unique_ids(df: pd.DataFrame, column: str, source: str) -> None:
    duplicated = df[column][df[column].duplicated()].tolist()
    if duplicated:
        raise ValueError(f"{source}: duplicate {column} values: {', '.join(map(str, duplicated))}")


def prepare_teams(df: pd.DataFrame, source: str = "teams.csv") -> pd.DataFrame:
    df = df.copy()
    _require_columns(df, _TEAM_REQUIRED_COLUMNS, source)
    # Absent role columns mean no staff in that role; ux_designer_fte stays nullable.
    for col in FTE_COLUMNS:
        if col not in df.columns:
            df[col] = None if col == "ux_designer_fte" else 0.0
    df["id"] = df["id"].astype(str)
    _require_unique_ids(df, "id", source)
    _coerce_numeric(df, [c for c in FTE_COLUMNS if c != "ux_designer_fte"], source)
    _coerce_numeric(df, ["ux_designer_fte"], source, allow_missing=True)
    _coerce_numeric(df, ["klo_tlm_hours_per_week", "admin_pct"], source)
    if (df["admin_pct"] > 100).any():
        raise ValueError(f"{source}: admin_pct must be in [0, 100]")
    return df


def prepare_projects(df: pd.DataFrame, source: str = "projects.csv") -> pd.DataFrame:
    df = df.copy()
    _require_columns(df, _PROJECT_REQUIRED_COLUMNS, source)
    df["id"] = df["id"].astype(str)
    _require_unique_ids(df, "id", source)
    try:
        df["priority"] = pd.to_numeric(df["priority"])
    except (ValueError, TypeError) as exc:
        raise ValueError(f"{source}: invalid numeric value in column 'priority'") from exc
    if df["priority"].isna().any():
        raise ValueError(f"{source}: every project needs a priority")
    if "status" not in df.columns:
        df["status"] = "active"
    df["status"] = df["status"].fillna("active").astype(str).str.strip()
    if "start_week_offset" not in df.columns:
        df["start_week_offset"] = 0
    df["start_week_offset"] = df["start_week_offset"].fillna(0)
    _coerce_numeric(df, ["start_week_offset"], source)
    df["start_week_offset"] = df["start_week_offset"].astype(int)
    return df


def prepare_estimates(df: pd.DataFrame, source: str = "team_estimates.csv") -> pd.DataFrame:
    df = df.copy()
    _require_columns(df, _ESTIMATE_REQUIRED_COLUMNS, source)
    df["project_id"] = df["project_id"].astype(str)
    df["team_id"] = df["team_id"].astype(str)
    for col in PHASE_COLUMNS:
        df[col] = df[col].fillna(0) if col in df.columns else 0.0
    _coerce_numeric(df, PHASE_COLUMNS, source)
    return df


def load_teams(path: str | Path) -> pd.DataFrame:
    df = pd.read_csv(path)
    if df.empty:
        raise ValueError("teams file is empty")
    return prepare_teams(df)


def load_projects(path: str | Path) -> pd.DataFrame:
    return prepare_projects(pd.read_csv(path))


def load_estimates(path: str | Path) -> pd.DataFrame:
    return prepare_estimates(pd.read_csv(path))


def _parse_role(value: object, context: str) -> Role:
    try:
        return Role(str(value).strip())
    except ValueError as exc:
        valid = ", ".join(role.value for role in Role)
        raise ValueError(f"unsupported role '{value}' for {context} (expected one of: {valid})") from exc


def _parse_number(entry: Mapping[str, object], key: str, context: str, default: Optional[float] = None) -> float:
    value = entry.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number for {context}")
    if value < 0:
        raise ValueError(f"{key} must not be negative for {context}")
    return float(value)


def parse_contractor(entry: object, context: str = "contractor") -> Contractor:
    if not isinstance(entry, dict):
        raise ValueError(f"{context} entries must be objects")
    team_id = entry.get("team_id")
    if not team_id:
        raise ValueError(f"team_id is required for {context}")
    return Contractor(
        team_id=str(team_id),
        role=_parse_role(entry.get("role"), context),
        fte=_parse_number(entry, "fte", context),
        weeks=int(_parse_number(entry, "weeks", context)),
        start_week=int(_parse_number(entry, "start_week", context, default=0)),
        label=str(entry.get("label", "") or ""),
    )


def parse_priority_overrides(data: object, context: str = "priority_overrides") -> Dict[str, float]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{context} must be an object mapping project id to priority")
    overrides: Dict[str, float] = {}
    for project_id, value in data.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{context}[{project_id}] must be a number")
        overrides[str(project_id)] = value
    return overrides


def parse_scenarios(data: object) -> List[Scenario]:
    if not isinstance(data, list):
        raise ValueError("scenarios file must be a JSON array")
    scenarios: List[Scenario] = []
    seen = set()
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError("scenario entries must be objects")
        name = entry.get("name")
        if not name or not isinstance(name, str):
            raise ValueError("scenario name is required")
        if name in seen:
            raise ValueError(f"duplicate scenario name '{name}'")
        seen.add(name)
        contractors = entry.get("contractors", [])
        if not isinstance(contractors, list):
            raise ValueError(f"contractors must be an array for scenario '{name}'")
        scenarios.append(
            Scenario(
                name=name,
                contractors=tuple(
                    parse_contractor(item, f"scenario '{name}'") for item in contractors
                ),
                priority_overrides=parse_priority_overrides(
                    entry.get("priority_overrides"), f"scenario '{name}' priority_overrides"
                ),
                locked=bool(entry.get("locked", False)),
            )
        )
    return scenarios


def load_scenarios(path: str | Path) -> List[Scenario]:
    return parse_scenarios(json.loads(Path(path).read_text()))


def find_scenario(scenarios: Sequence[Scenario], name: str) -> Scenario:
    for scenario in scenarios:
        if scenario.name == name:
            return scenario
    raise KeyError(f"scenario '{name}' not found")


def load_config(path: str | Path) -> PlanningConfig:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("config file must be a JSON object")
    planning_start_raw = data.get("planning_start")
    if planning_start_raw is None:
        planning_start = None
    else:
        try:
            planning_start = dateparser.isoparse(planning_start_raw).date()
        except (ValueError, TypeError) as exc:
            raise ValueError("planning_start must be null or an ISO date string") from exc
    logging_level = data.get("logging_level", "INFO")
    if not isinstance(logging_level, str):
        raise ValueError("logging_level must be a string")
    default_scenario = data.get("default_scenario")
    if default_scenario is not None and not isinstance(default_scenario, str):
        raise ValueError("default_scenario must be a scenario name or null")
    return PlanningConfig(
        planning_start=planning_start,
        logging_level=logging_level,
        default_scenario=default_scenario,
    )


def ensure_directory(path: str | Path) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
