import shutil
from pathlib import Path

import pytest

from capacity_allocator.models import Project, Team, TeamEstimate

SAMPLE_PORTFOLIO = Path(__file__).resolve().parent.parent / "portfolios" / "sample"


def _team(**overrides) -> Team:
    values = dict(
        id="team1",
        name="Engineering",
        pm_fte=1,
        product_manager_fte=0,
        ux_designer_fte=0,
        business_analyst_fte=0,
        scrum_master_fte=0,
        architect_fte=1,
        developer_fte=4,
        qa_fte=1,
        devops_fte=1,
        dba_fte=0,
        klo_tlm_hours_per_week=0,
        admin_pct=25,
    )
    values.update(overrides)
    return Team(**values)


def _estimate(team_id="team1", **overrides) -> TeamEstimate:
    values = dict(design=40, development=200, testing=80, deployment=20, post_deploy=10)
    values.update(overrides)
    return TeamEstimate(team_id=team_id, **values)


def _project(**overrides) -> Project:
    values = dict(
        id="proj1",
        name="Project Alpha",
        priority=1,
        status="active",
        start_week_offset=0,
        team_estimates=(_estimate(),),
    )
    values.update(overrides)
    return Project(**values)


@pytest.fixture
def make_team():
    return _team


@pytest.fixture
def make_estimate():
    return _estimate


@pytest.fixture
def make_project():
    return _project


@pytest.fixture
def sample_portfolio(tmp_path):
    """Writable copy of the bundled sample portfolio."""
    target = tmp_path / "portfolios" / "sample"
    shutil.copytree(SAMPLE_PORTFOLIO / "input", target / "input")
    return target
