"""
tests/test_capacity.py

Covers:
  - Team capacity arithmetic (KLO/TLM, admin %, FTE share per role)
  - Contractor augmentation of role hours
  - Capacity grid seeding and contractor windows
  - Role fallback resolution
"""

import pytest

from capacity_allocator.capacity import CapacityGrid, calculate_team_capacity
from capacity_allocator.models import HORIZON_WEEKS, Contractor, Role, Team


# ── Team capacity ─────────────────────────────────────────────────────────────

class TestTeamCapacity:

    def test_overhead_chain(self, make_team):
        tc = calculate_team_capacity(make_team(klo_tlm_hours_per_week=40))
        # 8 FTE -> 320h, minus 40h KLO -> 280h, 25% admin -> 70h, 210h left
        assert tc.total_hours_per_week == pytest.approx(320)
        assert tc.klo_tlm_hours == 40
        assert tc.admin_hours == pytest.approx(70)
        assert tc.project_capacity_per_week == pytest.approx(210)

    def test_roles_split_by_fte_share(self, make_team):
        tc = calculate_team_capacity(make_team())
        # 8 FTE, 25% admin -> 240h; developers hold half of the FTE
        assert tc.roles[Role.DEVELOPER].hours_per_week == pytest.approx(120)
        assert tc.roles[Role.ARCHITECT].hours_per_week == pytest.approx(30)
        assert tc.roles[Role.PM].fte == 1

    def test_zero_fte_roles_absent(self, make_team):
        tc = calculate_team_capacity(make_team())
        assert Role.DBA not in tc.roles
        assert Role.UX_DESIGNER not in tc.roles

    def test_null_ux_designer_counts_as_zero(self, make_team):
        tc = calculate_team_capacity(make_team(ux_designer_fte=None))
        assert tc.total_hours_per_week == pytest.approx(320)

    def test_capacity_clamped_at_zero(self, make_team):
        tc = calculate_team_capacity(make_team(klo_tlm_hours_per_week=1000))
        assert tc.project_capacity_per_week == 0
        assert tc.admin_hours < 0
        assert all(rc.hours_per_week == 0 for rc in tc.roles.values())

    def test_contractor_adds_flat_hours(self, make_team):
        contractor = Contractor(team_id="team1", role=Role.QA, fte=1.0, weeks=10)
        tc = calculate_team_capacity(make_team(), [contractor])
        assert tc.roles[Role.QA].hours_per_week == pytest.approx(30 + 40)
        assert tc.roles[Role.QA].fte == pytest.approx(2.0)
        # pre-contractor figure is what utilisation is measured against
        assert tc.project_capacity_per_week == pytest.approx(240)

    def test_contractor_creates_role_entry(self, make_team):
        contractor = Contractor(team_id="team1", role=Role.DBA, fte=0.5, weeks=4)
        tc = calculate_team_capacity(make_team(), [contractor])
        assert tc.roles[Role.DBA].hours_per_week == pytest.approx(20)

    def test_other_team_contractor_ignored(self, make_team):
        contractor = Contractor(team_id="other", role=Role.QA, fte=1.0, weeks=10)
        tc = calculate_team_capacity(make_team(), [contractor])
        assert tc.roles[Role.QA].hours_per_week == pytest.approx(30)

    def test_zero_fte_team_has_no_hours_even_with_contractor(self):
        team = Team(id="empty", name="Empty")
        contractor = Contractor(team_id="empty", role=Role.DEVELOPER, fte=2.0, weeks=52)
        tc = calculate_team_capacity(team, [contractor])
        assert tc.total_hours_per_week == 0
        assert tc.roles[Role.DEVELOPER].hours_per_week == 0
        assert tc.roles[Role.DEVELOPER].fte == pytest.approx(2.0)


# ── Capacity grid ─────────────────────────────────────────────────────────────

class TestCapacityGrid:

    def test_seeded_for_full_horizon(self, make_team):
        grid = CapacityGrid.build([calculate_team_capacity(make_team())])
        assert grid.horizon == HORIZON_WEEKS
        assert grid.remaining("team1", Role.DEVELOPER, 0) == pytest.approx(120)
        assert grid.remaining("team1", Role.DEVELOPER, HORIZON_WEEKS - 1) == pytest.approx(120)
        assert grid.remaining("team1", Role.DEVELOPER, HORIZON_WEEKS) == 0

    def test_contractor_hours_only_inside_window(self):
        # Pins the add-then-subtract-outside-window behaviour.
        team = Team(id="t", name="T", developer_fte=1)
        contractor = Contractor(team_id="t", role=Role.DEVELOPER, fte=1.0, weeks=10, start_week=5)
        grid = CapacityGrid.build([calculate_team_capacity(team, [contractor])], [contractor])
        assert grid.remaining("t", Role.DEVELOPER, 4) == pytest.approx(40)
        assert grid.remaining("t", Role.DEVELOPER, 5) == pytest.approx(80)
        assert grid.remaining("t", Role.DEVELOPER, 14) == pytest.approx(80)
        assert grid.remaining("t", Role.DEVELOPER, 15) == pytest.approx(40)

    def test_contractor_only_role_floors_at_zero(self):
        team = Team(id="t", name="T", qa_fte=1)
        contractor = Contractor(team_id="t", role=Role.DEVELOPER, fte=1.0, weeks=4, start_week=0)
        grid = CapacityGrid.build([calculate_team_capacity(team, [contractor])], [contractor])
        assert grid.remaining("t", Role.DEVELOPER, 0) == pytest.approx(40)
        assert grid.remaining("t", Role.DEVELOPER, 4) == 0

    def test_two_contractors_same_role(self):
        team = Team(id="t", name="T", developer_fte=1)
        first = Contractor(team_id="t", role=Role.DEVELOPER, fte=1.0, weeks=2, start_week=0)
        second = Contractor(team_id="t", role=Role.DEVELOPER, fte=1.0, weeks=2, start_week=10)
        grid = CapacityGrid.build([calculate_team_capacity(team, [first, second])], [first, second])
        assert grid.remaining("t", Role.DEVELOPER, 0) == pytest.approx(80)
        assert grid.remaining("t", Role.DEVELOPER, 5) == pytest.approx(40)
        assert grid.remaining("t", Role.DEVELOPER, 10) == pytest.approx(80)

    def test_role_fallback_to_developer(self):
        team = Team(id="t", name="T", developer_fte=2)
        grid = CapacityGrid.build([calculate_team_capacity(team)])
        assert grid.resolve_role("t", Role.QA) is Role.DEVELOPER
        assert grid.resolve_role("t", Role.DEVELOPER) is Role.DEVELOPER

    def test_no_role_and_no_fallback(self):
        team = Team(id="t", name="T", pm_fte=1)
        grid = CapacityGrid.build([calculate_team_capacity(team)])
        assert grid.resolve_role("t", Role.ARCHITECT) is None
        assert grid.resolve_role("missing", Role.ARCHITECT) is None

    def test_consume_never_exceeds_cell(self):
        team = Team(id="t", name="T", developer_fte=1)
        grid = CapacityGrid.build([calculate_team_capacity(team)])
        assert grid.consume("t", Role.DEVELOPER, 0, 100) == pytest.approx(40)
        assert grid.consume("t", Role.DEVELOPER, 0, 10) == 0
        assert grid.remaining("t", Role.DEVELOPER, 0) == 0
