import pytest

from webapp.app import create_app


@pytest.fixture
def client(sample_portfolio):
    app = create_app(sample_portfolio.parent)
    app.config["TESTING"] = True
    return app.test_client()


def test_list_portfolios(client, sample_portfolio):
    (sample_portfolio.parent / "broken").mkdir()
    payload = client.get("/api/portfolios").get_json()
    by_name = {entry["name"]: entry for entry in payload["portfolios"]}
    assert by_name["sample"]["is_valid"] is True
    assert by_name["broken"]["is_valid"] is False
    assert "teams.csv" in by_name["broken"]["missing"]


def test_portfolio_allocations(client):
    response = client.get("/api/allocations/sample")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["scenario"] is None
    ids = [a["projectId"] for a in payload["allocations"]]
    assert ids[0] == "p-s4"
    assert "p-legacy" not in ids
    first = payload["allocations"][0]
    assert {"feasible", "startWeek", "endWeek", "totalWeeks", "bottleneck", "teamAllocations"} <= set(first)
    assert len(payload["teamCapacities"]) == 4


def test_portfolio_allocations_with_scenario(client):
    payload = client.get("/api/allocations/sample?scenarioName=Defer%20Low%20Value").get_json()
    assert payload["scenario"] == "Defer Low Value"
    assert [a["projectId"] for a in payload["allocations"]][-1] == "p-vendor"


def test_unknown_scenario_is_404(client):
    response = client.get("/api/allocations/sample?scenarioName=Missing")
    assert response.status_code == 404
    assert "Missing" in response.get_json()["error"]


def test_unknown_portfolio_is_404(client):
    assert client.get("/api/allocations/nowhere").status_code == 404


def test_summary(client):
    payload = client.get("/api/summary/sample").get_json()
    assert payload["summary"]["feasibleCount"] + payload["summary"]["infeasibleCount"] == 6
    assert payload["markdown"].startswith("# Capacity Summary")


def test_compare(client):
    payload = client.get("/api/scenarios/sample/compare").get_json()
    assert [row["scenario"] for row in payload["scenarios"]] == [
        "Baseline",
        "Contractor Augmentation",
        "Defer Low Value",
    ]


def test_adhoc_allocation(client):
    body = {
        "teams": [
            {"id": "team1", "name": "Engineering", "architect_fte": 1, "developer_fte": 4, "qa_fte": 1,
             "devops_fte": 1, "klo_tlm_hours_per_week": 0, "admin_pct": 25},
        ],
        "projects": [
            {"id": "p1", "name": "P1", "priority": 1,
             "team_estimates": [{"team_id": "team1", "design": 40, "development": 200, "testing": 80,
                                 "deployment": 20, "post_deploy": 10}]},
            {"id": "p2", "name": "P2", "priority": 2, "team_estimates": []},
        ],
        "contractors": [{"team_id": "team1", "role": "qa", "fte": 1, "weeks": 4, "start_week": 0}],
        "priority_overrides": {"p2": 0},
    }
    response = client.post("/api/allocations", json=body)
    assert response.status_code == 200
    payload = response.get_json()
    assert [a["projectId"] for a in payload["allocations"]] == ["p2", "p1"]
    p1 = payload["allocations"][1]
    assert p1["feasible"] is True
    assert p1["startWeek"] == 0
    assert payload["teamCapacities"][0]["roles"]["qa"]["fte"] == pytest.approx(2.0)


def test_adhoc_empty(client):
    payload = client.post("/api/allocations", json={}).get_json()
    assert payload == {"allocations": [], "teamCapacities": []}


def test_adhoc_rejects_bad_role(client):
    body = {"contractors": [{"team_id": "t", "role": "wizard", "fte": 1, "weeks": 1}]}
    response = client.post("/api/allocations", json=body)
    assert response.status_code == 400
    assert "unsupported role" in response.get_json()["error"]


def test_adhoc_requires_object(client):
    response = client.post("/api/allocations", json=[1, 2])
    assert response.status_code == 400
