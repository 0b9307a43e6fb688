def test_health_returns_200(client):
    r = client.get("/health")
    assert r.status_code == 200
    js = r.json()
    assert js["status"] == "ok"
    assert js["version"]


def test_pricing_table(client):
    r = client.get("/featured/pricing")
    assert r.status_code == 200
    rows = {p["duration_months"]: p for p in r.json()}
    assert sorted(rows) == [1, 3, 6]
    assert rows[1]["amount"] == 2900
    assert rows[3]["amount"] == 7500
    assert rows[6]["amount"] == 14000
    assert rows[3]["display"] == "$75"
