from models.holiday import Holiday
from security.rbac import Role


def test_add_range_skips_existing(client_for):
    c, _, headers = client_for(Role.MANAGER)
    first = c.post("/holidays", json={"start_date": "2024-04-13", "name": "Songkran"}, headers=headers)
    assert first.status_code == 201

    resp = c.post("/holidays", json={"start_date": "2024-04-12", "end_date": "2024-04-15", "name": "Songkran"},
                  headers=headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert [h["date"] for h in body["created"]] == ["2024-04-12", "2024-04-14", "2024-04-15"]
    assert body["skipped"] == ["2024-04-13"]
    assert Holiday.query.count() == 4


def test_range_limit(client_for):
    c, _, headers = client_for(Role.MANAGER)
    resp = c.post("/holidays", json={"start_date": "2024-01-01", "end_date": "2024-01-31", "name": "Too long"},
                  headers=headers)
    assert resp.status_code == 400


def test_employees_cannot_add(client_for):
    c, _, headers = client_for()
    assert c.post("/holidays", json={"start_date": "2024-01-01", "name": "New Year"},
                  headers=headers).status_code == 403


def test_list_by_year_and_delete(client_for):
    c, _, headers = client_for(Role.MANAGER)
    c.post("/holidays", json={"start_date": "2023-12-31", "end_date": "2024-01-01", "name": "New Year"},
           headers=headers)

    rows = c.get("/holidays?year=2024").get_json()
    assert [h["date"] for h in rows] == ["2024-01-01"]

    assert c.delete(f"/holidays/{rows[0]['id']}", headers=headers).status_code == 200
    assert c.get("/holidays?year=2024").get_json() == []
    assert c.delete(f"/holidays/{rows[0]['id']}", headers=headers).status_code == 404
