import uuid

from conftest import auth_headers, machinery, report_payload


def test_login_and_me(client, field_lead, project):
    resp = client.post("/auth/login", json={"identifier": "lead", "password": "s3cret-pass"})
    assert resp.status_code == 200
    token = resp.json()["data"]["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()["data"]
    assert me["username"] == "lead"
    assert me["role"] == "field_lead"
    assert me["project_ids"] == [str(project.id)]


def test_login_rejects_bad_password(client, field_lead):
    resp = client.post("/auth/login", json={"identifier": "lead", "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["error"]["kind"] == "unauthorized"


def test_refresh_token_is_not_an_access_token(client, field_lead):
    tokens = client.post("/auth/login", json={"identifier": "lead", "password": "s3cret-pass"}).json()["data"]

    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert resp.status_code == 401

    resp = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    assert resp.json()["data"]["access_token"]


def test_only_admin_manages_users(client, admin, supervisor, project):
    payload = {
        "username": "nuevo",
        "name": "Nuevo Jefe",
        "password": "otra-clave-1",
        "role": "field_lead",
        "project_ids": [str(project.id)],
    }
    assert client.post("/auth/users", json=payload, headers=auth_headers(supervisor)).status_code == 403

    resp = client.post("/auth/users", json=payload, headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["data"]["project_ids"] == [str(project.id)]

    resp = client.post("/auth/users", json=payload, headers=auth_headers(admin))
    assert resp.status_code == 409
    assert resp.json()["error"]["kind"] == "conflict"


def test_catalog_values(client, field_lead, supervisor):
    resp = client.post("/catalogs/material", json={"name": " Tepetate ", "unit": "m3"}, headers=auth_headers(field_lead))
    assert resp.status_code == 201
    item = resp.json()["data"]
    assert item["name"] == "Tepetate"

    dup = client.post("/catalogs/material", json={"name": "Tepetate"}, headers=auth_headers(field_lead))
    assert dup.status_code == 409

    listed = client.get("/catalogs/material", headers=auth_headers(field_lead)).json()["data"]
    assert [i["name"] for i in listed] == ["Tepetate"]

    resp = client.delete(f"/catalogs/material/{item['id']}", headers=auth_headers(supervisor))
    assert resp.status_code == 200
    assert client.get("/catalogs/material", headers=auth_headers(field_lead)).json()["data"] == []


def test_unknown_catalog_kind(client, admin):
    resp = client.get("/catalogs/planets", headers=auth_headers(admin))
    assert resp.status_code == 422
    assert resp.json()["error"]["kind"] == "validation_error"


def test_vehicle_registration(client, supervisor, field_lead, project):
    payload = {
        "name": "Excavadora 320",
        "type": "Excavadora",
        "economic_number": " ex-07 ",
        "odometer_start": 5400,
        "project_ids": [str(project.id)],
    }
    assert client.post("/vehicles", json=payload, headers=auth_headers(field_lead)).status_code == 403

    resp = client.post("/vehicles", json=payload, headers=auth_headers(supervisor))
    assert resp.status_code == 201
    vehicle = resp.json()["data"]
    assert vehicle["economic_number"] == "EX-07"
    assert vehicle["odometer_end"] == 5400
    assert vehicle["hours_operated"] == 0
    assert vehicle["project_ids"] == [str(project.id)]

    again = client.post("/vehicles", json=payload, headers=auth_headers(supervisor))
    assert again.status_code == 409

    found = client.get("/vehicles/by-number/ex-07", headers=auth_headers(field_lead)).json()["data"]
    assert found["id"] == vehicle["id"]

    listed = client.get(f"/vehicles?project_id={project.id}", headers=auth_headers(field_lead)).json()["data"]
    assert [v["id"] for v in listed] == [vehicle["id"]]


def test_recompute_endpoint_repairs_after_delete(client, admin, project, make_vehicle):
    vehicle = make_vehicle(odometer_start=100)
    created = client.post(
        "/reports",
        json=report_payload(project, machinery_entries=[machinery(vehicle, 100, 130)]),
        headers=auth_headers(admin),
    ).json()["data"]
    client.delete(f"/reports/{created['id']}", headers=auth_headers(admin))

    stale = client.get(f"/vehicles/{vehicle.id}", headers=auth_headers(admin)).json()["data"]
    assert stale["odometer_end"] == 130

    resp = client.post(f"/vehicles/{vehicle.id}/recompute", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["data"]["odometer_end"] == 100
    assert resp.json()["data"]["hours_operated"] == 0


def test_project_membership(client, admin, field_lead):
    resp = client.post(
        "/projects",
        json={"name": "Libramiento Sur", "member_ids": [str(field_lead.id)]},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201
    created = resp.json()["data"]

    me = client.get("/auth/me", headers=auth_headers(field_lead)).json()["data"]
    assert created["id"] in me["project_ids"]


def test_personnel_roster(client, supervisor, field_lead, project):
    role = client.post(
        "/catalogs/personnel_role", json={"name": "Operador"}, headers=auth_headers(supervisor),
    ).json()["data"]

    resp = client.post(
        "/personnel",
        json={"name": "Juan Pérez", "role_id": role["id"], "project_ids": [str(project.id)]},
        headers=auth_headers(supervisor),
    )
    assert resp.status_code == 201
    person = resp.json()["data"]
    assert person["project_ids"] == [str(project.id)]

    roster = client.get(f"/personnel?project_id={project.id}", headers=auth_headers(field_lead)).json()["data"]
    assert [p["name"] for p in roster] == ["Juan Pérez"]

    client.delete(f"/personnel/{person['id']}", headers=auth_headers(supervisor))
    assert client.get("/personnel", headers=auth_headers(field_lead)).json()["data"] == []


def test_unknown_project_id_rejects_assignment(client, admin, project):
    missing = [str(project.id), str(uuid.uuid4())]
    requests = [
        ("/auth/users", {"username": "fantasma", "name": "Sin Obra", "password": "otra-clave-1",
                         "role": "field_lead", "project_ids": missing}),
        ("/vehicles", {"name": "Volteo", "type": "Camión", "economic_number": "CV-99",
                       "odometer_start": 0, "project_ids": missing}),
        ("/personnel", {"name": "Pedro Ruiz", "project_ids": missing}),
    ]
    for path, payload in requests:
        resp = client.post(path, json=payload, headers=auth_headers(admin))
        assert resp.status_code == 400, path
        assert resp.json()["error"] == {"kind": "bad_request", "message": "Unknown project id"}

    assert client.get("/vehicles", headers=auth_headers(admin)).json()["data"] == []
    assert client.get("/personnel", headers=auth_headers(admin)).json()["data"] == []
