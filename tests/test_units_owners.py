from strata.constants import Role


def test_committee_creates_unit_and_assigns_owner(client, login, create_user):
    owner = create_user(username="jane_doe")
    headers = login(create_user(role=Role.COMMITTEE))

    created = client.post("/units", json={"unit_number": "101", "unit_entitlements": 2, "floor_number": 1},
                          headers=headers)
    assert created.status_code == 201, created.text
    assert created.json()["owner_id"] is None

    assigned = client.patch(f"/units/{created.json()['id']}/owner", json={"owner_id": owner.id}, headers=headers)
    assert assigned.status_code == 200
    assert assigned.json()["owner_username"] == "jane_doe"


def test_unit_validation(client, login, create_user, create_unit):
    create_unit(unit_number="101")
    headers = login(create_user(role=Role.ADMIN))

    assert client.post("/units", json={"unit_number": "101", "unit_entitlements": 1}, headers=headers).status_code == 400
    assert client.post("/units", json={"unit_number": "102", "unit_entitlements": 0}, headers=headers).status_code == 400
    missing_owner = client.post("/units", json={"unit_number": "103", "unit_entitlements": 1, "owner_id": 999},
                                headers=headers)
    assert missing_owner.status_code == 404
    assert client.patch("/units/999/owner", json={"owner_id": None}, headers=headers).status_code == 404


def test_owners_cannot_manage_units(client, login, create_user):
    headers = login(create_user(role=Role.OWNER))
    assert client.get("/units").status_code == 200
    assert client.post("/units", json={"unit_number": "1", "unit_entitlements": 1}, headers=headers).status_code == 403


def test_owners_directory_is_owner_only(client, make_client, login, create_user, create_unit):
    owner = create_user(username="john_smith")
    create_unit(unit_number="101", owner=owner)
    create_unit(unit_number="102")

    login(owner)
    directory = client.get("/owners")
    assert directory.status_code == 200
    assert directory.json() == [
        {"unit_number": "101", "floor_number": 1, "unit_entitlements": 1, "owner_username": "john_smith"}
    ]

    for role in (Role.COMMITTEE, Role.ADMIN):
        other = make_client()
        login(create_user(role=role), http=other)
        assert other.get("/owners").status_code == 403
