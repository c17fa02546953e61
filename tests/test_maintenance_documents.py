from strata.constants import Role


def test_owner_submits_and_sees_only_own_requests(client, make_client, login, create_user, create_unit):
    owner = create_user()
    unit = create_unit(owner=owner)
    headers = login(owner)

    created = client.post(
        "/maintenance",
        json={"title": "Leaking tap in bathroom", "description": "Dripping constantly.", "unit_id": unit.id},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    assert created.json()["status"] == "pending"
    assert created.json()["unit_number"] == unit.unit_number

    neighbour = make_client()
    neighbour_headers = login(create_user(), http=neighbour)
    neighbour.post(
        "/maintenance",
        json={"title": "Elevator noise", "description": "Strange noises between floors."},
        headers=neighbour_headers,
    )

    assert [r["title"] for r in client.get("/maintenance").json()] == ["Leaking tap in bathroom"]

    committee = make_client()
    login(create_user(role=Role.COMMITTEE), http=committee)
    assert len(committee.get("/maintenance").json()) == 2


def test_owner_cannot_reference_another_units_request(client, login, create_user, create_unit):
    unit = create_unit(owner=create_user())
    headers = login(create_user())

    response = client.post(
        "/maintenance", json={"title": "AC broken", "description": "Not cooling.", "unit_id": unit.id}, headers=headers
    )

    assert response.status_code == 403


def test_blank_request_is_rejected(client, login, create_user):
    headers = login(create_user())
    response = client.post("/maintenance", json={"title": " ", "description": ""}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Please fill in all fields."


def test_committee_updates_status(client, make_client, login, create_user):
    owner_headers = login(create_user())
    request_id = client.post(
        "/maintenance", json={"title": "Pool filter", "description": "Water is cloudy."}, headers=owner_headers
    ).json()["id"]
    assert client.patch(f"/maintenance/{request_id}", json={"status": "completed"},
                        headers=owner_headers).status_code == 403

    committee = make_client()
    headers = login(create_user(role=Role.COMMITTEE), http=committee)
    updated = committee.patch(f"/maintenance/{request_id}", json={"status": "in_progress"}, headers=headers)

    assert updated.status_code == 200
    assert updated.json()["status"] == "in_progress"
    assert committee.patch("/maintenance/999", json={"status": "completed"}, headers=headers).status_code == 404


def test_documents_metadata(client, make_client, login, create_user):
    admin_headers = login(create_user(role=Role.ADMIN, username="admin"))
    created = client.post(
        "/documents",
        json={"title": "Building Insurance Certificate", "file_path": "/documents/insurance.pdf",
              "document_type": "insurance"},
        headers=admin_headers,
    )
    assert created.status_code == 201, created.text
    assert created.json()["uploaded_by_name"] == "admin"

    bad_type = client.post(
        "/documents", json={"title": "X", "file_path": "/x.pdf", "document_type": "memes"}, headers=admin_headers
    )
    assert bad_type.status_code == 400

    owner = make_client()
    owner_headers = login(create_user(), http=owner)
    assert [d["title"] for d in owner.get("/documents").json()] == ["Building Insurance Certificate"]
    assert owner.post(
        "/documents", json={"title": "Y", "file_path": "/y.pdf"}, headers=owner_headers
    ).status_code == 403
