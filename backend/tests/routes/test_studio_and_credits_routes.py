# backend/tests/routes/test_studio_and_credits_routes.py
from studiobook.core.ulid_helper import generate_ulid
from studiobook.models.studio import Profile, ProfileRole


def test_catalog_lists_services_in_scope(client, seed, world, as_client):
    seed.service(world.studio, name="Hidden", is_public=False)
    seed.service(seed.studio(name="Elsewhere"), name="Elsewhere PT")

    response = client.get("/api/v1/studio/services", headers=as_client)

    assert response.status_code == 200
    assert [s["id"] for s in response.json()["services"]] == [world.service.id]


def test_trainers_in_scope(client, world, as_client):
    response = client.get("/api/v1/studio/trainers", headers=as_client)

    assert response.status_code == 200
    ids = {t["id"] for t in response.json()["trainers"]}
    assert ids == {world.owner_id, world.trainer.id}


def test_unaffiliated_client_sees_empty_catalog(client, seed):
    loner = seed.client()

    response = client.get("/api/v1/studio/services", headers={"X-Client-Id": loner.id})

    assert response.status_code == 200
    assert response.json()["services"] == []


def test_credit_summary(client, world, as_client):
    response = client.get("/api/v1/credits", headers=as_client)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 5
    assert body["status"] == "good"
    assert body["uses_lots"] is True
    assert body["lots"][0]["sessions_remaining"] == 5


def test_credit_history(client, world, as_client, session_start):
    client.post(
        "/api/v1/bookings",
        json={
            "service_id": world.service.id,
            "trainer_id": world.trainer.id,
            "scheduled_at": session_start.isoformat(),
        },
        headers=as_client,
    )

    response = client.get("/api/v1/credits/history", headers=as_client)

    assert response.status_code == 200
    reasons = sorted(entry["reason"] for entry in response.json())
    assert reasons == ["booking", "manual_addition"]


def test_credits_for_unknown_client(client):
    response = client.get("/api/v1/credits", headers={"X-Client-Id": "01HF4G12ABCDEF3456789XYZAB"})

    assert response.status_code == 404


def test_trainers_include_solo_practitioner(client, db, seed):
    practitioner = Profile(
        id=generate_ulid(), role=ProfileRole.SOLO_PRACTITIONER.value, first_name="Sam"
    )
    db.add(practitioner)
    db.commit()
    solo_client = seed.client(studio_id=practitioner.id)

    response = client.get("/api/v1/studio/trainers", headers={"X-Client-Id": solo_client.id})

    assert response.status_code == 200
    assert response.json()["trainers"] == [
        {
            "id": practitioner.id,
            "studio_id": practitioner.id,
            "staff_type": "owner",
            "first_name": "Sam",
            "last_name": None,
        }
    ]


def test_trainer_availability(client, seed, world, as_client, session_start):
    seed.booking(world.client, world.trainer.id, session_start)

    response = client.get(
        "/api/v1/studio/availability",
        params={"trainer_id": world.trainer.id, "date": "2026-03-04"},
        headers=as_client,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["trainer_id"] == world.trainer.id
    assert body["date"] == "2026-03-04"
    assert body["opening_hours_restricted"] is False
    assert len(body["busy"]) == 1
    assert body["busy"][0]["starts_at"].startswith("2026-03-04T10:00:00")
    assert world.client.id not in response.text


def test_availability_for_trainer_out_of_scope(client, seed, world, as_client):
    outsider = seed.trainer(seed.studio(name="Elsewhere"))

    response = client.get(
        "/api/v1/studio/availability",
        params={"trainer_id": outsider.id, "date": "2026-03-04"},
        headers=as_client,
    )

    assert response.status_code == 404


def test_availability_needs_a_valid_date(client, world, as_client):
    response = client.get(
        "/api/v1/studio/availability",
        params={"trainer_id": world.trainer.id, "date": "next week"},
        headers=as_client,
    )

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"
