"""Tests for protocol endpoints."""

import pytest
from httpx import AsyncClient

from emdr.schemas.protocol import dump_protocol


async def create(client: AsyncClient, headers: dict, payload: dict) -> dict:
    response = await client.post("/api/v1/protocols", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_list_protocols_empty(client: AsyncClient, auth_headers: dict):
    """Test listing without protocols."""
    response = await client.get("/api/v1/protocols", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_list_protocols_unauthorized(client: AsyncClient):
    """Test listing protocols without auth."""
    response = await client.get("/api/v1/protocols")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_protocol(client: AsyncClient, auth_headers: dict, standard_payload: dict):
    """Test creating a protocol stamps timestamps and keeps the id."""
    data = await create(client, auth_headers, standard_payload)

    assert data["id"] == standard_payload["id"]
    assert data["protocolType"] == "Reprozessieren"
    assert data["lastModified"] > 0
    assert data["createdAt"] > 0
    assert data["channel"][0]["stimulation"]["anzahlBewegungen"] == 24


@pytest.mark.asyncio
async def test_create_protocol_generates_id(
    client: AsyncClient, auth_headers: dict, standard_payload: dict
):
    """Test a missing id is generated on create."""
    payload = {k: v for k, v in standard_payload.items() if k != "id"}

    data = await create(client, auth_headers, payload)

    assert data["id"]


@pytest.mark.asyncio
async def test_create_protocol_duplicate_id(
    client: AsyncClient, auth_headers: dict, standard_payload: dict
):
    """Test creating the same id twice."""
    await create(client, auth_headers, standard_payload)

    response = await client.post(
        "/api/v1/protocols", json=standard_payload, headers=auth_headers
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_protocol_empty_channel(
    client: AsyncClient, auth_headers: dict, standard_payload: dict
):
    """Test a standard protocol needs at least one pair."""
    standard_payload["channel"] = []

    response = await client.post(
        "/api/v1/protocols", json=standard_payload, headers=auth_headers
    )

    assert response.status_code == 422
    data = response.json()
    assert data["errors"]["channel"] == "at least one pair required"
    assert "channel" in data["missingFields"]


@pytest.mark.asyncio
async def test_create_protocol_unknown_type(
    client: AsyncClient, auth_headers: dict, standard_payload: dict
):
    """Test an unknown type tag."""
    standard_payload["protocolType"] = "Hypnose"

    response = await client.post(
        "/api/v1/protocols", json=standard_payload, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["Code"] == 400


@pytest.mark.asyncio
async def test_create_protocol_lope_out_of_range(client: AsyncClient, auth_headers: dict):
    """Test out-of-range ratings are rejected."""
    response = await client.post(
        "/api/v1/protocols",
        json={
            "chiffre": "P-001",
            "datum": "2024-03-01",
            "protokollnummer": "1",
            "protocolType": "IRI",
            "lope_vorher": 11,
        },
        headers=auth_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_drops_foreign_fields(client: AsyncClient, auth_headers: dict):
    """Test fields of another variant are dropped."""
    data = await create(client, auth_headers, {
        "chiffre": "P-001",
        "datum": "2024-03-01",
        "protokollnummer": "1",
        "protocolType": "CIPOS",
        "startKnoten": "gehört zu Reprozessieren",
    })

    assert "startKnoten" not in data
    assert data["durchgaenge"] == []
    assert data["erster_kontakt"]["sud_vor_kontakt"] == 5


@pytest.mark.asyncio
async def test_get_protocol(client: AsyncClient, auth_headers: dict, standard_payload: dict):
    """Test loading a full protocol."""
    created = await create(client, auth_headers, standard_payload)

    response = await client.get(
        f"/api/v1/protocols/{created['id']}", headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json() == created


@pytest.mark.asyncio
async def test_get_protocol_not_found(client: AsyncClient, auth_headers: dict):
    """Test loading a missing protocol."""
    response = await client.get("/api/v1/protocols/missing", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_protocols_are_scoped_per_user(
    client: AsyncClient,
    auth_headers: dict,
    other_auth_headers: dict,
    standard_payload: dict,
):
    """Test another therapist cannot see a protocol."""
    created = await create(client, auth_headers, standard_payload)

    response = await client.get(
        f"/api/v1/protocols/{created['id']}", headers=other_auth_headers
    )
    assert response.status_code == 404

    response = await client.get("/api/v1/protocols", headers=other_auth_headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_update_protocol(client: AsyncClient, auth_headers: dict, standard_payload: dict):
    """Test updating keeps createdAt and advances lastModified."""
    created = await create(client, auth_headers, standard_payload)

    payload = dict(created)
    payload["startKnoten"] = "Neuer Startknoten"
    payload["createdAt"] = 1
    response = await client.put(
        f"/api/v1/protocols/{created['id']}", json=payload, headers=auth_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["startKnoten"] == "Neuer Startknoten"
    assert data["createdAt"] == created["createdAt"]
    assert data["lastModified"] > created["lastModified"]


@pytest.mark.asyncio
async def test_update_protocol_not_found(
    client: AsyncClient, auth_headers: dict, standard_payload: dict
):
    """Test updating a missing protocol."""
    response = await client.put(
        "/api/v1/protocols/missing", json=standard_payload, headers=auth_headers
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_protocol(client: AsyncClient, auth_headers: dict, standard_payload: dict):
    """Test deleting a protocol removes record and summary."""
    created = await create(client, auth_headers, standard_payload)

    response = await client.delete(
        f"/api/v1/protocols/{created['id']}", headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "success"

    response = await client.get("/api/v1/protocols", headers=auth_headers)
    assert response.json() == []

    response = await client.delete(
        f"/api/v1/protocols/{created['id']}", headers=auth_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_search_and_type_filter(
    client: AsyncClient, auth_headers: dict, protocol_factory
):
    """Test search over chiffre or protokollnummer and the type filter."""
    await create(client, auth_headers, dump_protocol(protocol_factory("P-001", "12")))
    await create(client, auth_headers, dump_protocol(protocol_factory("K-101", "7")))
    await create(client, auth_headers, {
        "chiffre": "K-102",
        "datum": "2024-03-02",
        "protokollnummer": "1",
        "protocolType": "IRI",
    })

    response = await client.get(
        "/api/v1/protocols", params={"search": "12"}, headers=auth_headers
    )
    assert [p["chiffre"] for p in response.json()] == ["P-001"]

    response = await client.get(
        "/api/v1/protocols", params={"search": "k-10"}, headers=auth_headers
    )
    assert {p["chiffre"] for p in response.json()} == {"K-101", "K-102"}

    response = await client.get(
        "/api/v1/protocols", params={"type": "IRI"}, headers=auth_headers
    )
    assert [p["chiffre"] for p in response.json()] == ["K-102"]


@pytest.mark.asyncio
async def test_list_ordered_by_last_modified(
    client: AsyncClient, auth_headers: dict, protocol_factory
):
    """Test the most recently saved protocol comes first."""
    first = await create(client, auth_headers, dump_protocol(protocol_factory("P-001")))
    later = protocol_factory("P-002", last_modified=first["lastModified"])
    second = await create(client, auth_headers, dump_protocol(later))

    response = await client.get("/api/v1/protocols", headers=auth_headers)

    items = response.json()
    assert [p["id"] for p in items] == [second["id"], first["id"]]
    assert set(items[0]) == {
        "id", "chiffre", "datum", "protokollnummer", "protocolType", "lastModified"
    }


@pytest.mark.asyncio
async def test_grouped(client: AsyncClient, auth_headers: dict, protocol_factory):
    """Test grouping by chiffre with numeric protocol order."""
    for chiffre, nummer in [("P-002", "3"), ("P-001", "10"), ("P-010", "2"), ("P-001", "2")]:
        await create(
            client, auth_headers, dump_protocol(protocol_factory(chiffre, nummer))
        )

    response = await client.get("/api/v1/protocols/grouped", headers=auth_headers)

    assert response.status_code == 200
    groups = response.json()
    assert [g["chiffre"] for g in groups] == ["P-001", "P-002", "P-010"]
    assert [p["protokollnummer"] for p in groups[0]["protocols"]] == ["2", "10"]


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, auth_headers: dict, protocol_factory):
    """Test per-type counts."""
    await create(client, auth_headers, dump_protocol(protocol_factory()))
    await create(client, auth_headers, {
        "chiffre": "P-001",
        "datum": "2024-03-02",
        "protokollnummer": "2",
        "protocolType": "Sicherer Ort",
    })

    response = await client.get("/api/v1/protocols/stats", headers=auth_headers)

    data = response.json()
    assert data["total"] == 2
    assert data["byType"]["Reprozessieren"] == 1
    assert data["byType"]["Sicherer Ort"] == 1
    assert data["byType"]["CIPOS"] == 0


@pytest.mark.asyncio
async def test_export_and_import_json(
    client: AsyncClient,
    auth_headers: dict,
    other_auth_headers: dict,
    standard_payload: dict,
):
    """Test the bulk export can be imported by another therapist."""
    await create(client, auth_headers, standard_payload)

    response = await client.get("/api/v1/protocols/export/json", headers=auth_headers)
    assert response.status_code == 200
    assert "EMDR_Protokolle_" in response.headers["content-disposition"]
    exported = response.json()
    assert len(exported) == 1

    records = exported + [{"chiffre": "ohne id"}, "kein Objekt"]
    response = await client.post(
        "/api/v1/protocols/import",
        json={"protocols": [r for r in records if isinstance(r, dict)]},
        headers=other_auth_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"imported": 1}

    response = await client.get("/api/v1/protocols", headers=other_auth_headers)
    assert [p["id"] for p in response.json()] == [standard_payload["id"]]


@pytest.mark.asyncio
async def test_export_single_json(client: AsyncClient, auth_headers: dict, standard_payload: dict):
    """Test exporting one protocol as JSON."""
    created = await create(client, auth_headers, standard_payload)

    response = await client.get(
        f"/api/v1/protocols/{created['id']}/export/json", headers=auth_headers
    )

    assert response.status_code == 200
    assert 'filename="EMDR_P-001_2024-03-01_1.json"' in response.headers["content-disposition"]
    assert response.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_export_single_pdf(client: AsyncClient, auth_headers: dict, standard_payload: dict):
    """Test exporting one protocol as PDF."""
    created = await create(client, auth_headers, standard_payload)

    response = await client.get(
        f"/api/v1/protocols/{created['id']}/export/pdf", headers=auth_headers
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_new_draft(client: AsyncClient):
    """Test building an empty draft."""
    response = await client.post(
        "/api/v1/protocols/drafts",
        json={"protocolType": "CIPOS", "chiffre": "P-001"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["protocolType"] == "CIPOS"
    assert data["chiffre"] == "P-001"
    assert data["id"]
    assert data["datum"]
    assert data["gegenwartsorientierung_vorher"]["prozent_gegenwartsorientierung"] == 50


@pytest.mark.asyncio
async def test_switch_type_untyped_draft(client: AsyncClient, standard_payload: dict):
    """Test a draft without a chosen type switches immediately."""
    response = await client.post(
        "/api/v1/protocols/drafts/switch-type",
        json={"draft": standard_payload, "targetType": "IRI", "typeSelected": False},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "editing"
    assert data["editor"] == "iri"
    assert data["draft"]["protocolType"] == "IRI"
    assert data["draft"]["chiffre"] == standard_payload["chiffre"]
    assert data["draft"]["id"] == standard_payload["id"]


@pytest.mark.asyncio
async def test_switch_type_needs_confirmation(client: AsyncClient, standard_payload: dict):
    """Test replacing a chosen type asks for confirmation first."""
    response = await client.post(
        "/api/v1/protocols/drafts/switch-type",
        json={"draft": standard_payload, "targetType": "CIPOS", "typeSelected": True},
    )

    data = response.json()
    assert data["state"] == "pending_confirmation"
    assert data["prompt"] == "Reprozessieren → CIPOS"
    assert data["draft"] == standard_payload

    response = await client.post(
        "/api/v1/protocols/drafts/switch-type",
        json={
            "draft": standard_payload,
            "targetType": "CIPOS",
            "typeSelected": True,
            "confirm": True,
        },
    )

    data = response.json()
    assert data["state"] == "editing"
    assert data["editor"] == "cipos"
    assert data["draft"]["durchgaenge"] == []


@pytest.mark.asyncio
async def test_validate(client: AsyncClient, standard_payload: dict):
    """Test validating a draft without saving."""
    response = await client.post("/api/v1/protocols/validate", json=standard_payload)
    assert response.json() == {"valid": True, "errors": {}, "missingFields": []}

    standard_payload["chiffre"] = " "
    standard_payload["channel"][0]["fragment"]["text"] = ""
    response = await client.post("/api/v1/protocols/validate", json=standard_payload)

    data = response.json()
    assert data["valid"] is False
    assert set(data["missingFields"]) == {"chiffre", "channel_0_fragment"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Test the health endpoint."""
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["timestamp"] > 0


@pytest.mark.asyncio
async def test_switch_type_accepts_type_aliases(client: AsyncClient, standard_payload: dict):
    """Test the draft may carry the internal type names."""
    standard_payload["protocolType"] = "Standard"

    response = await client.post(
        "/api/v1/protocols/drafts/switch-type",
        json={"draft": standard_payload, "targetType": "SichererOrt", "typeSelected": False},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["editor"] == "sicherer_ort"
    assert data["draft"]["protocolType"] == "Sicherer Ort"
    assert data["draft"]["id"] == standard_payload["id"]
