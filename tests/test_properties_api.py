"""Tests for property administration endpoints."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from hostenly.api.dependencies import (
    AuthContext,
    get_knowledge_indexer,
    get_knowledge_store,
    get_property_store,
    get_supabase_client,
    require_account,
)
from hostenly.core.errors import PropertyNotFoundError
from hostenly.core.schemas_messaging import Property, PropertyDetails
from hostenly.main import app

ACCOUNT_ID = uuid4()


def make_property(account_id=ACCOUNT_ID, **overrides) -> Property:
    fields = {
        "id": uuid4(),
        "account_id": account_id,
        "name": "Seaside Loft",
        "channel_address": "+15550001111",
    }
    fields.update(overrides)
    return Property(**fields)


@pytest.fixture
def properties():
    return MagicMock()


@pytest.fixture
def indexer():
    return MagicMock()


@pytest.fixture
def knowledge_store():
    return MagicMock()


@pytest.fixture
def client(properties, indexer, knowledge_store):
    app.dependency_overrides[require_account] = lambda: AuthContext(ACCOUNT_ID, token="test-token")
    app.dependency_overrides[get_property_store] = lambda: properties
    app.dependency_overrides[get_knowledge_indexer] = lambda: indexer
    app.dependency_overrides[get_knowledge_store] = lambda: knowledge_store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_requests_without_token_are_rejected():
    app.dependency_overrides[get_supabase_client] = lambda: MagicMock()
    try:
        response = TestClient(app).get("/v1/properties/")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401


def test_list_properties_for_caller(client, properties):
    properties.list_properties.return_value = [make_property()]

    response = client.get("/v1/properties/")

    assert response.status_code == 200
    assert response.json()[0]["name"] == "Seaside Loft"
    properties.list_properties.assert_called_once_with(ACCOUNT_ID)


def test_create_property_strips_channel_prefix(client, properties):
    properties.create_property.return_value = make_property()

    response = client.post(
        "/v1/properties/",
        json={"name": "Seaside Loft", "channel_address": "whatsapp:+15550001111"},
    )

    assert response.status_code == 201
    properties.create_property.assert_called_once_with(ACCOUNT_ID, "Seaside Loft", "+15550001111")


def test_duplicate_channel_address_conflicts(client, properties):
    properties.create_property.side_effect = ValueError("Channel address already registered")

    response = client.post(
        "/v1/properties/", json={"name": "Seaside Loft", "channel_address": "+15550001111"}
    )

    assert response.status_code == 409


def test_other_accounts_property_is_forbidden(client, properties):
    prop = make_property(account_id=uuid4())
    properties.get_property.return_value = prop

    response = client.get(f"/v1/properties/{prop.id}")

    assert response.status_code == 403


def test_missing_property_is_not_found(client, properties):
    properties.get_property.side_effect = PropertyNotFoundError("nope")

    response = client.get(f"/v1/properties/{uuid4()}")

    assert response.status_code == 404


def test_update_details_saves_then_reindexes(client, properties, indexer):
    prop = make_property()
    details = PropertyDetails(check_in_time="3 PM", faqs={"Pets?": "No"})
    properties.get_property.return_value = prop
    properties.upsert_details.return_value = details

    response = client.put(f"/v1/properties/{prop.id}/details", json=details.model_dump())

    assert response.status_code == 200
    assert response.json()["check_in_time"] == "3 PM"
    indexer.reindex_property_details.assert_called_once_with(prop.id, details)


def test_reindex_failure_reports_bad_gateway(client, properties, indexer):
    prop = make_property()
    properties.get_property.return_value = prop
    properties.upsert_details.return_value = PropertyDetails(check_in_time="3 PM")
    indexer.reindex_property_details.side_effect = RuntimeError("openai down")

    response = client.put(f"/v1/properties/{prop.id}/details", json={"check_in_time": "3 PM"})

    assert response.status_code == 502
    properties.upsert_details.assert_called_once()


def test_toggle_status_flips_active_flag(client, properties):
    prop = make_property(is_active=True)
    properties.get_property.return_value = prop
    properties.set_active.return_value = prop.model_copy(update={"is_active": False})

    response = client.patch(f"/v1/properties/{prop.id}/toggle-status")

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    properties.set_active.assert_called_once_with(prop.id, False)


def test_delete_removes_knowledge_then_property(client, properties, knowledge_store):
    prop = make_property()
    properties.get_property.return_value = prop

    response = client.delete(f"/v1/properties/{prop.id}")

    assert response.status_code == 204
    knowledge_store.delete_property_chunks.assert_called_once_with(prop.id)
    properties.delete_property.assert_called_once_with(prop.id)


def test_qr_code_links_to_channel_number(client, properties):
    prop = make_property(channel_address="+1 (555) 000-1111")
    properties.get_property.return_value = prop

    response = client.get(f"/v1/properties/{prop.id}/qr-code")

    assert response.status_code == 200
    data = response.json()
    assert data["whatsapp_link"] == "https://wa.me/15550001111"
    assert data["qr_code_url"].endswith("data=https%3A%2F%2Fwa.me%2F15550001111")
    assert "size=300x300" in data["qr_code_url"]
