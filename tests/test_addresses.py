"""Tests for the address book endpoints."""
import uuid

import pytest

from app.models import Address
from conftest import API, register_user, login_user, bearer


def create_address(client, headers, nickname="home", address="1 Main St", is_default=False):
    return client.post(f"{API}/addresses", headers=headers, json={
        "nickname": nickname,
        "address": address,
        "is_default": is_default,
    })


@pytest.fixture
def other_headers(client):
    register_user(client, email="other@x.com")
    return bearer(login_user(client, email="other@x.com").json()["access_token"])


class TestAddressCrud:
    """Tests for creating, reading, updating and deleting addresses."""

    def test_create(self, client, auth_headers, registered_user):
        response = create_address(client, auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["nickname"] == "home"
        assert data["address"] == "1 Main St"
        assert data["is_default"] is False
        assert data["user_id"] == registered_user["id"]

    def test_invalid_nickname(self, client, auth_headers):
        assert create_address(client, auth_headers, nickname="cottage").status_code == 422

    def test_list_only_own(self, client, auth_headers, other_headers):
        create_address(client, auth_headers, address="1 Main St")
        create_address(client, auth_headers, nickname="work", address="9 Office Rd")
        create_address(client, other_headers, address="5 Elsewhere Ln")

        response = client.get(f"{API}/addresses", headers=auth_headers)

        assert response.status_code == 200
        assert {a["address"] for a in response.json()} == {"1 Main St", "9 Office Rd"}

    def test_get(self, client, auth_headers):
        address_id = create_address(client, auth_headers).json()["id"]

        response = client.get(f"{API}/addresses/{address_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == address_id

    def test_update(self, client, auth_headers):
        address_id = create_address(client, auth_headers).json()["id"]

        response = client.patch(f"{API}/addresses/{address_id}", headers=auth_headers, json={
            "nickname": "other",
            "address": "2 New St",
        })

        assert response.status_code == 200
        assert response.json()["nickname"] == "other"
        assert response.json()["address"] == "2 New St"

    def test_delete(self, client, test_db, auth_headers):
        address_id = create_address(client, auth_headers).json()["id"]

        response = client.delete(f"{API}/addresses/{address_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Address deleted successfully"
        assert test_db.query(Address).count() == 0

    def test_missing_address(self, client, auth_headers):
        missing = uuid.uuid4()

        assert client.get(f"{API}/addresses/{missing}", headers=auth_headers).status_code == 404
        assert client.patch(f"{API}/addresses/{missing}", headers=auth_headers, json={}).status_code == 404
        assert client.delete(f"{API}/addresses/{missing}", headers=auth_headers).status_code == 404


class TestAddressOwnership:
    """Tests that addresses of other users are off limits."""

    def test_other_user_forbidden(self, client, test_db, auth_headers, other_headers):
        address_id = create_address(client, auth_headers).json()["id"]
        url = f"{API}/addresses/{address_id}"

        assert client.get(url, headers=other_headers).status_code == 403
        assert client.patch(url, headers=other_headers, json={"address": "Stolen"}).status_code == 403
        assert client.delete(url, headers=other_headers).status_code == 403

        assert test_db.query(Address).one().address == "1 Main St"


class TestDefaultAddress:
    """Tests for the single-default rule."""

    def defaults(self, client, headers):
        addresses = client.get(f"{API}/addresses", headers=headers).json()
        return [a["address"] for a in addresses if a["is_default"]]

    def test_new_default_replaces_old(self, client, auth_headers):
        create_address(client, auth_headers, address="1 Main St", is_default=True)
        create_address(client, auth_headers, nickname="work", address="9 Office Rd", is_default=True)

        assert self.defaults(client, auth_headers) == ["9 Office Rd"]

    def test_update_to_default(self, client, auth_headers):
        create_address(client, auth_headers, address="1 Main St", is_default=True)
        work_id = create_address(client, auth_headers, nickname="work", address="9 Office Rd").json()["id"]

        response = client.patch(f"{API}/addresses/{work_id}", headers=auth_headers, json={"is_default": True})

        assert response.status_code == 200
        assert self.defaults(client, auth_headers) == ["9 Office Rd"]

    def test_default_is_per_user(self, client, auth_headers, other_headers):
        create_address(client, auth_headers, address="1 Main St", is_default=True)
        create_address(client, other_headers, address="5 Elsewhere Ln", is_default=True)

        assert self.defaults(client, auth_headers) == ["1 Main St"]
        assert self.defaults(client, other_headers) == ["5 Elsewhere Ln"]

    def test_unset_default(self, client, auth_headers):
        address_id = create_address(client, auth_headers, is_default=True).json()["id"]

        client.patch(f"{API}/addresses/{address_id}", headers=auth_headers, json={"is_default": False})

        assert self.defaults(client, auth_headers) == []
