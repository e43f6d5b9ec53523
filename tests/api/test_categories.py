"""Tests for category API endpoints."""

import pytest
from httpx import AsyncClient

from tests.helpers import auth_headers

IMAGE = "https://cdn.example.com/cat.png"


@pytest.mark.api
class TestReadCategories:
    async def test_empty_list(self, client: AsyncClient):
        response = await client.get("/category")

        assert response.status_code == 200
        assert response.json() == []

    async def test_public_list(self, client: AsyncClient, category):
        response = await client.get("/category")

        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["Keyboards"]

    async def test_details_embed_products(self, client: AsyncClient, category, make_product):
        await make_product("Tenkeyless", price="80")

        response = await client.get(f"/category/details/{category.category_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Keyboards"
        assert [(p["name"], p["price"]) for p in data["products"]] == [("Tenkeyless", "80.00")]

    async def test_all_details(self, client: AsyncClient, category, make_product):
        await make_product("Tenkeyless")

        response = await client.get("/category/details")

        assert response.status_code == 200
        assert len(response.json()[0]["products"]) == 1

    async def test_single_category_needs_session(self, client: AsyncClient, category, test_user):
        anonymous = await client.get(f"/category/{category.category_id}")
        signed_in = await client.get(
            f"/category/{category.category_id}", headers=auth_headers(test_user)
        )

        assert anonymous.status_code == 401
        assert signed_in.status_code == 200

    async def test_unknown_details(self, client: AsyncClient):
        response = await client.get("/category/details/999")

        assert response.status_code == 404


@pytest.mark.api
class TestWriteCategories:
    async def test_admin_creates(self, client: AsyncClient, admin_user):
        response = await client.post(
            "/category",
            json={"name": "Mice", "image_url": IMAGE},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 201
        assert response.json()["name"] == "Mice"

    async def test_user_cannot_create(self, client: AsyncClient, test_user):
        response = await client.post(
            "/category",
            json={"name": "Mice", "image_url": IMAGE},
            headers=auth_headers(test_user),
        )

        assert response.status_code == 403

    async def test_duplicate_name_any_case(self, client: AsyncClient, admin_user, category):
        response = await client.post(
            "/category",
            json={"name": "KEYBOARDS", "image_url": IMAGE},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 409

    async def test_update(self, client: AsyncClient, admin_user, category):
        response = await client.put(
            f"/category/{category.category_id}",
            json={"name": "Boards"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Boards"

    async def test_delete_empty_category(self, client: AsyncClient, admin_user, category):
        response = await client.delete(
            f"/category/{category.category_id}", headers=auth_headers(admin_user)
        )

        assert response.status_code == 200

    async def test_delete_category_with_products(
        self, client: AsyncClient, admin_user, category, make_product
    ):
        await make_product("Still here")

        response = await client.delete(
            f"/category/{category.category_id}", headers=auth_headers(admin_user)
        )

        assert response.status_code == 409
