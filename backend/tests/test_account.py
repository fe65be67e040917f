import pytest

from .utils import register_parent

pytestmark = pytest.mark.anyio("asyncio")


async def test_update_profile_names(async_client, store):
    headers, profile_id = register_parent(store)

    resp = await async_client.patch(
        "/api/profile", headers=headers, json={"firstName": "Inès", "lastName": "Petit"}
    )

    assert resp.status_code == 200, resp.text
    assert resp.json()["firstName"] == "Inès"
    assert store.profiles[profile_id]["last_name"] == "Petit"


async def test_profile_update_ignores_subscription_fields(async_client, store):
    headers, profile_id = register_parent(store)

    resp = await async_client.patch(
        "/api/profile", headers=headers, json={"subscriptionStatus": "active"}
    )

    assert resp.status_code == 200
    assert store.profiles[profile_id]["subscription_status"] is None


async def test_children_crud(async_client, store):
    headers, profile_id = register_parent(store)

    created = await async_client.post(
        "/api/children", headers=headers, json={"name": "Léa", "schoolLevel": "CM2"}
    )
    assert created.status_code == 201, created.text
    child_id = created.json()["id"]
    assert created.json()["parentId"] == profile_id

    listed = await async_client.get("/api/children", headers=headers)
    assert [child["name"] for child in listed.json()] == ["Léa"]

    updated = await async_client.patch(
        f"/api/children/{child_id}", headers=headers, json={"schoolLevel": "6eme"}
    )
    assert updated.status_code == 200
    assert updated.json()["schoolLevel"] == "6eme"
    assert updated.json()["name"] == "Léa"

    deleted = await async_client.delete(f"/api/children/{child_id}", headers=headers)
    assert deleted.status_code == 204
    assert store.children == {}


async def test_children_are_scoped_to_parent(async_client, store):
    headers, _ = register_parent(store)
    other = store.add_profile()
    child = store.add_child(other["id"])

    listed = await async_client.get("/api/children", headers=headers)
    assert listed.json() == []

    updated = await async_client.patch(
        f"/api/children/{child['id']}", headers=headers, json={"name": "Intrus"}
    )
    assert updated.status_code == 404

    deleted = await async_client.delete(f"/api/children/{child['id']}", headers=headers)
    assert deleted.status_code == 404
    assert child["id"] in store.children


async def test_malformed_child_id_is_rejected(async_client, store):
    headers, _ = register_parent(store)

    updated = await async_client.patch("/api/children/nope", headers=headers, json={"name": "Zoé"})
    deleted = await async_client.delete("/api/children/nope", headers=headers)

    assert updated.status_code == 422
    assert deleted.status_code == 422


async def test_child_name_is_required(async_client, store):
    headers, _ = register_parent(store)
    resp = await async_client.post("/api/children", headers=headers, json={"name": ""})
    assert resp.status_code == 422
