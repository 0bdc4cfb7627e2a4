"""Project API tests.

Covers:
1. Project CRUD and patch semantics
2. Visibility: private, public, granted
3. Columns / labels / states under a project
4. Grants (collaborator permissions)
5. Cascading delete
"""

import asyncio

import pytest

from conftest import bearer, login

MISSING = "00000000-0000-0000-0000-000000000000"


async def _create_project(client, headers, name="board", public=False):
    r = await client.post("/projects", json={"name": name, "public": public}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


async def _grant(client, headers, project_id, user_id, permission):
    r = await client.put(
        f"/projects/{project_id}/permissions/{user_id}",
        json={"permission": permission},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    return r.json()


# ═══════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_project_owner_is_caller(client, alice, alice_headers):
    project = await _create_project(client, alice_headers, "roadmap")
    assert project["name"] == "roadmap"
    assert project["public"] is False
    assert project["owner_id"] == str(alice.id)


@pytest.mark.asyncio
async def test_create_project_requires_auth(client):
    r = await client.post("/projects", json={"name": "x"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_create_project_empty_name_400(client, alice_headers):
    r = await client.post("/projects", json={"name": ""}, headers=alice_headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_get_project_detail(client, alice_headers):
    project = await _create_project(client, alice_headers)
    pid = project["id"]
    await client.post(f"/projects/{pid}/columns", json={"name": "Done", "index": 2}, headers=alice_headers)
    await client.post(f"/projects/{pid}/columns", json={"name": "Todo", "index": 0}, headers=alice_headers)
    await client.post(f"/projects/{pid}/labels", json={"name": "bug"}, headers=alice_headers)
    await client.post(f"/projects/{pid}/states", json={"name": "open"}, headers=alice_headers)

    r = await client.get(f"/projects/{pid}", headers=alice_headers)
    assert r.status_code == 200
    detail = r.json()
    assert [c["name"] for c in detail["columns"]] == ["Todo", "Done"]
    assert [lb["name"] for lb in detail["labels"]] == ["bug"]
    assert [s["name"] for s in detail["states"]] == ["open"]


@pytest.mark.asyncio
async def test_get_missing_project_404(client, alice_headers):
    r = await client.get(f"/projects/{MISSING}", headers=alice_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_update_only_sent_fields(client, alice_headers):
    project = await _create_project(client, alice_headers, "before", public=True)
    r = await client.put(
        f"/projects/{project['id']}", json={"name": "after"}, headers=alice_headers
    )
    assert r.status_code == 200
    assert r.json()["name"] == "after"
    assert r.json()["public"] is True


@pytest.mark.asyncio
async def test_transfer_ownership(client, alice_headers, bob, bob_headers):
    project = await _create_project(client, alice_headers)
    r = await client.put(
        f"/projects/{project['id']}", json={"owner_id": str(bob.id)}, headers=alice_headers
    )
    assert r.status_code == 200
    assert r.json()["owner_id"] == str(bob.id)

    # Alice is now a stranger to her old private board
    r = await client.get(f"/projects/{project['id']}", headers=alice_headers)
    assert r.status_code == 403
    r = await client.get(f"/projects/{project['id']}", headers=bob_headers)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_transfer_to_missing_user_400(client, alice_headers):
    project = await _create_project(client, alice_headers)
    r = await client.put(
        f"/projects/{project['id']}", json={"owner_id": MISSING}, headers=alice_headers
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_editor_can_rename_but_not_publish(client, alice_headers, bob, bob_headers):
    project = await _create_project(client, alice_headers)
    await _grant(client, alice_headers, project["id"], bob.id, "editor")

    r = await client.put(f"/projects/{project['id']}", json={"name": "renamed"}, headers=bob_headers)
    assert r.status_code == 200

    r = await client.put(f"/projects/{project['id']}", json={"public": True}, headers=bob_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_admin_can_do_anything(client, alice_headers, admin_headers):
    project = await _create_project(client, alice_headers)
    r = await client.get(f"/projects/{project['id']}", headers=admin_headers)
    assert r.status_code == 200
    r = await client.delete(f"/projects/{project['id']}", headers=admin_headers)
    assert r.status_code == 200


# ═══════════════════════════════════════════════════════════
# Visibility
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_private_project_forbidden_to_stranger(client, alice_headers, bob_headers):
    project = await _create_project(client, alice_headers)
    r = await client.get(f"/projects/{project['id']}", headers=bob_headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Insufficient permissions"


@pytest.mark.asyncio
async def test_public_project_readable_not_writable(client, alice_headers, bob_headers):
    project = await _create_project(client, alice_headers, public=True)
    pid = project["id"]

    assert (await client.get(f"/projects/{pid}", headers=bob_headers)).status_code == 200
    r = await client.post(f"/projects/{pid}/columns", json={"name": "x"}, headers=bob_headers)
    assert r.status_code == 403
    r = await client.put(f"/projects/{pid}", json={"name": "hijack"}, headers=bob_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_list_projects_visibility(client, alice_headers, bob, bob_headers, admin_headers):
    private = await _create_project(client, alice_headers, "private")
    public = await _create_project(client, alice_headers, "public", public=True)
    shared = await _create_project(client, alice_headers, "shared")
    await _grant(client, alice_headers, shared["id"], bob.id, "reader")
    own = await _create_project(client, bob_headers, "bobs")

    r = await client.get("/projects/list", headers=bob_headers)
    assert r.status_code == 200
    names = {p["name"] for p in r.json()["items"]}
    assert names == {"public", "shared", "bobs"}
    assert r.json()["total"] == 3
    assert private["id"] not in {p["id"] for p in r.json()["items"]}

    r = await client.get("/projects/list", headers=admin_headers)
    assert r.json()["total"] == 4
    assert own["id"] in {p["id"] for p in r.json()["items"]}
    assert public["id"] in {p["id"] for p in r.json()["items"]}


@pytest.mark.asyncio
async def test_list_projects_bad_pagination(client, alice_headers):
    r = await client.get("/projects/list", params={"count": 500}, headers=alice_headers)
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Columns / labels / states
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_column_crud(client, alice_headers):
    project = await _create_project(client, alice_headers)
    pid = project["id"]

    r = await client.post(
        f"/projects/{pid}/columns",
        json={"name": "Doing", "card_limit": 3, "index": 1},
        headers=alice_headers,
    )
    assert r.status_code == 201
    column = r.json()
    assert column["card_limit"] == 3
    assert column["project_id"] == pid

    r = await client.put(
        f"/projects/{pid}/columns/{column['id']}", json={"card_limit": 5}, headers=alice_headers
    )
    assert r.status_code == 200
    assert r.json()["card_limit"] == 5
    assert r.json()["name"] == "Doing"

    r = await client.delete(f"/projects/{pid}/columns/{column['id']}", headers=alice_headers)
    assert r.status_code == 200
    r = await client.get(f"/projects/{pid}/columns", headers=alice_headers)
    assert r.json() == []


@pytest.mark.asyncio
async def test_negative_card_limit_400(client, alice_headers):
    project = await _create_project(client, alice_headers)
    r = await client.post(
        f"/projects/{project['id']}/columns",
        json={"name": "x", "card_limit": -1},
        headers=alice_headers,
    )
    assert r.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["labels", "states"])
async def test_named_children(client, alice_headers, kind):
    project = await _create_project(client, alice_headers)
    pid = project["id"]

    r = await client.post(f"/projects/{pid}/{kind}", json={"name": "one"}, headers=alice_headers)
    assert r.status_code == 201
    child_id = r.json()["id"]

    r = await client.put(
        f"/projects/{pid}/{kind}/{child_id}", json={"name": "two"}, headers=alice_headers
    )
    assert r.json()["name"] == "two"

    r = await client.get(f"/projects/{pid}/{kind}", headers=alice_headers)
    assert [c["name"] for c in r.json()] == ["two"]

    r = await client.delete(f"/projects/{pid}/{kind}/{child_id}", headers=alice_headers)
    assert r.status_code == 200
    r = await client.get(f"/projects/{pid}/{kind}", headers=alice_headers)
    assert r.json() == []


@pytest.mark.asyncio
async def test_child_of_other_project_is_404(client, alice_headers):
    first = await _create_project(client, alice_headers, "first")
    second = await _create_project(client, alice_headers, "second")
    r = await client.post(
        f"/projects/{first['id']}/labels", json={"name": "bug"}, headers=alice_headers
    )
    label_id = r.json()["id"]

    r = await client.put(
        f"/projects/{second['id']}/labels/{label_id}", json={"name": "x"}, headers=alice_headers
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_editor_cannot_delete_children(client, alice_headers, bob, bob_headers):
    project = await _create_project(client, alice_headers)
    pid = project["id"]
    await _grant(client, alice_headers, pid, bob.id, "editor")

    r = await client.post(f"/projects/{pid}/states", json={"name": "s"}, headers=bob_headers)
    assert r.status_code == 201
    r = await client.delete(f"/projects/{pid}/states/{r.json()['id']}", headers=bob_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_deleting_column_detaches_tasks(client, alice_headers):
    project = await _create_project(client, alice_headers)
    pid = project["id"]
    r = await client.post(f"/projects/{pid}/columns", json={"name": "c"}, headers=alice_headers)
    column_id = r.json()["id"]
    r = await client.post(
        "/tasks", json={"title": "t", "project_id": pid, "column_id": column_id}, headers=alice_headers
    )
    task_id = r.json()["id"]

    await client.delete(f"/projects/{pid}/columns/{column_id}", headers=alice_headers)
    r = await client.get(f"/tasks/{task_id}", headers=alice_headers)
    assert r.status_code == 200
    assert r.json()["column_id"] is None


# ═══════════════════════════════════════════════════════════
# Grants
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_grant_reader_then_upgrade(client, alice_headers, bob, bob_headers):
    project = await _create_project(client, alice_headers)
    pid = project["id"]

    grant = await _grant(client, alice_headers, pid, bob.id, "reader")
    assert grant["permission"] == "reader"
    assert (await client.get(f"/projects/{pid}", headers=bob_headers)).status_code == 200
    r = await client.post(f"/projects/{pid}/labels", json={"name": "x"}, headers=bob_headers)
    assert r.status_code == 403

    await _grant(client, alice_headers, pid, bob.id, "editor")
    r = await client.post(f"/projects/{pid}/labels", json={"name": "x"}, headers=bob_headers)
    assert r.status_code == 201

    r = await client.get(f"/projects/{pid}/permissions", headers=alice_headers)
    assert r.json() == [
        {"user_id": str(bob.id), "project_id": pid, "permission": "editor"}
    ]


@pytest.mark.asyncio
async def test_concurrent_grants_keep_one_row(client, alice_headers, bob):
    project = await _create_project(client, alice_headers)
    pid = project["id"]
    url = f"/projects/{pid}/permissions/{bob.id}"

    responses = await asyncio.gather(
        client.put(url, json={"permission": "editor"}, headers=alice_headers),
        client.put(url, json={"permission": "editor"}, headers=alice_headers),
    )
    assert [r.status_code for r in responses] == [200, 200]
    assert all(r.json()["permission"] == "editor" for r in responses)

    r = await client.get(f"/projects/{pid}/permissions", headers=alice_headers)
    assert r.json() == [
        {"user_id": str(bob.id), "project_id": pid, "permission": "editor"}
    ]


@pytest.mark.asyncio
async def test_revoke_grant(client, alice_headers, bob, bob_headers):
    project = await _create_project(client, alice_headers)
    pid = project["id"]
    await _grant(client, alice_headers, pid, bob.id, "reader")

    r = await client.delete(f"/projects/{pid}/permissions/{bob.id}", headers=alice_headers)
    assert r.status_code == 200
    assert (await client.get(f"/projects/{pid}", headers=bob_headers)).status_code == 403

    r = await client.delete(f"/projects/{pid}/permissions/{bob.id}", headers=alice_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_only_owner_manages_grants(client, alice_headers, bob, bob_headers):
    project = await _create_project(client, alice_headers)
    pid = project["id"]
    await _grant(client, alice_headers, pid, bob.id, "editor")

    r = await client.put(
        f"/projects/{pid}/permissions/{bob.id}", json={"permission": "owner"}, headers=bob_headers
    )
    assert r.status_code == 403
    assert (await client.get(f"/projects/{pid}/permissions", headers=bob_headers)).status_code == 403


@pytest.mark.asyncio
async def test_admin_grant_rejected(client, alice_headers, bob):
    project = await _create_project(client, alice_headers)
    r = await client.put(
        f"/projects/{project['id']}/permissions/{bob.id}",
        json={"permission": "admin"},
        headers=alice_headers,
    )
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Delete
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_delete_project_cascades(client, alice_headers, bob, bob_headers):
    project = await _create_project(client, alice_headers)
    pid = project["id"]
    await _grant(client, alice_headers, pid, bob.id, "editor")
    r = await client.post(f"/projects/{pid}/labels", json={"name": "bug"}, headers=alice_headers)
    label_id = r.json()["id"]
    r = await client.post(
        "/tasks", json={"title": "t", "project_id": pid, "labels": [label_id]}, headers=alice_headers
    )
    task_id = r.json()["id"]

    # Editors may not delete the board
    assert (await client.delete(f"/projects/{pid}", headers=bob_headers)).status_code == 403

    r = await client.delete(f"/projects/{pid}", headers=alice_headers)
    assert r.status_code == 200
    assert (await client.get(f"/projects/{pid}", headers=alice_headers)).status_code == 404
    assert (await client.get(f"/tasks/{task_id}", headers=alice_headers)).status_code == 404
    r = await client.get("/projects/list", headers=bob_headers)
    assert r.json()["total"] == 0


@pytest.mark.asyncio
async def test_project_tasks_listing(client, alice_headers, bob_headers):
    project = await _create_project(client, alice_headers)
    pid = project["id"]
    for title in ("one", "two", "three"):
        await client.post("/tasks", json={"title": title, "project_id": pid}, headers=alice_headers)

    r = await client.get(f"/projects/{pid}/tasks", params={"count": 2}, headers=alice_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 3
    assert len(data["items"]) == 2

    r = await client.get(f"/projects/{pid}/tasks", headers=bob_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_fresh_login_sees_same_permissions(client, alice_headers, bob):
    """Permissions come from stored state, not from the session."""
    project = await _create_project(client, alice_headers, public=True)
    token = await login(client, "bob")
    r = await client.get(f"/projects/{project['id']}", headers=bearer(token))
    assert r.status_code == 200
