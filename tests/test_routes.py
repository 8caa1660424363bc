import pytest
from httpx import ASGITransport, AsyncClient

from rcaccess.core import config
from rcaccess.features.directory.settings import DirectorySettings, GroupRoleMapping, get_directory_settings
from rcaccess.features.permissions.models import AccessLevel, PrincipalType
from rcaccess.features.users.auth import DIRECTORY_ASSERTION_TYPE, create_token
from rcaccess.main import app


pytestmark = pytest.mark.asyncio


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_rejects_invalid_token(client):
    response = await client.get("/users/me", headers={"Authorization": "Bearer nonsense"})

    assert response.status_code == 401


async def test_rejects_directory_assertion_as_access_token(client, make_user):
    await make_user("alice")
    assertion = create_token("alice", token_type=DIRECTORY_ASSERTION_TYPE)

    response = await client.get("/users/me", headers={"Authorization": f"Bearer {assertion}"})

    assert response.status_code == 401


async def test_create_and_read_rc(client, make_user, headers_for):
    await make_user("alice")

    response = await client.post(
        "/responsibility-centres/", json={"name": "R1"}, headers=headers_for("alice")
    )

    assert response.status_code == 201
    rc = response.json()
    assert rc["owner_username"] == "alice"

    response = await client.get(f"/responsibility-centres/{rc['id']}/access", headers=headers_for("alice"))
    assert response.json() == {
        "rc_id": rc["id"],
        "access_level": "OWNER",
        "can_edit": True,
        "is_owner": True,
    }

    response = await client.post(
        "/responsibility-centres/", json={"name": "R1"}, headers=headers_for("alice")
    )
    assert response.status_code == 409


async def test_rc_listing_only_shows_accessible_rcs(client, make_user, make_rc, add_grant, headers_for):
    for username in ("alice", "bob"):
        await make_user(username)
    r1 = await make_rc("R1", owner="alice")
    await make_rc("R2", owner="alice")
    await make_rc("Demo", owner="alice")
    await add_grant(r1, "staff", AccessLevel.READ_ONLY, PrincipalType.GROUP)

    response = await client.get("/responsibility-centres/", headers=headers_for("bob", ("STAFF",)))

    assert response.status_code == 200
    assert [(item["name"], item["access_level"]) for item in response.json()] == [
        ("Demo", None),
        ("R1", "READ_ONLY"),
    ]


async def test_read_requires_access(client, r1, headers_for):
    response = await client.get(f"/responsibility-centres/{r1.id}", headers=headers_for("bob"))

    assert response.status_code == 403


async def test_grant_update_revoke_flow(client, r1, headers_for):
    owner = headers_for("alice")

    response = await client.post(
        f"/permissions/rc/{r1.id}/user",
        json={"username": "bob", "access_level": "READ_WRITE"},
        headers=owner,
    )
    assert response.status_code == 201
    grant = response.json()
    assert grant["principal_identifier"] == "bob"
    assert grant["granted_by"] == "alice"

    response = await client.get(f"/permissions/rc/{r1.id}/can-edit", headers=headers_for("bob"))
    assert response.json() == {"rc_id": r1.id, "allowed": True}

    response = await client.put(
        f"/permissions/{grant['id']}", json={"access_level": "READ_ONLY"}, headers=owner
    )
    assert response.status_code == 200
    assert response.json()["access_level"] == "READ_ONLY"

    response = await client.get(f"/permissions/rc/{r1.id}/can-edit", headers=headers_for("bob"))
    assert response.json()["allowed"] is False

    response = await client.get(f"/permissions/rc/{r1.id}", headers=owner)
    assert [entry["principal_identifier"] for entry in response.json()] == ["alice", "bob"]

    response = await client.delete(f"/permissions/{grant['id']}", headers=owner)
    assert response.status_code == 204

    response = await client.delete(f"/permissions/{grant['id']}", headers=owner)
    assert response.status_code == 403

    response = await client.get(f"/permissions/rc/{r1.id}/audit", headers=owner)
    body = response.json()
    assert body["total"] == 3
    assert [item["action"] for item in body["items"]] == ["revoke", "update", "grant"]


async def test_grant_errors(client, r1, headers_for):
    owner = headers_for("alice")

    response = await client.post(
        f"/permissions/rc/{r1.id}/user",
        json={"username": "nobody", "access_level": "READ_ONLY"},
        headers=owner,
    )
    assert response.status_code == 404

    response = await client.post(
        f"/permissions/rc/{r1.id}/group",
        json={"principal_identifier": "bob", "principal_type": "USER", "access_level": "READ_ONLY"},
        headers=owner,
    )
    assert response.status_code == 400

    response = await client.post(
        f"/permissions/rc/{r1.id}/user",
        json={"username": "bob", "access_level": "SUPERUSER"},
        headers=owner,
    )
    assert response.status_code == 400
    assert "access_level" in response.json()

    for _ in range(2):
        response = await client.post(
            f"/permissions/rc/{r1.id}/group",
            json={"principal_identifier": "cn=staff", "access_level": "READ_ONLY"},
            headers=owner,
        )
    assert response.status_code == 409


async def test_missing_rc_looks_like_forbidden(client, r1, headers_for):
    response = await client.get("/permissions/rc/9999", headers=headers_for("alice"))

    assert response.status_code == 403
    assert response.json() == {"detail": "Forbidden"}


async def test_non_owner_cannot_grant(client, r1, add_grant, headers_for):
    await add_grant(r1, "bob", AccessLevel.READ_WRITE)

    response = await client.post(
        f"/permissions/rc/{r1.id}/user",
        json={"username": "carol", "access_level": "READ_ONLY"},
        headers=headers_for("bob"),
    )

    assert response.status_code == 403


async def test_directory_login(client, r1):
    settings = DirectorySettings(
        enabled=True,
        group_mappings=(
            GroupRoleMapping(group_identifier="cn=finance", application_role="FINANCE", rc_access={"R1": "READ_WRITE"}),
        ),
    )
    app.dependency_overrides[get_directory_settings] = lambda: settings
    assertion = create_token("dave", ["CN=Finance"], token_type=DIRECTORY_ASSERTION_TYPE)

    response = await client.post("/users/login/directory", json={"assertion": assertion})

    assert response.status_code == 200
    token = response.json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    response = await client.get("/users/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["roles"] == ["FINANCE"]
    assert response.json()["auth_source"] == "directory"

    response = await client.get(f"/permissions/rc/{r1.id}/can-edit", headers=headers)
    assert response.json()["allowed"] is True


async def test_directory_login_rejects_access_token(client, headers_for):
    token = headers_for("alice")["Authorization"].removeprefix("Bearer ")

    response = await client.post("/users/login/directory", json={"assertion": token})

    assert response.status_code == 401


async def test_checks_do_not_reveal_rc_existence(client, r1, headers_for):
    outsider = headers_for("bob")

    for path in ("/permissions/rc/{}/can-edit", "/permissions/rc/{}/is-owner", "/responsibility-centres/{}/access"):
        existing = await client.get(path.format(r1.id), headers=outsider)
        missing = await client.get(path.format(9999), headers=outsider)

        assert existing.status_code == missing.status_code == 403
        assert existing.json() == missing.json() == {"detail": "Forbidden"}


async def test_checks_answer_for_readers(client, r1, add_grant, headers_for):
    await add_grant(r1, "bob", AccessLevel.READ_ONLY)

    response = await client.get(f"/permissions/rc/{r1.id}/is-owner", headers=headers_for("bob"))

    assert response.status_code == 200
    assert response.json() == {"rc_id": r1.id, "allowed": False}


async def test_demo_rc_readable_without_grant(client, make_user, make_rc, headers_for):
    await make_user("bob")
    demo = await make_rc("Demo", owner="admin")

    response = await client.get(f"/responsibility-centres/{demo.id}", headers=headers_for("bob"))
    assert response.status_code == 200

    response = await client.get(f"/responsibility-centres/{demo.id}/access", headers=headers_for("bob"))
    assert response.json() == {"rc_id": demo.id, "access_level": None, "can_edit": False, "is_owner": False}


async def test_deactivated_rc_looks_missing(client, db, r1, headers_for):
    r1.is_active = False
    await db.commit()

    response = await client.get(f"/responsibility-centres/{r1.id}", headers=headers_for("alice"))

    assert response.status_code == 403


async def test_login_rate_limit_is_per_client(client):
    limit = int(config.LOGIN_RATE_LIMIT.split("/")[0])

    for index in range(limit + 2):
        assertion = create_token(f"user{index}", token_type=DIRECTORY_ASSERTION_TYPE)
        transport = ASGITransport(app=app, client=(f"10.0.0.{index + 1}", 4000))
        async with AsyncClient(transport=transport, base_url="http://testserver") as other:
            response = await other.post("/users/login/directory", json={"assertion": assertion})
        assert response.status_code == 200

    transport = ASGITransport(app=app, client=("10.0.1.1", 4000))
    async with AsyncClient(transport=transport, base_url="http://testserver") as same:
        statuses = []
        for index in range(limit + 1):
            assertion = create_token(f"repeat{index}", token_type=DIRECTORY_ASSERTION_TYPE)
            response = await same.post("/users/login/directory", json={"assertion": assertion})
            statuses.append(response.status_code)

    assert statuses == [200] * limit + [429]
