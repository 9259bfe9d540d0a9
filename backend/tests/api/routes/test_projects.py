"""Tests for the project, version and deliverable API routes."""

import pytest


@pytest.mark.api
class TestProjectRoutes:
    """Test cases for /api/v1/projects."""

    @pytest.mark.asyncio
    async def test_create_project(self, client):
        response = await client.post(
            "/api/v1/projects", json={"name": "New Project", "tech_stack": ["React", "TypeScript"]}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "New Project"
        assert data["tech_stack"] == ["React", "TypeScript"]
        assert data["is_archived"] is False

        detail = await client.get(f"/api/v1/projects/{data['id']}")
        assert [v["name"] for v in detail.json()["versions"]] == ["V1"]

    @pytest.mark.asyncio
    async def test_create_requires_name(self, client):
        response = await client.post("/api/v1/projects", json={"name": ""})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_and_archive(self, client, sample_project):
        archived = await client.post(f"/api/v1/projects/{sample_project.id}/archive")
        assert archived.status_code == 200
        assert archived.json()["is_archived"] is True

        active = await client.get("/api/v1/projects", params={"archived": False})
        everything = await client.get("/api/v1/projects")

        assert active.json() == {"projects": [], "total": 0}
        assert everything.json()["total"] == 1

        restored = await client.post(f"/api/v1/projects/{sample_project.id}/unarchive")
        assert restored.json()["is_archived"] is False

    @pytest.mark.asyncio
    async def test_update_project(self, client, sample_project):
        response = await client.put(
            f"/api/v1/projects/{sample_project.id}", json={"system_prompt": "Prefer async code"}
        )

        assert response.status_code == 200
        assert response.json()["system_prompt"] == "Prefer async code"
        assert response.json()["name"] == "Test Project"

    @pytest.mark.asyncio
    async def test_update_trims_name(self, client, sample_project):
        response = await client.put(f"/api/v1/projects/{sample_project.id}", json={"name": "  Renamed  "})

        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"

    @pytest.mark.asyncio
    async def test_update_rejects_blank_name(self, client, sample_project):
        response = await client.put(f"/api/v1/projects/{sample_project.id}", json={"name": "   "})

        assert response.status_code == 422
        detail = await client.get(f"/api/v1/projects/{sample_project.id}")
        assert detail.json()["name"] == "Test Project"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["name", "tech_stack", "is_archived"])
    async def test_update_rejects_null_for_required_field(self, client, sample_project, field):
        response = await client.put(f"/api/v1/projects/{sample_project.id}", json={field: None})

        assert response.status_code == 400
        assert response.json() == {"detail": f"{field} cannot be null"}

    @pytest.mark.asyncio
    async def test_update_clears_optional_field(self, client, sample_project):
        response = await client.put(f"/api/v1/projects/{sample_project.id}", json={"description": None})

        assert response.status_code == 200
        assert response.json()["description"] is None

    @pytest.mark.asyncio
    async def test_other_users_project_is_not_found(self, client, sample_project, other_auth_headers):
        response = await client.get(f"/api/v1/projects/{sample_project.id}", headers=other_auth_headers)
        assert response.status_code == 404
        assert response.json() == {"detail": "Project not found"}

        response = await client.delete(f"/api/v1/projects/{sample_project.id}", headers=other_auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_project(self, client, sample_project):
        response = await client.delete(f"/api/v1/projects/{sample_project.id}")

        assert response.status_code == 204
        assert (await client.get(f"/api/v1/projects/{sample_project.id}")).status_code == 404


@pytest.mark.api
class TestVersionAndDeliverableRoutes:
    """Test cases for versions and deliverables."""

    @pytest.mark.asyncio
    async def test_version_lifecycle(self, client, sample_project):
        created = await client.post(f"/api/v1/projects/{sample_project.id}/versions", json={"name": "V2"})
        assert created.status_code == 201
        version_id = created.json()["id"]

        updated = await client.put(f"/api/v1/versions/{version_id}", json={"description": "Second release"})
        assert updated.json()["description"] == "Second release"

        deleted = await client.delete(f"/api/v1/versions/{version_id}")
        assert deleted.status_code == 204

        detail = await client.get(f"/api/v1/projects/{sample_project.id}")
        assert [v["name"] for v in detail.json()["versions"]] == ["V1"]

    @pytest.mark.asyncio
    async def test_last_version_cannot_be_deleted(self, client, sample_project):
        detail = await client.get(f"/api/v1/projects/{sample_project.id}")
        version_id = detail.json()["versions"][0]["id"]

        response = await client.delete(f"/api/v1/versions/{version_id}")

        assert response.status_code == 400
        assert response.json() == {"detail": "A project must keep at least one version"}
        detail = await client.get(f"/api/v1/projects/{sample_project.id}")
        assert [v["name"] for v in detail.json()["versions"]] == ["V1"]

    @pytest.mark.asyncio
    async def test_version_and_deliverable_names_cannot_be_null(self, client, sample_project):
        version_id = (await client.get(f"/api/v1/projects/{sample_project.id}")).json()["versions"][0]["id"]
        deliverable = (
            await client.post(f"/api/v1/versions/{version_id}/deliverables", json={"name": "Login"})
        ).json()

        version = await client.put(f"/api/v1/versions/{version_id}", json={"name": None})
        renamed = await client.put(f"/api/v1/deliverables/{deliverable['id']}", json={"name": None})

        assert version.status_code == 400
        assert renamed.status_code == 400
        assert renamed.json() == {"detail": "name cannot be null"}

    @pytest.mark.asyncio
    async def test_deliverable_lifecycle(self, client, sample_project):
        detail = await client.get(f"/api/v1/projects/{sample_project.id}")
        version_id = detail.json()["versions"][0]["id"]

        created = await client.post(f"/api/v1/versions/{version_id}/deliverables", json={"name": "Login page"})
        assert created.status_code == 201
        deliverable = created.json()
        assert deliverable["status"] == "not-started"

        status_update = await client.patch(
            f"/api/v1/deliverables/{deliverable['id']}/status", json={"status": "done"}
        )
        assert status_update.json()["status"] == "done"

        renamed = await client.put(f"/api/v1/deliverables/{deliverable['id']}", json={"name": "Auth pages"})
        assert renamed.json()["name"] == "Auth pages"

        detail = await client.get(f"/api/v1/projects/{sample_project.id}")
        assert detail.json()["versions"][0]["deliverables"][0]["status"] == "done"

        deleted = await client.delete(f"/api/v1/deliverables/{deliverable['id']}")
        assert deleted.status_code == 204

    @pytest.mark.asyncio
    async def test_invalid_status(self, client, sample_project):
        detail = await client.get(f"/api/v1/projects/{sample_project.id}")
        version_id = detail.json()["versions"][0]["id"]
        created = await client.post(f"/api/v1/versions/{version_id}/deliverables", json={"name": "X"})

        response = await client.patch(
            f"/api/v1/deliverables/{created.json()['id']}/status", json={"status": "blocked"}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_other_users_version(self, client, sample_project, other_auth_headers):
        response = await client.post(
            f"/api/v1/projects/{sample_project.id}/versions", json={"name": "V2"}, headers=other_auth_headers
        )

        assert response.status_code == 404
