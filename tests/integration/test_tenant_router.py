"""Integration tests for the tenant router (operator API key required)."""

import pytest


class TestAuth:
    async def test_create_tenant_requires_auth(self, client):
        resp = await client.post("/tenants", json={"name": "Acme"})
        assert resp.status_code == 422  # missing header

    async def test_create_tenant_wrong_key(self, client):
        resp = await client.post(
            "/tenants",
            json={"name": "Acme"},
            headers={"X-Api-Key": "wrong-key"},
        )
        assert resp.status_code == 403

    async def test_list_tenants_requires_auth(self, client):
        resp = await client.get("/tenants")
        assert resp.status_code == 422


class TestPublicEndpoints:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["service"] == "tenant-orchestrator"
        assert resp.json()["database"] == "ok"

    async def test_plans(self, client):
        resp = await client.get("/plans")
        assert resp.status_code == 200
        plans = {p["tier"]: p for p in resp.json()}
        assert list(plans) == ["starter", "pro", "business", "enterprise"]
        assert plans["pro"]["max_workflows"] == 25
        assert plans["enterprise"]["price"] == 999


class TestCreateTenant:
    async def test_create_success(self, client, admin_headers):
        resp = await client.post(
            "/tenants",
            json={"name": "Acme Corp!", "plan": "pro"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["subdomain"] == "acme-corp"
        assert data["status"] == "active"
        assert data["plan"] == "pro"
        assert data["url"] == "https://acme-corp.app.bythewise.com"
        assert data["limits"]["max_workflows"] == 25
        assert data["limits"]["max_executions_per_month"] == 50000
        assert data["limits"]["max_content_units_per_week"] == 8
        assert data["containers"]["app"]
        assert data["warnings"] == []

    async def test_default_plan(self, client, admin_headers):
        resp = await client.post("/tenants", json={"name": "Solo"}, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json()["plan"] == "starter"

    async def test_invalid_plan(self, client, admin_headers):
        resp = await client.post(
            "/tenants", json={"name": "Acme", "plan": "gold"}, headers=admin_headers
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "INVALID_PLAN"

    async def test_invalid_name(self, client, admin_headers):
        resp = await client.post("/tenants", json={"name": "!!!"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "INVALID_NAME"

    async def test_empty_name_rejected_by_schema(self, client, admin_headers):
        resp = await client.post("/tenants", json={"name": ""}, headers=admin_headers)
        assert resp.status_code == 422

    async def test_duplicate_subdomain(self, client, admin_headers):
        await client.post("/tenants", json={"name": "Acme Corp"}, headers=admin_headers)
        resp = await client.post("/tenants", json={"name": "acme corp"}, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "DUPLICATE_SUBDOMAIN"

    async def test_readiness_timeout_reported(self, client, admin_headers, runtime):
        runtime.healthy_after = 100
        resp = await client.post("/tenants", json={"name": "Slow"}, headers=admin_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "active"
        assert data["warnings"][0]["step"] == "readiness"
        assert data["warnings"][0]["code"] == "READINESS_TIMEOUT"


class TestTenantQueries:
    async def _create(self, client, headers, name="Acme Corp", plan="pro"):
        resp = await client.post("/tenants", json={"name": name, "plan": plan}, headers=headers)
        assert resp.status_code == 201
        return resp.json()["id"]

    async def test_status(self, client, admin_headers):
        tenant_id = await self._create(client, admin_headers)
        resp = await client.get(f"/tenants/{tenant_id}/status", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "active"
        assert data["containers"] == {"app": "running", "database": "running", "cache": "running"}
        assert data["metrics"]["total_executions"] == 0
        assert data["metrics"]["window_days"] == 30

    async def test_status_not_found(self, client, admin_headers):
        resp = await client.get("/tenants/nope/status", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "NOT_FOUND"
        assert resp.json()["detail"]["error"]

    async def test_metrics(self, client, admin_headers):
        tenant_id = await self._create(client, admin_headers)
        for status in ("success", "error"):
            await client.post(
                f"/tenants/{tenant_id}/executions",
                json={"workflow_id": "wf", "status": status},
                headers=admin_headers,
            )
        resp = await client.get(f"/tenants/{tenant_id}/metrics", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["tenant_id"] == tenant_id
        assert data["total_executions"] == 2
        assert data["successful_executions"] == 1
        assert data["failed_executions"] == 1
        assert data["max_workflows"] == 25

    async def test_list(self, client, admin_headers):
        first = await self._create(client, admin_headers, name="First", plan="starter")
        second = await self._create(client, admin_headers, name="Second", plan="pro")
        resp = await client.get("/tenants", headers=admin_headers)
        assert resp.status_code == 200
        assert [t["id"] for t in resp.json()] == [second, first]

        resp = await client.get("/tenants", params={"plan": "starter"}, headers=admin_headers)
        assert [t["id"] for t in resp.json()] == [first]

    async def test_list_bad_status(self, client, admin_headers):
        resp = await client.get("/tenants", params={"status": "zombie"}, headers=admin_headers)
        assert resp.status_code == 422


class TestLifecycle:
    async def _create(self, client, headers):
        resp = await client.post("/tenants", json={"name": "Acme Corp"}, headers=headers)
        return resp.json()["id"]

    async def test_delete(self, client, admin_headers):
        tenant_id = await self._create(client, admin_headers)
        resp = await client.delete(f"/tenants/{tenant_id}", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "deleted"
        assert data["deleted_at"]

        resp = await client.get(f"/tenants/{tenant_id}/status", headers=admin_headers)
        assert resp.status_code == 404

        resp = await client.delete(f"/tenants/{tenant_id}", headers=admin_headers)
        assert resp.status_code == 404

    async def test_deleted_only_listed_on_request(self, client, admin_headers):
        tenant_id = await self._create(client, admin_headers)
        await client.delete(f"/tenants/{tenant_id}", headers=admin_headers)

        resp = await client.get("/tenants", headers=admin_headers)
        assert resp.json() == []
        resp = await client.get("/tenants", params={"status": "deleted"}, headers=admin_headers)
        assert [t["id"] for t in resp.json()] == [tenant_id]
        resp = await client.get("/tenants", params={"include_deleted": "true"}, headers=admin_headers)
        assert len(resp.json()) == 1

    async def test_suspend_resume(self, client, admin_headers):
        tenant_id = await self._create(client, admin_headers)

        resp = await client.post(f"/tenants/{tenant_id}/suspend", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "suspended"

        resp = await client.post(f"/tenants/{tenant_id}/suspend", headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "INVALID_TRANSITION"

        resp = await client.post(f"/tenants/{tenant_id}/resume", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "active"

    async def test_resume_unknown(self, client, admin_headers):
        resp = await client.post("/tenants/nope/resume", headers=admin_headers)
        assert resp.status_code == 404

    @pytest.mark.parametrize("path", ["/tenants/x/suspend", "/tenants/x/resume"])
    async def test_transitions_require_auth(self, client, path):
        resp = await client.post(path, headers={"X-Api-Key": "wrong"})
        assert resp.status_code == 403
