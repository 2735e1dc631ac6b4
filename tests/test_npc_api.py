"""HTTP tests for the NPC generator and admin routes."""

from datetime import datetime, timedelta

from unittest.mock import MagicMock
from redis.exceptions import ConnectionError as RedisConnectionError

from app.api.deps import get_queue
from app.core.exceptions import ProviderError
from app.core.security import create_access_token
from app.main import app
from app.models import NPCRecord
from app.schemas.npc import JobStatusResponse
from tests.conftest import auth_headers, generate_body


def _generate(client, api_url, user, **overrides):
    response = client.post(api_url("/generate"), json=generate_body(**overrides), headers=auth_headers(user))
    assert response.status_code == 201, response.text
    return response.json()


# --- auth ---

def test_missing_token(client, api_url):
    response = client.get(api_url("/my-npcs"))
    assert response.status_code == 401
    assert response.json()["detail"] == "Access denied. No token provided."


def test_invalid_token(client, api_url):
    response = client.get(api_url("/my-npcs"), headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token. Please login again."


def test_expired_token(client, api_url, alice):
    token = create_access_token(alice.id, expires_delta=timedelta(minutes=-5))
    response = client.get(api_url("/my-npcs"), headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired. Please login again."


def test_unknown_user(client, api_url):
    token = create_access_token("usr_gone")
    response = client.get(api_url("/my-npcs"), headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


# --- generate ---

def test_generate(client, api_url, alice):
    body = _generate(client, api_url, alice)

    assert body["id"].startswith("npc_")
    assert body["createdBy"] == alice.id
    assert body["isActive"] is True
    assert body["campaignId"] is None
    assert body["generationRequest"]["role"] == "merchant"
    assert body["generatedNPC"]["name"] == "Elda"
    assert "stats" not in body["generatedNPC"]
    assert body["generatedNPC"]["aiPromptUsed"].startswith("Generate a D&D NPC")


def test_generate_missing_role(client, api_url, alice, fake_client):
    response = client.post(api_url("/generate"), json={"storyFit": "quest giver"}, headers=auth_headers(alice))

    assert response.status_code == 400
    assert response.json() == {"success": False, "detail": "Role and story fit are required fields"}
    assert fake_client.calls == []


def test_generate_with_another_users_campaign(client, api_url, bob, campaign, fake_client):
    response = client.post(
        api_url("/generate"), json=generate_body(campaignId=campaign.id), headers=auth_headers(bob)
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Campaign not found"
    assert fake_client.calls == []


def test_search_treats_wildcards_literally(client, api_url, alice):
    _generate(client, api_url, alice)

    body = client.get(api_url("/search"), params={"q": "_"}, headers=auth_headers(alice)).json()
    assert body["npcs"] == []


def test_generate_provider_failure(client, api_url, alice, fake_client, db):
    fake_client.queue_error(ProviderError("Provider response is not valid JSON", details={"raw": "oops"}))
    response = client.post(api_url("/generate"), json=generate_body(), headers=auth_headers(alice))

    assert response.status_code == 502
    assert response.json() == {"success": False, "detail": "Failed to generate NPC"}
    assert db.query(NPCRecord).count() == 0


# --- reads ---

def test_list_hides_provenance_and_paginates(client, api_url, alice):
    for _ in range(3):
        _generate(client, api_url, alice)

    response = client.get(api_url("/my-npcs"), params={"page": 1, "limit": 2}, headers=auth_headers(alice))
    assert response.status_code == 200
    body = response.json()

    assert len(body["npcs"]) == 2
    assert "aiPromptUsed" not in body["npcs"][0]["generatedNPC"]
    assert "aiResponse" not in body["npcs"][0]["generatedNPC"]
    assert body["pagination"] == {
        "current": 1, "total": 2, "totalItems": 3, "hasNext": True, "hasPrev": False,
    }


def test_get_other_users_npc_is_404(client, api_url, alice, bob):
    npc = _generate(client, api_url, alice)

    response = client.get(api_url(f"/{npc['id']}"), headers=auth_headers(bob))
    assert response.status_code == 404
    assert response.json()["detail"] == "NPC not found"


def test_search_requires_query(client, api_url, alice):
    response = client.get(api_url("/search"), params={"q": " "}, headers=auth_headers(alice))
    assert response.status_code == 400


def test_summary(client, api_url, alice):
    _generate(client, api_url, alice, includeStats=True)
    _generate(client, api_url, alice, role="guard")

    body = client.get(api_url("/stats/summary"), headers=auth_headers(alice)).json()
    assert body["totalNpcs"] == 2
    assert body["npcsWithStats"] == 1


# --- update / delete / restore ---

def test_update(client, api_url, alice):
    npc = _generate(client, api_url, alice)

    response = client.put(
        api_url(f"/{npc['id']}"),
        json={"generatedNPC": {"occupation": "Smuggler"}, "tags": ["ally", " "]},
        headers=auth_headers(alice),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["generatedNPC"]["occupation"] == "Smuggler"
    assert body["generatedNPC"]["name"] == "Elda"
    assert body["tags"] == ["ally"]


def test_update_null_sub_document_is_400(client, api_url, alice):
    npc = _generate(client, api_url, alice)

    response = client.put(api_url(f"/{npc['id']}"), json={"generationRequest": None}, headers=auth_headers(alice))

    assert response.status_code == 400
    assert response.json() == {"success": False, "detail": "generationRequest cannot be null"}
    stored = client.get(api_url(f"/{npc['id']}"), headers=auth_headers(alice)).json()
    assert stored["generationRequest"]["role"] == "merchant"


def test_soft_delete_and_restore(client, api_url, alice):
    npc = _generate(client, api_url, alice)
    headers = auth_headers(alice)

    deleted = client.delete(api_url(f"/{npc['id']}"), headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["permanent"] is False
    assert deleted.json()["permanentDeleteAt"]

    assert client.get(api_url(f"/{npc['id']}"), headers=headers).status_code == 404

    trash = client.get(api_url("/trash/deleted"), headers=headers).json()
    assert [n["id"] for n in trash["npcs"]] == [npc["id"]]
    assert trash["npcs"][0]["daysUntilPermanentDelete"] == 30

    restored = client.post(api_url(f"/{npc['id']}/restore"), headers=headers)
    assert restored.status_code == 200
    assert restored.json()["isActive"] is True
    assert restored.json()["deletedAt"] is None


def test_restore_after_deadline_is_gone(client, api_url, alice, db):
    npc = _generate(client, api_url, alice)
    headers = auth_headers(alice)
    client.delete(api_url(f"/{npc['id']}"), headers=headers)

    record = db.query(NPCRecord).filter(NPCRecord.id == npc["id"]).one()
    record.permanent_delete_at = datetime.utcnow() - timedelta(seconds=1)
    db.commit()

    response = client.post(api_url(f"/{npc['id']}/restore"), headers=headers)
    assert response.status_code == 410


def test_permanent_delete(client, api_url, alice, db):
    npc = _generate(client, api_url, alice)

    response = client.delete(api_url(f"/{npc['id']}"), params={"permanent": "true"}, headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["permanent"] is True
    assert db.query(NPCRecord).count() == 0


def test_favorite_toggle(client, api_url, alice):
    npc = _generate(client, api_url, alice)

    body = client.post(api_url(f"/{npc['id']}/favorite"), headers=auth_headers(alice)).json()
    assert body == {"id": npc["id"], "isFavorite": True, "tags": ["favorite"]}


def test_regenerate(client, api_url, alice, fake_client):
    npc = _generate(client, api_url, alice)
    fake_client.queue_data({"name": "Mirelle", "race": "Half-Elf"})

    body = client.post(api_url(f"/{npc['id']}/regenerate"), headers=auth_headers(alice)).json()
    assert body["id"] == npc["id"]
    assert body["generatedNPC"]["name"] == "Mirelle"


# --- admin ---

def test_cleanup_requires_admin(client, api_url, alice):
    response = client.post(api_url("/admin/cleanup"), headers=auth_headers(alice))
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions."


def test_admin_cleanup_removes_expired(client, api_url, alice, admin_user, db):
    npc = _generate(client, api_url, alice)
    client.delete(api_url(f"/{npc['id']}"), headers=auth_headers(alice))
    record = db.query(NPCRecord).filter(NPCRecord.id == npc["id"]).one()
    record.permanent_delete_at = datetime.utcnow() - timedelta(days=1)
    db.commit()

    response = client.post("/api/v1/admin/npcs/cleanup", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["deletedCount"] == 1

    again = client.post(api_url("/admin/cleanup"), headers=auth_headers(admin_user))
    assert again.json()["deletedCount"] == 0


def test_auto_cleanup_enqueues_job(client, admin_user):
    queue = MagicMock()
    queue.enqueue_cleanup.return_value = MagicMock(id="job-123")
    app.dependency_overrides[get_queue] = lambda: queue

    response = client.post("/api/v1/admin/npcs/auto-cleanup", headers=auth_headers(admin_user))

    assert response.status_code == 202
    assert response.json()["jobId"] == "job-123"
    queue.enqueue_cleanup.assert_called_once_with(requested_by=admin_user.id)


def test_auto_cleanup_without_redis(client, admin_user):
    queue = MagicMock()
    queue.enqueue_cleanup.side_effect = RedisConnectionError("refused")
    app.dependency_overrides[get_queue] = lambda: queue

    response = client.post("/api/v1/admin/npcs/auto-cleanup", headers=auth_headers(admin_user))
    assert response.status_code == 503


def test_job_status(client, admin_user):
    queue = MagicMock()
    queue.job_status.return_value = JobStatusResponse(
        job_id="job-123", status="finished", type="npc_cleanup", result={"deleted_count": 2}
    )
    app.dependency_overrides[get_queue] = lambda: queue

    response = client.get("/api/v1/admin/jobs/job-123", headers=auth_headers(admin_user))

    assert response.status_code == 200
    assert response.json()["result"] == {"deleted_count": 2}


def test_job_status_unknown_job(client, admin_user):
    queue = MagicMock()
    queue.job_status.return_value = None
    app.dependency_overrides[get_queue] = lambda: queue

    response = client.get("/api/v1/admin/jobs/nope", headers=auth_headers(admin_user))
    assert response.status_code == 404
