from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from page_pipeline.cache import PUBLISHED_PAGES_TAG
from page_pipeline.models import GeneratedPage

API_KEY_HEADERS = {"X-API-Key": "test-mutation-key"}


def _generate(client, update, **extra) -> dict:
    response = client.post(
        "/api/pages/generate",
        json={"updateId": str(update.id), **extra},
        headers=API_KEY_HEADERS,
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Frame-Options"] == "DENY"


def test_mutations_require_api_key(client, update):
    response = client.post("/api/pages/generate", json={"updateId": str(update.id)})

    assert response.status_code == 401


def test_wrong_api_key_is_rejected(client, update):
    response = client.post(
        "/api/pages/generate",
        json={"updateId": str(update.id)},
        headers={"X-API-Key": "nope"},
    )

    assert response.status_code == 401


def test_bearer_token_is_accepted(client, update):
    response = client.post(
        "/api/pages/generate",
        json={"updateId": str(update.id)},
        headers={"Authorization": "Bearer test-mutation-key"},
    )

    assert response.status_code == 200


def test_generate_publish_and_serve(client, update, store, invalidator):
    generated = _generate(
        client,
        update,
        contentText="Weekend special: two slices and a drink for $5.",
        temporalInfo={"dealTerms": "Dine-in only", "updateCategory": "special"},
        specialHours="Open until midnight",
    )
    assert generated["success"] is True
    assert generated["totalPages"] == 6

    published = client.post("/api/pages/publish", json={"batchId": generated["batchId"]}, headers=API_KEY_HEADERS)
    assert published.status_code == 200
    body = published.json()
    assert body["success"] is True
    assert len(body["publishedPages"]) == 6
    assert invalidator.tags == [PUBLISHED_PAGES_TAG]

    page_path = generated["pages"][0]["file_path"]
    served = client.get(page_path)
    assert served.status_code == 200
    assert served.headers["X-Page-Source"] == "static"
    assert served.headers["content-type"].startswith("text/html")
    assert "two slices and a drink" in served.text


def test_generate_validation_error_shape(client, update):
    response = client.post(
        "/api/pages/generate",
        json={"updateId": str(update.id), "contentText": "  "},
        headers=API_KEY_HEADERS,
    )

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "message": "Update content text is required",
        "kind": "validation",
        "retryable": False,
    }


def test_generate_unknown_update_is_404(client):
    response = client.post("/api/pages/generate", json={"updateId": str(uuid.uuid4())}, headers=API_KEY_HEADERS)

    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_generate_rejects_unknown_fields(client, update):
    response = client.post(
        "/api/pages/generate",
        json={"updateId": str(update.id), "surprise": True},
        headers=API_KEY_HEADERS,
    )

    assert response.status_code == 422


def test_publish_partial_returns_207(client, update):
    generated = _generate(client, update, intents=["direct"])
    missing = str(uuid.uuid4())

    response = client.post(
        "/api/pages/publish",
        json={"pageIds": [generated["pages"][0]["id"], missing]},
        headers=API_KEY_HEADERS,
    )

    assert response.status_code == 207
    body = response.json()
    assert body["partial"] is True
    assert body["errors"][0]["id"] == missing


def test_publish_requires_targets(client):
    response = client.post("/api/pages/publish", json={}, headers=API_KEY_HEADERS)

    assert response.status_code == 400


def test_delete_pages(client, update, store, db_session: Session):
    generated = _generate(client, update, intents=["direct", "local"])
    client.post("/api/pages/publish", json={"batchId": generated["batchId"]}, headers=API_KEY_HEADERS)

    response = client.post("/api/pages/delete", json={"batchId": generated["batchId"]}, headers=API_KEY_HEADERS)

    assert response.status_code == 200
    assert len(response.json()["deleted"]) == 2
    assert store.objects == {}
    db_session.expire_all()
    assert db_session.execute(select(func.count(GeneratedPage.id))).scalar() == 0


def test_expire_actions(client, update):
    generated = _generate(client, update, intents=["direct"])
    page_id = generated["pages"][0]["id"]
    client.post("/api/pages/publish", json={"pageIds": [page_id]}, headers=API_KEY_HEADERS)

    expired = client.post("/api/pages/expire", json={"action": "expire-single", "pageId": page_id}, headers=API_KEY_HEADERS)
    assert expired.status_code == 200
    assert expired.json()["expiredCount"] == 1
    assert expired.json()["expiredPages"][0]["id"] == page_id
    assert client.get(generated["pages"][0]["file_path"]).headers["X-Page-Source"] == "live"

    extended = client.post(
        "/api/pages/expire",
        json={"action": "extend", "pageId": page_id, "hours": 24},
        headers=API_KEY_HEADERS,
    )
    assert extended.status_code == 200
    assert extended.json()["page"]["expired"] is False
    assert client.get(generated["pages"][0]["file_path"]).headers["X-Page-Source"] == "static"

    sweep = client.post("/api/pages/expire", json={"action": "expire-all"}, headers=API_KEY_HEADERS)
    assert sweep.status_code == 200
    assert sweep.json()["expiredCount"] == 0

    upcoming = client.post("/api/pages/expire", json={"action": "check-upcoming"}, headers=API_KEY_HEADERS)
    assert upcoming.status_code == 200
    assert upcoming.json()["expiredPages"] == []

    bad = client.post("/api/pages/expire", json={"action": "extend", "pageId": page_id, "hours": 0}, headers=API_KEY_HEADERS)
    assert bad.status_code == 400


def test_expire_rejects_unknown_action(client):
    response = client.post("/api/pages/expire", json={"action": "purge"}, headers=API_KEY_HEADERS)

    assert response.status_code == 422


def test_expire_accepts_underscore_action_names(client):
    response = client.post("/api/pages/expire", json={"action": "expire_all"}, headers=API_KEY_HEADERS)

    assert response.status_code == 200
    assert response.json()["expiredCount"] == 0


@pytest.mark.parametrize("hours", [1e12, -5])
def test_expire_rejects_out_of_range_hours(client, update, hours):
    generated = _generate(client, update, intents=["direct"])

    response = client.post(
        "/api/pages/expire",
        json={"action": "extend", "pageId": generated["pages"][0]["id"], "hours": hours},
        headers=API_KEY_HEADERS,
    )

    assert response.status_code == 400


def test_list_and_get_pages(client, update):
    generated = _generate(client, update, intents=["direct", "local"])

    listing = client.get("/api/pages", params={"batch_id": generated["batchId"], "published": "false"})
    assert listing.status_code == 200
    assert listing.json()["total"] == 2

    page_id = generated["pages"][0]["id"]
    detail = client.get(f"/api/pages/{page_id}")
    assert detail.status_code == 200
    assert detail.json()["page_data"]["b"]["n"] == "Joe's Pizza"

    preview = client.get(f"/api/pages/{page_id}/preview")
    assert preview.status_code == 200
    assert preview.headers["X-Robots-Tag"] == "noindex"
    assert "<!DOCTYPE html>" in preview.text


def test_get_page_errors(client):
    assert client.get(f"/api/pages/{uuid.uuid4()}").status_code == 404
    assert client.get("/api/pages/not-a-uuid").status_code == 400


def test_sitemap_rebuild_and_serve(client, update):
    generated = _generate(client, update, intents=["direct"])
    client.post("/api/pages/publish", json={"batchId": generated["batchId"]}, headers=API_KEY_HEADERS)

    rebuilt = client.post("/api/sitemap/rebuild", headers=API_KEY_HEADERS)
    assert rebuilt.status_code == 200
    assert rebuilt.json()["urlCount"] == 2

    sitemap = client.get("/sitemap.xml")
    assert sitemap.status_code == 200
    assert sitemap.headers["content-type"].startswith("application/xml")


def test_unknown_path_is_404_fallback(client):
    response = client.get("/nowhere/at/all/really")

    assert response.status_code == 404
    assert response.headers["X-Page-Source"] == "fallback"
    assert response.headers["Cache-Control"] == "no-store"


def test_metrics_and_jobs(client, update):
    generated = _generate(client, update, intents=["direct"])
    client.post("/api/pages/publish", json={"batchId": generated["batchId"]}, headers=API_KEY_HEADERS)

    metrics = client.get("/api/metrics").json()
    assert metrics["pages"]["total"] == 1
    assert metrics["pages"]["live"] == 1
    assert metrics["intents"]["direct"] == {"total": 1, "live": 1}
    assert metrics["updates"] == {"published": 1}
    assert metrics["businesses"] == 1
    assert metrics["store_breaker"]["state"] == "closed"

    jobs = client.get("/api/jobs", params={"job_name": "publish_pages"}).json()
    assert len(jobs) == 1
    assert jobs[0]["status"] == "success"
