"""Tests for the admin query and gallery management routes."""

from datetime import date, datetime, timedelta

import pytest

from src.shared.inquiry.abuse_ledger import record_abuse
from src.shared.inquiry.database import AbuseLogEntry
from src.shared.inquiry.input_validation import CleanInquiry
from src.shared.inquiry.store import save_inquiry


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def add_inquiry(db_session, first_name):
    clean = CleanInquiry(
        first_name=first_name,
        last_name="Lee",
        email=f"{first_name.lower()}@example.com",
        phone=None,
        placement="forearm",
        size="3x5 in",
        description="raven",
        date_from=date(2026, 3, 11),
        date_to=date(2026, 3, 14),
    )
    return save_inquiry(db_session, clean)


class TestInquiries:

    def test_newest_first(self, client, db_session, admin_token):
        for name in ("Ann", "Bea", "Cal"):
            add_inquiry(db_session, name)

        response = client.get("/auth/api/inquiries", headers=bearer(admin_token))

        assert response.status_code == 200
        assert [row["first_name"] for row in response.json()] == ["Cal", "Bea", "Ann"]

    def test_limit_and_offset(self, client, db_session, admin_token):
        for name in ("Ann", "Bea", "Cal"):
            add_inquiry(db_session, name)

        response = client.get("/auth/api/inquiries", params={"limit": 1, "offset": 1},
                              headers=bearer(admin_token))

        assert [row["first_name"] for row in response.json()] == ["Bea"]

    def test_empty_store_returns_empty_list(self, client, admin_token):
        assert client.get("/auth/api/inquiries", headers=bearer(admin_token)).json() == []

    def test_admin_alias_prefix(self, client, db_session, admin_token):
        add_inquiry(db_session, "Ann")

        response = client.get("/admin/api/inquiries", headers=bearer(admin_token))

        assert response.status_code == 200
        assert len(response.json()) == 1

    @pytest.mark.parametrize("path", ["/auth/api/inquiries", "/auth/api/abuse-logs"])
    def test_requires_admin(self, client, user_token, path):
        assert client.get(path).status_code == 401
        assert client.get(path, headers=bearer(user_token)).status_code == 403


class TestAbuseLogs:

    def test_newest_first(self, client, db_session, admin_token):
        base = datetime(2026, 3, 10, 12, 0, 0)
        for offset, address in enumerate(("198.51.100.1", "198.51.100.2")):
            db_session.add(AbuseLogEntry(client_address=address, reason="rate limit exceeded",
                                         created_at=base + timedelta(minutes=offset)))
        db_session.commit()

        body = client.get("/auth/api/abuse-logs", headers=bearer(admin_token)).json()

        assert [row["client_address"] for row in body] == ["198.51.100.2", "198.51.100.1"]
        assert body[0]["reason"] == "rate limit exceeded"

    def test_recorded_entries_are_listed(self, client, db_session, admin_token):
        record_abuse(db_session, "203.0.113.5", "rate limit exceeded")
        db_session.commit()

        body = client.get("/admin/api/abuse-logs", headers=bearer(admin_token)).json()

        assert len(body) == 1
        assert body[0]["client_address"] == "203.0.113.5"


class TestImageManagement:

    def test_upload_then_list_then_delete(self, client, admin_token, object_store, png_bytes):
        response = client.post(
            "/auth/api/upload-image",
            data={"bucket": "flash"},
            files={"file": ("rose.png", png_bytes, "image/png")},
            headers=bearer(admin_token),
        )

        assert response.status_code == 201
        uploaded = response.json()
        assert uploaded["bucket"] == "flash"
        assert uploaded["url"] == f"https://cdn.example.com/uploads/flash/{uploaded['name']}"
        assert client.get("/api/images/flash").json() == [uploaded["url"]]

        response = client.delete(
            "/auth/api/delete-image",
            params={"bucket": "flash", "name": uploaded["name"]},
            headers=bearer(admin_token),
        )

        assert response.status_code == 200
        assert client.get("/api/images/flash").json() == []

    def test_upload_rejects_non_image(self, client, admin_token, object_store):
        response = client.post(
            "/auth/api/upload-image",
            data={"bucket": "gallery"},
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=bearer(admin_token),
        )

        assert response.status_code == 400
        assert object_store.list_keys("gallery") == []

    def test_upload_to_unknown_bucket_is_404(self, client, admin_token, png_bytes):
        response = client.post(
            "/auth/api/upload-image",
            data={"bucket": "inquiries"},
            files={"file": ("rose.png", png_bytes, "image/png")},
            headers=bearer(admin_token),
        )

        assert response.status_code == 404

    def test_upload_requires_admin(self, client, user_token, png_bytes):
        response = client.post(
            "/auth/api/upload-image",
            data={"bucket": "gallery"},
            files={"file": ("rose.png", png_bytes, "image/png")},
            headers=bearer(user_token),
        )

        assert response.status_code == 403

    def test_delete_missing_image_is_404(self, client, admin_token):
        response = client.delete(
            "/auth/api/delete-image",
            params={"bucket": "gallery", "name": "missing.png"},
            headers=bearer(admin_token),
        )

        assert response.status_code == 404
        assert response.json() == {"message": "Image not found."}

    def test_delete_rejects_path_traversal(self, client, admin_token):
        response = client.delete(
            "/auth/api/delete-image",
            params={"bucket": "gallery", "name": "../inquiries/secret.png"},
            headers=bearer(admin_token),
        )

        assert response.status_code == 400
