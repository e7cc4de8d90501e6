"""End-to-end tests for POST /submit-form."""

from datetime import date, timedelta

from src.shared.inquiry.database import AbuseLogEntry, Inquiry


def _submit(client, form, files=None, headers=None):
    return client.post("/submit-form", data=form, files=files, headers=headers)


class TestSuccessfulSubmission:

    def test_valid_inquiry_is_stored_and_both_emails_attempted(self, client, db_session, mailer, valid_form):
        response = _submit(client, valid_form)

        assert response.status_code == 200
        assert response.json() == {"message": "Inquiry submitted successfully!"}

        inquiries = db_session.query(Inquiry).all()
        assert len(inquiries) == 1
        stored = inquiries[0]
        assert stored.first_name == "Ann"
        assert stored.email == "ann@example.com"
        assert stored.size == "3x5 in"
        assert stored.phone == "5551234567"
        assert stored.attachment_url is None
        assert stored.submitter_id is None

        assert sorted(mailer.attempts) == sorted(["studio@example.com", "ann@example.com"])

    def test_studio_email_contains_inquiry_fields(self, client, mailer, valid_form):
        _submit(client, valid_form)

        studio = next(m for m in mailer.sent if m["to"] == "studio@example.com")
        assert studio["subject"] == "New Inquiry from Ann Lee"
        assert "forearm" in studio["html"]
        assert "raven" in studio["html"]
        assert "5551234567" in studio["html"]

    def test_email_failure_does_not_fail_request(self, client, db_session, mailer, valid_form):
        mailer.fail = True

        response = _submit(client, valid_form)

        assert response.status_code == 200
        assert response.json()["message"] == "Inquiry submitted successfully!"
        assert db_session.query(Inquiry).count() == 1
        assert len(mailer.attempts) == 2

    def test_markup_is_escaped_before_storage(self, client, db_session, admin_token, valid_form):
        valid_form["desc"] = "<b>hi</b>"

        assert _submit(client, valid_form).status_code == 200

        assert db_session.query(Inquiry).one().description == "&lt;b&gt;hi&lt;/b&gt;"
        listed = client.get(
            "/auth/api/inquiries", headers={"Authorization": f"Bearer {admin_token}"}
        ).json()
        assert listed[0]["description"] == "&lt;b&gt;hi&lt;/b&gt;"

    def test_signed_in_submitter_is_recorded(self, client, db_session, regular_user, user_token, valid_form):
        response = _submit(client, valid_form, headers={"Authorization": f"Bearer {user_token}"})

        assert response.status_code == 200
        assert db_session.query(Inquiry).one().submitter_id == regular_user.id

    def test_png_attachment_is_stored_and_linked(self, client, db_session, mailer, object_store,
                                                 valid_form, png_bytes):
        response = _submit(client, valid_form, files={"file": ("ref.png", png_bytes, "image/png")})

        assert response.status_code == 200
        stored = db_session.query(Inquiry).one()
        assert stored.attachment_url.startswith("https://cdn.example.com/uploads/inquiries/")
        assert stored.attachment_url.endswith(".png")
        assert "ref" not in stored.attachment_url.rsplit("/", 1)[1]
        assert len(object_store.list_keys("inquiries")) == 1

        studio = next(m for m in mailer.sent if m["to"] == "studio@example.com")
        assert stored.attachment_url in studio["html"]


class TestRejections:

    def test_third_submission_in_window_is_rate_limited(self, client, db_session, mailer, valid_form):
        assert _submit(client, valid_form).status_code == 200
        assert _submit(client, valid_form).status_code == 200

        response = _submit(client, valid_form)

        assert response.status_code == 429
        assert "message" in response.json()
        assert db_session.query(Inquiry).count() == 2
        logs = db_session.query(AbuseLogEntry).all()
        assert len(logs) == 1
        assert logs[0].reason == "rate limit exceeded"
        assert logs[0].client_address == "testclient"
        # Only the two accepted submissions sent mail
        assert len(mailer.attempts) == 4

    def test_rate_limited_request_skips_bot_check(self, client, bot_checker, valid_form):
        _submit(client, valid_form)
        _submit(client, valid_form)
        bot_checker.calls.clear()

        _submit(client, valid_form)

        assert bot_checker.calls == []

    def test_forwarded_header_from_untrusted_peer_is_ignored(self, client, db_session, valid_form):
        for address in ("1.1.1.1", "2.2.2.2", "3.3.3.3"):
            response = _submit(client, valid_form, headers={"X-Forwarded-For": address})

        assert response.status_code == 429
        assert db_session.query(AbuseLogEntry).one().client_address == "testclient"

    def test_missing_captcha_token_is_rejected(self, client, db_session, mailer, valid_form):
        del valid_form["g-recaptcha-response"]

        response = _submit(client, valid_form)

        assert response.status_code == 400
        assert response.json()["message"] == "Verification not completed."
        assert db_session.query(Inquiry).count() == 0
        assert mailer.attempts == []

    def test_low_score_is_rejected(self, client, db_session, bot_checker, valid_form):
        bot_checker.mode = "reject"

        response = _submit(client, valid_form)

        assert response.status_code == 400
        assert db_session.query(Inquiry).count() == 0

    def test_bot_check_outage_is_a_server_error(self, client, db_session, bot_checker, valid_form):
        bot_checker.mode = "down"

        response = _submit(client, valid_form)

        assert response.status_code == 500
        assert db_session.query(Inquiry).count() == 0

    def test_pdf_attachment_is_rejected_before_storage_and_email(self, client, db_session, mailer,
                                                                 object_store, valid_form):
        response = _submit(
            client, valid_form, files={"file": ("brief.pdf", b"%PDF-1.4 data", "application/pdf")}
        )

        assert response.status_code == 400
        assert "Invalid file type" in response.json()["message"]
        assert db_session.query(Inquiry).count() == 0
        assert object_store.list_keys("inquiries") == []
        assert mailer.attempts == []

    def test_missing_fields_are_reported_together(self, client, db_session, valid_form):
        del valid_form["placement"]
        valid_form["firstName"] = "   "

        response = _submit(client, valid_form)

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Missing required fields."
        assert set(body["errors"]) == {"placement", "firstName"}
        assert db_session.query(Inquiry).count() == 0

    def test_storage_failure_is_fatal_and_sends_no_email(self, client, db_session, mailer,
                                                          failing_inquiry_commit, valid_form):
        response = _submit(client, valid_form)

        assert response.status_code == 500
        assert response.json() == {"message": "Submission failed. Please try again later."}
        assert mailer.attempts == []
        assert db_session.query(Inquiry).count() == 0

    def test_reversed_dates_are_rejected(self, client, mailer, valid_form):
        start = date.today() + timedelta(days=10)
        valid_form["dateFrom"] = start.isoformat()
        valid_form["dateTo"] = (start - timedelta(days=1)).isoformat()

        response = _submit(client, valid_form)

        assert response.status_code == 400
        assert response.json()["errors"]["dateTo"] == "Invalid date range."
        assert mailer.attempts == []


class TestAuthenticatedVariant:

    def test_requires_sign_in_when_configured(self, client, monkeypatch, valid_form):
        from src.shared.inquiry import routes

        class GatedSettings:
            submit_requires_auth = True

        monkeypatch.setattr(routes, "get_settings", lambda: GatedSettings())

        response = _submit(client, valid_form)

        assert response.status_code == 401
        assert response.json()["message"] == "Authentication required."

    def test_signed_in_user_may_submit_when_gated(self, client, monkeypatch, user_token, valid_form):
        from src.shared.inquiry import routes

        class GatedSettings:
            submit_requires_auth = True

        monkeypatch.setattr(routes, "get_settings", lambda: GatedSettings())

        response = _submit(client, valid_form, headers={"Authorization": f"Bearer {user_token}"})

        assert response.status_code == 200
