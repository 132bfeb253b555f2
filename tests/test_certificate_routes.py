"""Tests for /api/certificates routes: UI, API-key and public verification."""

from __future__ import annotations

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import update

from certissuer.database import SessionLocal
from certissuer.models.certificate import Certificate

DATA = {"name": "Ada Lovelace", "course": "Analytical Engines"}


def _bearer(account: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {account['token']}"}


def _api(account: dict) -> dict[str, str]:
    return {
        "X-API-Key": account["customer"]["apiKey"],
        "X-API-Secret": account["customer"]["apiSecret"],
    }


@pytest.fixture
def template(account, create_template):
    return create_template(account)


@pytest.fixture
def issued(client, account, template):
    resp = client.post(
        "/api/certificates/generate-ui",
        json={"templateId": template["id"], "data": DATA},
        headers=_bearer(account),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["certificate"]


class TestSimulate:
    def test_preview(self, client, account, template):
        resp = client.post(
            "/api/certificates/simulate",
            json={"templateId": template["id"], "data": DATA},
            headers=_bearer(account),
        )
        assert resp.status_code == 200
        preview = resp.json()["preview"]
        assert preview["templateName"] == "Completion"
        assert preview["preview"] is True
        assert preview["estimatedOutput"]["fields"][0] == {
            "label": "Name",
            "value": "Ada Lovelace",
        }

        listing = client.get("/api/certificates", headers=_bearer(account))
        assert listing.json()["pagination"]["total"] == 0

    def test_missing_fields(self, client, account, template):
        resp = client.post(
            "/api/certificates/simulate",
            json={"templateId": template["id"], "data": {"name": "Ada"}},
            headers=_bearer(account),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["missingFields"] == ["course"]


class TestGenerateUi:
    def test_generate(self, issued):
        assert issued["certificateNumber"].startswith("CERT-")
        assert issued["status"] == "generated"
        assert issued["verificationToken"]
        assert issued["issuedAt"]

    def test_missing_fields(self, client, account, template):
        resp = client.post(
            "/api/certificates/generate-ui",
            json={"templateId": template["id"], "data": {"course": "x"}},
            headers=_bearer(account),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == {
            "message": "Missing required fields",
            "missingFields": ["name"],
        }

    def test_unknown_template(self, client, account):
        resp = client.post(
            "/api/certificates/generate-ui",
            json={"templateId": str(uuid.uuid4()), "data": DATA},
            headers=_bearer(account),
        )
        assert resp.status_code == 404

    def test_render_failure_is_500(self, client, account, template):
        async def broken(*args, **kwargs):
            raise OSError("disk full")

        with patch(
            "certissuer.services.pdf_certificate.CertificateRenderer.render",
            new=broken,
        ):
            resp = client.post(
                "/api/certificates/generate-ui",
                json={"templateId": template["id"], "data": DATA},
                headers=_bearer(account),
            )
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Failed to generate certificate"


class TestApiGenerate:
    def test_requires_credentials(self, client, template):
        resp = client.post(
            "/api/certificates/generate",
            json={"templateId": template["id"], "data": DATA},
        )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "API credentials required"

    def test_wrong_secret(self, client, account, template):
        headers = {**_api(account), "X-API-Secret": "0" * 128}
        resp = client.post(
            "/api/certificates/generate",
            json={"templateId": template["id"], "data": DATA},
            headers=headers,
        )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid API credentials"

    def test_session_token_is_not_enough(self, client, account, template):
        resp = client.post(
            "/api/certificates/generate",
            json={"templateId": template["id"], "data": DATA},
            headers=_bearer(account),
        )
        assert resp.status_code == 401

    def test_generate(self, client, account, template):
        resp = client.post(
            "/api/certificates/generate",
            json={"templateId": template["id"], "data": DATA},
            headers=_api(account),
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Certificate generated successfully"
        assert body["certificate"]["status"] == "generated"

    def test_foreign_template(self, client, register, create_template):
        owner = register("Acme", "ops@acme.com")
        other = register("Globex", "ops@globex.com")
        template = create_template(owner)
        resp = client.post(
            "/api/certificates/generate",
            json={"templateId": template["id"], "data": DATA},
            headers=_api(other),
        )
        assert resp.status_code == 404

    def test_regenerated_credentials_replace_old_pair(
        self, client, account, template
    ):
        resp = client.post(
            "/api/customers/regenerate-credentials", headers=_bearer(account)
        )
        assert resp.status_code == 200
        fresh = resp.json()
        payload = {"templateId": template["id"], "data": DATA}

        old = client.post(
            "/api/certificates/generate", json=payload, headers=_api(account)
        )
        assert old.status_code == 401

        new = client.post(
            "/api/certificates/generate",
            json=payload,
            headers={
                "X-API-Key": fresh["apiKey"],
                "X-API-Secret": fresh["apiSecret"],
            },
        )
        assert new.status_code == 201


class TestBatch:
    @pytest.mark.parametrize("certificates", [None, [], "nope"])
    def test_requires_non_empty_array(self, client, account, template, certificates):
        resp = client.post(
            "/api/certificates/batch-generate",
            json={"templateId": template["id"], "certificates": certificates},
            headers=_api(account),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Certificates array is required"

    def test_partial_success(self, client, account, template):
        resp = client.post(
            "/api/certificates/batch-generate",
            json={
                "templateId": template["id"],
                "certificates": [DATA, {"name": "Grace"}, {**DATA, "name": "Alan"}],
            },
            headers=_api(account),
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Batch generation completed. 2 successful, 1 failed"
        assert [r["index"] for r in body["results"]] == [0, 2]
        assert body["errors"][0]["index"] == 1
        assert all(r["certificateNumber"].startswith("CERT-") for r in body["results"])

    def test_unknown_template(self, client, account):
        resp = client.post(
            "/api/certificates/batch-generate",
            json={"templateId": str(uuid.uuid4()), "certificates": [DATA]},
            headers=_api(account),
        )
        assert resp.status_code == 404


class TestReadAndDownload:
    def test_list(self, client, account, issued):
        resp = client.get("/api/certificates", headers=_bearer(account))
        assert resp.status_code == 200
        body = resp.json()
        assert body["pagination"] == {
            "total": 1,
            "page": 1,
            "limit": 20,
            "totalPages": 1,
        }
        row = body["certificates"][0]
        assert row["id"] == issued["id"]
        assert row["template"]["name"] == "Completion"
        assert row["data"] == DATA

    def test_list_status_filter(self, client, account, issued):
        revoked = client.get(
            "/api/certificates", params={"status": "revoked"}, headers=_bearer(account)
        )
        assert revoked.json()["certificates"] == []
        bad = client.get(
            "/api/certificates", params={"status": "bogus"}, headers=_bearer(account)
        )
        assert bad.status_code == 422

    def test_get(self, client, account, issued):
        resp = client.get(f"/api/certificates/{issued['id']}", headers=_bearer(account))
        assert resp.status_code == 200
        certificate = resp.json()["certificate"]
        assert certificate["certificateNumber"] == issued["certificateNumber"]
        assert certificate["signature"]

    def test_download(self, client, account, issued):
        resp = client.get(
            f"/api/certificates/{issued['id']}/download", headers=_bearer(account)
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert issued["certificateNumber"] in resp.headers["content-disposition"]
        assert resp.content.startswith(b"%PDF")

    def test_other_tenant_cannot_read(self, client, register, issued):
        intruder = register("Globex", "ops@globex.com")
        for path in (
            f"/api/certificates/{issued['id']}",
            f"/api/certificates/{issued['id']}/download",
        ):
            assert client.get(path, headers=_bearer(intruder)).status_code == 404
        revoke = client.put(
            f"/api/certificates/{issued['id']}/revoke", headers=_bearer(intruder)
        )
        assert revoke.status_code == 404


class TestRevoke:
    def test_revoke_twice(self, client, account, issued):
        path = f"/api/certificates/{issued['id']}/revoke"
        first = client.put(path, headers=_bearer(account))
        assert first.status_code == 200
        assert first.json()["message"] == "Certificate revoked successfully"
        assert first.json()["certificate"]["status"] == "revoked"

        second = client.put(path, headers=_bearer(account))
        assert second.status_code == 200
        assert (
            second.json()["certificate"]["revokedAt"]
            == first.json()["certificate"]["revokedAt"]
        )


class TestVerify:
    def test_valid(self, client, issued):
        resp = client.get(f"/api/certificates/verify/{issued['verificationToken']}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["valid"] is True
        assert body["certificate"]["certificateNumber"] == issued["certificateNumber"]
        assert body["certificate"]["templateName"] == "Completion"
        assert body["certificate"]["data"] == DATA

    def test_issue_time_matches_generate_and_get(self, client, account, issued):
        assert issued["issuedAt"].endswith("Z")
        verified = client.get(
            f"/api/certificates/verify/{issued['verificationToken']}"
        )
        assert verified.json()["certificate"]["issuedAt"] == issued["issuedAt"]
        fetched = client.get(
            f"/api/certificates/{issued['id']}", headers=_bearer(account)
        )
        assert fetched.json()["certificate"]["issuedAt"] == issued["issuedAt"]

    def test_unknown_token(self, client):
        resp = client.get("/api/certificates/verify/does-not-exist")
        assert resp.status_code == 404
        assert resp.json() == {"valid": False, "detail": "Certificate not found"}

    def test_tampered_data(self, client, issued):
        with SessionLocal() as session:
            session.execute(
                update(Certificate)
                .where(Certificate.certificate_number == issued["certificateNumber"])
                .values(data={**DATA, "name": "Mallory"})
            )
            session.commit()

        resp = client.get(f"/api/certificates/verify/{issued['verificationToken']}")
        assert resp.status_code == 400
        assert resp.json()["valid"] is False

    def test_revoked_still_verifies_with_status(self, client, account, issued):
        client.put(
            f"/api/certificates/{issued['id']}/revoke", headers=_bearer(account)
        )
        resp = client.get(f"/api/certificates/verify/{issued['verificationToken']}")
        assert resp.status_code == 200
        assert resp.json()["certificate"]["status"] == "revoked"
