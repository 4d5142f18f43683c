"""
FastAPI endpoint tests for the Land Registry API.

Uses httpx + FastAPI TestClient — no real server needed.
"""

from __future__ import annotations

import inspect

import api
import pytest
from api import app
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from conftest import APPROVER, BANK, BUYER, COURT, DEPLOYER, OWNER_1, TAX
from land_registry.models import VerifierRole
from land_registry.system import LandRegistrySystem

client = TestClient(app)


@pytest.fixture(autouse=True)
def _fresh_system() -> None:
    """Wire a fresh registry for every test (bypasses lifespan)."""
    api._system = LandRegistrySystem(
        deployer=DEPLOYER,
        approver=APPROVER,
        verifiers={
            VerifierRole.BANK: [BANK],
            VerifierRole.COURT: [COURT],
            VerifierRole.TAX: [TAX],
        },
    )
    yield  # type: ignore[misc]
    api._system = None


# ─── Sample payloads ────────────────────────────────────────────────

PARCEL = {
    "thram_number": "THRAM-1",
    "plot_number": "PLOT-001",
    "location": "North Valley",
    "area_acres": 10,
    "area_decimals": 50,
    "owners": [OWNER_1],
    "dids": ["did:eth:owner1"],
    "percentages": [10000],
}

SOLE = {"owners": [OWNER_1], "dids": ["did:eth:owner1"], "percentages": [10000]}


def _as(identity: str) -> dict[str, str]:
    return {"X-Caller": identity}


def _register_and_verify() -> None:
    assert client.post("/parcels", json=PARCEL, headers=_as(APPROVER)).status_code == 201
    resp = client.post(
        "/parcels/PLOT-001/verify", json={"thram_number": "THRAM-1"}, headers=_as(APPROVER)
    )
    assert resp.status_code == 200


def _verified_token() -> int:
    _register_and_verify()
    resp = client.post(
        "/tokens/plot", json={"plot_number": "PLOT-001", **SOLE}, headers=_as(DEPLOYER)
    )
    token_id = resp.json()["token_id"]
    for role, verifier in (("bank", BANK), ("court", COURT), ("tax", TAX)):
        client.post(f"/tokens/{token_id}/verifications/{role}", headers=_as(verifier))
    return token_id


# ═══════════════════════════════════════════════════════════════════════
# SYSTEM
# ═══════════════════════════════════════════════════════════════════════


class TestHealthEndpoint:
    def test_health_returns_200(self) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200

    def test_health_response_shape(self) -> None:
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["parcels"] == 0
        assert data["tokens"] == 0

    def test_unwired_registry_is_503(self) -> None:
        api._system = None
        assert client.get("/health").status_code == 503

    def test_handlers_run_on_the_event_loop(self) -> None:
        routes = [r for r in app.routes if isinstance(r, APIRoute)]
        assert routes
        blocking = [r.path for r in routes if not inspect.iscoroutinefunction(r.endpoint)]
        assert blocking == []


# ═══════════════════════════════════════════════════════════════════════
# PARCELS
# ═══════════════════════════════════════════════════════════════════════


class TestParcelEndpoints:
    def test_register(self) -> None:
        resp = client.post("/parcels", json=PARCEL, headers=_as(APPROVER))
        assert resp.status_code == 201
        data = resp.json()
        assert data["plot_number"] == "PLOT-001"
        assert data["is_verified"] is False
        assert data["available_area"] == {"acres": 10, "decimals": 50}

    def test_register_requires_caller_header(self) -> None:
        assert client.post("/parcels", json=PARCEL).status_code == 422

    def test_non_approver_is_403(self) -> None:
        resp = client.post("/parcels", json=PARCEL, headers=_as(OWNER_1))
        assert resp.status_code == 403
        assert resp.json()["code"] == "UNAUTHORIZED"

    def test_bad_shares_is_400_with_findings(self) -> None:
        payload = {**PARCEL, "percentages": [9000]}
        resp = client.post("/parcels", json=payload, headers=_as(APPROVER))
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "VALIDATION_FAILED"
        assert body["details"]["findings"][0]["code"] == "PERCENTAGE_SUM_INVALID"

    def test_verify_and_lookups(self) -> None:
        _register_and_verify()
        assert client.get("/parcels/PLOT-001").json()["is_verified"] is True
        assert len(client.get("/thrams/THRAM-1/parcels").json()) == 1
        assert len(client.get(f"/owners/{OWNER_1}/parcels").json()) == 1
        assert len(client.get("/dids/did:eth:owner1/parcels").json()) == 1

    def test_thram_mismatch_is_409(self) -> None:
        client.post("/parcels", json=PARCEL, headers=_as(APPROVER))
        resp = client.post(
            "/parcels/PLOT-001/verify", json={"thram_number": "THRAM-9"}, headers=_as(APPROVER)
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "IDENTIFIER_MISMATCH"

    def test_unknown_plot_is_404(self) -> None:
        assert client.get("/parcels/PLOT-404").status_code == 404


# ═══════════════════════════════════════════════════════════════════════
# TOKENS + VERIFICATION
# ═══════════════════════════════════════════════════════════════════════


class TestTokenEndpoints:
    def test_mint_fraction_and_read(self) -> None:
        _register_and_verify()
        resp = client.post(
            "/tokens/fraction",
            json={"plot_number": "PLOT-001", "acres": 2, "decimals": 50, **SOLE},
            headers=_as(DEPLOYER),
        )
        assert resp.status_code == 201
        token_id = resp.json()["token_id"]

        data = client.get(f"/tokens/{token_id}").json()
        assert data["token"]["token_type"] == "FRACTION"
        assert data["holder"] == OWNER_1
        assert data["uri"] == ""
        assert client.get("/plots/PLOT-001/tokens").json() == [token_id]
        assert client.get("/parcels/PLOT-001").json()["available_area"] == {
            "acres": 8,
            "decimals": 0,
        }

    def test_oversized_fraction_is_409(self) -> None:
        _register_and_verify()
        resp = client.post(
            "/tokens/fraction",
            json={"plot_number": "PLOT-001", "acres": 20, **SOLE},
            headers=_as(DEPLOYER),
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "INSUFFICIENT_AREA"

    def test_set_uri(self) -> None:
        token_id = _verified_token()
        resp = client.put(
            f"/tokens/{token_id}/uri", json={"uri": "ipfs://deed"}, headers=_as(DEPLOYER)
        )
        assert resp.status_code == 200
        assert client.get(f"/tokens/{token_id}").json()["uri"] == "ipfs://deed"

    def test_verification_bits(self) -> None:
        token_id = _verified_token()
        data = client.get(f"/tokens/{token_id}/verification").json()
        assert data["is_verified"] is True

    def test_wrong_verifier_is_403(self) -> None:
        _register_and_verify()
        client.post("/tokens/plot", json={"plot_number": "PLOT-001", **SOLE}, headers=_as(DEPLOYER))
        resp = client.post("/tokens/1/verifications/bank", headers=_as(TAX))
        assert resp.status_code == 403

    def test_batch_add_verifiers(self) -> None:
        resp = client.post(
            "/verifiers/batch-add",
            json={"identities": ["0xBank2", "0xTax2"], "role_types": [0, 2]},
            headers=_as(DEPLOYER),
        )
        assert resp.status_code == 200
        assert resp.json()["applied"] == 2

    def test_unknown_token_is_404(self) -> None:
        assert client.get("/tokens/99").status_code == 404

    def test_transfer_custody(self) -> None:
        token_id = _verified_token()
        resp = client.post(
            f"/tokens/{token_id}/transfer", json={"to": BUYER}, headers=_as(OWNER_1)
        )
        assert resp.status_code == 200
        assert resp.json()["holder"] == BUYER
        stranger = client.post(
            f"/tokens/{token_id}/transfer", json={"to": OWNER_1}, headers=_as(OWNER_1)
        )
        assert stranger.status_code == 403

    def test_listed_token_cannot_be_moved(self) -> None:
        token_id = _verified_token()
        client.post(f"/sales/{token_id}/list", json={"price": 500}, headers=_as(OWNER_1))
        assert client.get(f"/tokens/{token_id}").json()["locked"] is True
        resp = client.post(
            f"/tokens/{token_id}/transfer", json={"to": BUYER}, headers=_as(OWNER_1)
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "INVALID_STATE"
        assert client.get(f"/tokens/{token_id}").json()["holder"] == OWNER_1

    def test_burn_is_405(self) -> None:
        token_id = _verified_token()
        resp = client.delete(f"/tokens/{token_id}", headers=_as(OWNER_1))
        assert resp.status_code == 405
        assert resp.json()["code"] == "BURN_DISABLED"
        assert client.get(f"/tokens/{token_id}").status_code == 200

    def test_transfer_admin_ownership(self) -> None:
        resp = client.post(
            "/verifiers/admin/owner", json={"new_owner": "0xGovernor"}, headers=_as(DEPLOYER)
        )
        assert resp.json() == {"owner": "0xGovernor"}
        denied = client.post(
            "/verifiers/batch-add",
            json={"identities": ["0xBank2"], "role_types": [0]},
            headers=_as(DEPLOYER),
        )
        assert denied.status_code == 403

    def test_transfer_registry_ownership(self) -> None:
        resp = client.post(
            "/verifiers/registry/owner", json={"new_owner": "0xGovernor"}, headers=_as(DEPLOYER)
        )
        assert resp.json() == {"owner": "0xGovernor"}
        assert api._system.verifiers.owner == "0xGovernor"
        null = client.post(
            "/verifiers/admin/owner", json={"new_owner": ""}, headers=_as(DEPLOYER)
        )
        assert null.status_code == 400


# ═══════════════════════════════════════════════════════════════════════
# ESCROW
# ═══════════════════════════════════════════════════════════════════════


class TestEscrowEndpoints:
    def test_full_sale(self) -> None:
        token_id = _verified_token()
        listed = client.post(f"/sales/{token_id}/list", json={"price": 500}, headers=_as(OWNER_1))
        assert listed.json()["status"] == "PENDING_VERIFICATION"
        verified = client.post(f"/sales/{token_id}/verify", headers=_as(DEPLOYER))
        assert verified.json()["status"] == "VERIFIED"
        paid = client.post(f"/sales/{token_id}/pay", json={"value": 500}, headers=_as(BUYER))
        assert paid.json()["status"] == "PAYMENT_COMPLETE"
        assert client.get(f"/balances/{OWNER_1}").json()["amount"] == 500

        moved = client.post(f"/sales/{token_id}/transfer", headers=_as(BUYER))
        assert moved.json()["new_holder"] == BUYER
        assert client.get(f"/sales/{token_id}").json()["status"] == "NOT_FOR_SALE"

        withdrawn = client.post("/withdrawals", headers=_as(OWNER_1))
        assert withdrawn.json()["amount"] == 500
        again = client.post("/withdrawals", headers=_as(OWNER_1))
        assert again.status_code == 409
        assert again.json()["code"] == "NO_FUNDS"

    def test_wrong_amount_is_400(self) -> None:
        token_id = _verified_token()
        client.post(f"/sales/{token_id}/list", json={"price": 500}, headers=_as(OWNER_1))
        client.post(f"/sales/{token_id}/verify", headers=_as(DEPLOYER))
        resp = client.post(f"/sales/{token_id}/pay", json={"value": 499}, headers=_as(BUYER))
        assert resp.status_code == 400
        assert resp.json()["code"] == "PAYMENT_MISMATCH"

    def test_unverified_listing_is_409(self) -> None:
        _register_and_verify()
        client.post("/tokens/plot", json={"plot_number": "PLOT-001", **SOLE}, headers=_as(DEPLOYER))
        resp = client.post("/sales/1/list", json={"price": 500}, headers=_as(OWNER_1))
        assert resp.status_code == 409
        assert resp.json()["code"] == "NOT_VERIFIED"

    def test_cancel(self) -> None:
        token_id = _verified_token()
        client.post(f"/sales/{token_id}/list", json={"price": 500}, headers=_as(OWNER_1))
        resp = client.post(f"/sales/{token_id}/cancel", headers=_as(OWNER_1))
        assert resp.json()["status"] == "NOT_FOR_SALE"

    def test_payment_after_cancel_is_409(self) -> None:
        token_id = _verified_token()
        client.post(f"/sales/{token_id}/list", json={"price": 500}, headers=_as(OWNER_1))
        client.post(f"/sales/{token_id}/verify", headers=_as(DEPLOYER))
        client.post(f"/sales/{token_id}/cancel", headers=_as(OWNER_1))
        resp = client.post(f"/sales/{token_id}/pay", json={"value": 500}, headers=_as(BUYER))
        assert resp.status_code == 409
        assert resp.json()["code"] == "INVALID_STATE"
        assert client.get(f"/balances/{OWNER_1}").json()["amount"] == 0
        assert client.get(f"/tokens/{token_id}").json()["locked"] is False

    def test_event_feed_filters(self) -> None:
        _verified_token()
        names = [e["name"] for e in client.get("/events", params={"component": "VerifierRegistry"}).json()]
        assert names[-1] == "LandFullyVerified"
        tokenized = client.get("/events", params={"name": "LandTokenized"}).json()
        assert len(tokenized) == 1
