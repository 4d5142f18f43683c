"""
Parcel registry tests: registration rules, verification, fractionalization
and the indexed lookups.
"""

from __future__ import annotations

from typing import Any

import pytest

from land_registry.events import EventLog
from land_registry.exceptions import (
    AuthorizationError,
    InsufficientAreaError,
    MismatchError,
    NotFoundError,
    SetupError,
    ValidationError,
)
from land_registry.models import LandArea, OwnershipType
from land_registry.parcel_registry import ParcelRegistry

APPROVER = "0xApprover"
OWNER_1 = "0xOwner1"
OWNER_2 = "0xOwner2"


def _register(registry: ParcelRegistry, **overrides: Any):
    """Factory for registrations with sensible (valid) defaults."""
    kwargs: dict[str, Any] = {
        "caller": APPROVER,
        "thram_number": "THRAM-1",
        "plot_number": "PLOT-001",
        "location": "North Valley",
        "area_acres": 10,
        "area_decimals": 50,
        "owners": [OWNER_1],
        "dids": ["did:eth:owner1"],
        "percentages": [10000],
        "ownership_type": OwnershipType.SINGLE,
    }
    kwargs.update(overrides)
    return registry.register_land(**kwargs)


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def registry(events: EventLog) -> ParcelRegistry:
    return ParcelRegistry(APPROVER, events)


# ═══════════════════════════════════════════════════════════════════════
# REGISTRATION
# ═══════════════════════════════════════════════════════════════════════


class TestRegisterLand:
    def test_creates_unverified_parcel_with_full_available_area(self, registry):
        parcel = _register(registry)
        assert parcel.plot_number == "PLOT-001"
        assert parcel.is_verified is False
        assert parcel.total_area == LandArea(acres=10, decimals=50)
        assert parcel.available_area == parcel.total_area
        assert parcel.owners[0].percentage == 10000

    def test_emits_registration_event_with_all_fields(self, registry, events):
        _register(registry)
        event = events.last()
        assert event.name == "LandRegistered"
        assert event.component == "ParcelRegistry"
        assert event.key == "PLOT-001"
        assert event.fields["owners"] == [OWNER_1]
        assert event.fields["percentages"] == [10000]
        assert event.fields["area"] == {"acres": 10, "decimals": 50}
        assert event.fields["ownership_type"] == "SINGLE"

    def test_joint_ownership(self, registry):
        parcel = _register(
            registry,
            owners=[OWNER_1, OWNER_2],
            dids=["did:eth:owner1", "did:eth:owner2"],
            percentages=[7500, 2500],
            ownership_type=OwnershipType.JOINT,
        )
        assert [s.owner for s in parcel.owners] == [OWNER_1, OWNER_2]
        assert parcel.ownership_type == OwnershipType.JOINT

    def test_only_approver_may_register(self, registry):
        with pytest.raises(AuthorizationError):
            _register(registry, caller=OWNER_1)
        assert len(registry) == 0

    def test_bad_percentage_sum_leaves_no_record(self, registry, events):
        with pytest.raises(ValidationError, match="must sum to 10000"):
            _register(registry, percentages=[9999])
        assert not registry.has_plot("PLOT-001")
        assert len(events) == 0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"owners": [OWNER_1, OWNER_2]},
            {"owners": [], "dids": [], "percentages": []},
            {"thram_number": ""},
            {"plot_number": ""},
            {"area_acres": 0, "area_decimals": 0},
            {"owners": [""]},
            {"owners": [None]},
            {"dids": [""]},
        ],
    )
    def test_malformed_input_rejected(self, registry, overrides):
        with pytest.raises(ValidationError):
            _register(registry, **overrides)
        assert len(registry) == 0

    def test_duplicate_plot_rejected(self, registry):
        _register(registry)
        with pytest.raises(ValidationError, match="already registered"):
            _register(registry, thram_number="THRAM-2")
        assert registry.get_land_by_plot("PLOT-001").thram_number == "THRAM-1"

    def test_returned_parcel_is_a_copy(self, registry):
        parcel = _register(registry)
        parcel.is_verified = True
        assert registry.get_land_by_plot("PLOT-001").is_verified is False

    def test_null_approver_is_a_setup_error(self):
        with pytest.raises(SetupError):
            ParcelRegistry("")


# ═══════════════════════════════════════════════════════════════════════
# VERIFICATION
# ═══════════════════════════════════════════════════════════════════════


class TestVerifyLand:
    def test_sets_flag_and_emits(self, registry, events):
        _register(registry)
        assert registry.verify_land(APPROVER, "THRAM-1", "PLOT-001") is True
        assert registry.get_land_by_plot("PLOT-001").is_verified is True
        assert events.last().name == "LandVerified"

    def test_reverify_is_silent_noop(self, registry, events):
        _register(registry)
        registry.verify_land(APPROVER, "THRAM-1", "PLOT-001")
        count = len(events)
        assert registry.verify_land(APPROVER, "THRAM-1", "PLOT-001") is False
        assert len(events) == count
        assert registry.get_land_by_plot("PLOT-001").is_verified is True

    def test_unknown_plot(self, registry):
        with pytest.raises(NotFoundError):
            registry.verify_land(APPROVER, "THRAM-1", "PLOT-404")

    def test_thram_mismatch(self, registry):
        _register(registry)
        with pytest.raises(MismatchError) as excinfo:
            registry.verify_land(APPROVER, "THRAM-9", "PLOT-001")
        assert excinfo.value.details["recorded_thram"] == "THRAM-1"
        assert registry.get_land_by_plot("PLOT-001").is_verified is False

    def test_only_approver_may_verify(self, registry):
        _register(registry)
        with pytest.raises(AuthorizationError):
            registry.verify_land(OWNER_1, "THRAM-1", "PLOT-001")


# ═══════════════════════════════════════════════════════════════════════
# FRACTIONALIZATION
# ═══════════════════════════════════════════════════════════════════════


class TestFractionalizeLand:
    def test_deducts_across_acre_boundary(self, registry):
        _register(registry)  # 10.50 acres
        remaining = registry.fractionalize_land(APPROVER, "PLOT-001", 2, 75)
        assert remaining == LandArea(acres=7, decimals=75)
        parcel = registry.get_land_by_plot("PLOT-001")
        assert parcel.available_area == LandArea(acres=7, decimals=75)
        assert parcel.total_area == LandArea(acres=10, decimals=50)

    def test_can_consume_everything(self, registry):
        _register(registry)
        remaining = registry.fractionalize_land(APPROVER, "PLOT-001", 10, 50)
        assert remaining.is_zero

    def test_available_area_never_increases(self, registry):
        _register(registry)
        history = [registry.get_land_by_plot("PLOT-001").available_area.total_decimals]
        for acres, decimals in [(1, 0), (0, 99), (3, 1), (5, 0)]:
            registry.fractionalize_land(APPROVER, "PLOT-001", acres, decimals)
            history.append(registry.get_land_by_plot("PLOT-001").available_area.total_decimals)
        assert history == sorted(history, reverse=True)
        assert history[-1] >= 0

    def test_over_deduction_rejected_and_nothing_changes(self, registry, events):
        _register(registry)
        count = len(events)
        with pytest.raises(InsufficientAreaError):
            registry.fractionalize_land(APPROVER, "PLOT-001", 10, 51)
        assert registry.get_land_by_plot("PLOT-001").available_area == LandArea(acres=10, decimals=50)
        assert len(events) == count

    def test_zero_deduction_rejected(self, registry):
        _register(registry)
        with pytest.raises(ValidationError):
            registry.fractionalize_land(APPROVER, "PLOT-001", 0, 0)

    def test_unauthorized_caller(self, registry):
        _register(registry)
        with pytest.raises(AuthorizationError):
            registry.fractionalize_land("0xStranger", "PLOT-001", 1, 0)

    def test_authorized_tokenizer_may_deduct(self, registry):
        _register(registry)
        registry.authorize_tokenizer(APPROVER, "tokenizer")
        registry.fractionalize_land("tokenizer", "PLOT-001", 1, 0)
        assert registry.get_land_by_plot("PLOT-001").available_area == LandArea(acres=9, decimals=50)

    def test_emits_event(self, registry, events):
        _register(registry)
        registry.fractionalize_land(APPROVER, "PLOT-001", 1, 25)
        event = events.last()
        assert event.name == "LandFractionalized"
        assert event.fields["deducted"] == {"acres": 1, "decimals": 25}
        assert event.fields["remaining"] == {"acres": 9, "decimals": 25}


# ═══════════════════════════════════════════════════════════════════════
# LOOKUPS
# ═══════════════════════════════════════════════════════════════════════


class TestLookups:
    @pytest.fixture(autouse=True)
    def _seed(self, registry):
        _register(registry, plot_number="PLOT-001")
        _register(
            registry,
            plot_number="PLOT-002",
            owners=[OWNER_1, OWNER_2],
            dids=["did:eth:owner1", "did:eth:owner2"],
            percentages=[5000, 5000],
            ownership_type=OwnershipType.JOINT,
        )
        _register(registry, thram_number="THRAM-2", plot_number="PLOT-003", owners=[OWNER_2],
                  dids=["did:eth:owner2"])

    def test_plots_by_thram(self, registry):
        plots = registry.get_plots_by_thram("THRAM-1")
        assert [p.plot_number for p in plots] == ["PLOT-001", "PLOT-002"]

    def test_unknown_thram_raises(self, registry):
        with pytest.raises(NotFoundError):
            registry.get_plots_by_thram("THRAM-404")

    def test_unknown_plot_raises(self, registry):
        with pytest.raises(NotFoundError):
            registry.get_land_by_plot("PLOT-404")

    def test_lands_by_owner(self, registry):
        assert [p.plot_number for p in registry.get_lands_by_owner(OWNER_2)] == [
            "PLOT-002",
            "PLOT-003",
        ]

    def test_lands_by_did(self, registry):
        assert [p.plot_number for p in registry.get_lands_by_user_did("did:eth:owner1")] == [
            "PLOT-001",
            "PLOT-002",
        ]

    def test_unknown_owner_and_did_return_empty(self, registry):
        assert registry.get_lands_by_owner("0xNobody") == []
        assert registry.get_lands_by_user_did("did:eth:nobody") == []
