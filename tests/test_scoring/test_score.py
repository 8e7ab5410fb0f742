"""
Tests for the composite score, zones and transitions.
"""
import pytest

from orb.scoring.score import (
    TRANSITION_MESSAGES,
    ZONE_RANK,
    assign_zone,
    compute_orb_score,
    get_zone_display,
    is_downside_transition,
    transition_message,
)
from orb.setups.catalog import AVOID_SETUP_IDS, BUY_SETUP_IDS, SETUP_REGISTRY
from orb.shared.types import SetupStatus, Zone


class TestComputeOrbScore:
    def test_empty_is_zero(self):
        assert compute_orb_score({}) == 0.0

    def test_single_active_buy(self):
        assert compute_orb_score({"goldilocks": "active"}) == 0.44

    def test_single_active_avoid(self):
        assert compute_orb_score({"dual-ll": "active"}) == -0.39

    def test_watching_counts_partially(self):
        assert compute_orb_score({"goldilocks": "watching"}) == pytest.approx(0.132)
        assert compute_orb_score({"dual-ll": "watching"}) == pytest.approx(-0.117)

    def test_inactive_and_unknown_ignored(self):
        assert compute_orb_score({"goldilocks": "inactive", "moonshot": "active"}) == 0.0

    def test_accepts_enum_status(self):
        assert compute_orb_score({"goldilocks": SetupStatus.ACTIVE}) == 0.44

    def test_rounded(self):
        score = compute_orb_score({sid: "watching" for sid in SETUP_REGISTRY})
        assert score == round(score, 3)

    def test_all_buy_active(self):
        assert compute_orb_score({sid: "active" for sid in BUY_SETUP_IDS}) == pytest.approx(4.67)

    def test_avoid_never_raises_score(self):
        """Turning on any avoid setup lowers the score, whatever else is active."""
        base_cases = [
            {},
            {sid: "active" for sid in BUY_SETUP_IDS},
            {sid: "watching" for sid in SETUP_REGISTRY},
        ]
        for base in base_cases:
            for avoid_id in AVOID_SETUP_IDS:
                before = compute_orb_score({**base, avoid_id: "inactive"})
                watching = compute_orb_score({**base, avoid_id: "watching"})
                active = compute_orb_score({**base, avoid_id: "active"})
                assert active < watching < before


class TestAssignZone:
    @pytest.mark.parametrize("score, zone", [
        (0.686, Zone.FULL_SEND),
        (0.685, Zone.NEUTRAL),
        (-0.117, Zone.NEUTRAL),
        (-0.118, Zone.CAUTION),
        (-0.729, Zone.CAUTION),
        (-0.73, Zone.DEFENSIVE),
        (3.0, Zone.FULL_SEND),
        (-2.0, Zone.DEFENSIVE),
    ])
    def test_boundaries(self, score, zone):
        assert assign_zone(score) == zone


class TestZoneDisplay:
    @pytest.mark.parametrize("score, label", [
        (0.70, "FULL SEND (Emerging)"),
        (1.00, "FULL SEND"),
        (-0.10, "NEUTRAL (Fading)"),
        (0.30, "NEUTRAL"),
        (-0.13, "CAUTION (Emerging)"),
        (-0.40, "CAUTION"),
        (-0.70, "CAUTION (Deteriorating)"),
        (-1.00, "DEFENSIVE"),
    ])
    def test_labels(self, score, label):
        assert get_zone_display(score).label == label

    def test_qualifier_field(self):
        display = get_zone_display(0.70)
        assert display.zone == Zone.FULL_SEND
        assert display.qualifier == "Emerging"
        assert get_zone_display(1.0).qualifier is None


class TestTransitions:
    def test_rank_order(self):
        ordered = sorted(ZONE_RANK, key=ZONE_RANK.get, reverse=True)
        assert ordered == [Zone.FULL_SEND, Zone.NEUTRAL, Zone.CAUTION, Zone.DEFENSIVE]

    def test_downside(self):
        assert is_downside_transition(Zone.FULL_SEND, Zone.NEUTRAL)
        assert is_downside_transition("NEUTRAL", "DEFENSIVE")
        assert not is_downside_transition(Zone.CAUTION, Zone.NEUTRAL)
        assert not is_downside_transition(Zone.CAUTION, Zone.CAUTION)

    def test_known_message(self):
        message = transition_message(Zone.NEUTRAL, Zone.CAUTION)
        assert message == TRANSITION_MESSAGES["NEUTRAL->CAUTION"]

    def test_generic_message(self):
        message = transition_message("FULL_SEND", "DEFENSIVE")
        assert message == "Orb shifted from FULL SEND to DEFENSIVE."
