"""
Tests for mode suggestion.
"""
from orb.setups.mode import FALLBACK_MODE, MODE_RULES, suggest_mode


class TestSuggestMode:
    def test_dual_ll_is_red(self, make_snapshot):
        result = suggest_mode(make_snapshot(), ["dual-ll"])
        assert result.suggestion == "RED"
        assert result.confidence == "high"

    def test_below_weekly_21_ejected(self, make_snapshot):
        result = suggest_mode(make_snapshot(price_above_weekly_21=False), [])
        assert result.suggestion == "RED / EJECTED"

    def test_dual_ll_wins_over_ejected(self, make_snapshot):
        result = suggest_mode(make_snapshot(price_above_weekly_21=False), {"dual-ll"})
        assert result.suggestion == "RED"

    def test_weekly_ll_daily_ll(self, make_snapshot):
        result = suggest_mode(make_snapshot(bx_weekly_state="LL", bx_daily_state="LL"), [])
        assert result.suggestion == "ORANGE"

    def test_weekly_ll_daily_recovering(self, make_snapshot):
        for daily in ("HL", "HH"):
            result = suggest_mode(make_snapshot(bx_weekly_state="LL", bx_daily_state=daily), [])
            assert result.suggestion == "ORANGE (Improving)"
            assert f"Daily BX: {daily}" in result.reasoning

    def test_weekly_hl_and_lh_yellow(self, make_snapshot):
        assert suggest_mode(make_snapshot(bx_weekly_state="HL"), []).suggestion == "YELLOW"
        assert suggest_mode(make_snapshot(bx_weekly_state="LH"), []).suggestion == "YELLOW"

    def test_full_alignment_green(self, make_snapshot):
        snapshot = make_snapshot(bx_weekly_state="HH", weekly_emas_stacked=True, price_above_weekly_all=True)
        result = suggest_mode(snapshot, ["goldilocks"])
        assert result.suggestion == "GREEN"
        assert result.confidence == "high"

    def test_green_extended_when_overextended(self, make_snapshot):
        snapshot = make_snapshot(bx_weekly_state="HH", weekly_emas_stacked=True, price_above_weekly_all=True)
        result = suggest_mode(snapshot, ["overextended"])
        assert result.suggestion == "GREEN (Extended)"
        assert result.confidence == "medium"

    def test_weekly_hh_not_stacked(self, make_snapshot):
        result = suggest_mode(make_snapshot(bx_weekly_state="HH"), [])
        assert result.suggestion == "YELLOW (Improving)"

    def test_fallback(self, make_snapshot):
        """Weekly LL with daily LH matches no rule."""
        result = suggest_mode(make_snapshot(bx_weekly_state="LL", bx_daily_state="LH"), [])
        assert result.suggestion == FALLBACK_MODE.suggestion
        assert result.confidence == "low"

    def test_fallback_not_shared(self, make_snapshot):
        result = suggest_mode(make_snapshot(bx_weekly_state="LL", bx_daily_state="LH"), [])
        result.reasoning.append("edited")
        assert "edited" not in FALLBACK_MODE.reasoning

    def test_rule_order(self):
        assert [rule.name for rule in MODE_RULES][:2] == ["dual_ll", "below_weekly_21"]

    def test_to_dict(self, make_snapshot):
        data = suggest_mode(make_snapshot(), ["dual-ll"]).to_dict()
        assert data == {
            "suggestion": "RED",
            "confidence": "high",
            "reasoning": ["Dual LL active (Daily + Weekly BX in LL)"],
        }
