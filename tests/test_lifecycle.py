"""
Unit tests for TACOS-based lifecycle judgment and bid control actions
"""

import pytest

from bid_guardrails.lifecycle import determine_bid_control_action, judge_tacos_based_lifecycle
from bid_guardrails.models import (
    LifecycleState,
    ProductProfileType,
    TacosControlContext,
    TacosLifecycleJudgment,
    TacosZone,
)
from bid_guardrails.profiles import get_stage_tacos_control_params

LH = LifecycleState.LAUNCH_HARD
LS = LifecycleState.LAUNCH_SOFT
GROW = LifecycleState.GROW
HARVEST = LifecycleState.HARVEST


def make_context(zone, delta=-0.2, growing=None, orange=0, red=0):
    return TacosControlContext(
        tacos_max=0.5,
        tacos_target_mid=0.36,
        current_tacos=0.4,
        tacos_zone=zone,
        tacos_delta=delta,
        control_params=get_stage_tacos_control_params(ProductProfileType.DEFAULT, GROW),
        is_growing_candidate=growing,
        orange_zone_months=orange,
        red_zone_months=red,
    )


class TestGreenZone:
    @pytest.mark.parametrize("state", list(LifecycleState))
    def test_no_change_no_flags(self, state):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.GREEN), state)
        assert judgment.recommended_state == state
        assert judgment.state_change_recommended is False
        assert judgment.bid_reduction_recommended is False
        assert judgment.bid_stop_recommended is False
        assert judgment.target_acos_tightening_recommended is False
        assert len(judgment.reasons) == 1
        assert judgment.warnings == []


class TestOrangeZone:
    @pytest.mark.parametrize("state, tolerated_months", [(LH, 3), (LS, 2)])
    def test_launch_tolerated_within_months(self, state, tolerated_months):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.ORANGE, orange=tolerated_months), state)
        assert judgment.state_change_recommended is False
        assert judgment.target_acos_tightening_recommended is False

    def test_launch_hard_tolerance_reported_as_reason(self):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.ORANGE, orange=2), LH)
        assert judgment.warnings == []
        assert judgment.reasons[0] == "ORANGE zone month 2: within tolerance (up to 3 months)"
        assert judgment.reasons[1] == "ORANGE zone tolerated, continue LAUNCH_HARD"

    @pytest.mark.parametrize("state", [LS, GROW])
    def test_later_stages_warn_within_tolerance(self, state):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.ORANGE, orange=1), state)
        assert judgment.warnings[0].startswith("ORANGE zone month 1: within tolerance")

    @pytest.mark.parametrize("state, months, expected", [(LH, 4, LS), (LS, 3, GROW)])
    def test_launch_demotes_past_tolerance(self, state, months, expected):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.ORANGE, orange=months), state)
        assert judgment.recommended_state == expected
        assert judgment.state_change_recommended is True
        assert judgment.target_acos_tightening_recommended is True
        assert judgment.bid_reduction_recommended is False

    def test_grow_within_tolerance_tightens_only(self):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.ORANGE, orange=1), GROW)
        assert judgment.recommended_state == GROW
        assert judgment.target_acos_tightening_recommended is True
        assert judgment.bid_reduction_recommended is False

    def test_grow_past_tolerance_demotes_to_harvest(self):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.ORANGE, orange=2), GROW)
        assert judgment.recommended_state == HARVEST
        assert judgment.state_change_recommended is True
        assert judgment.bid_reduction_recommended is True
        assert judgment.target_acos_tightening_recommended is True

    def test_harvest_never_demotes(self):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.ORANGE, orange=0), HARVEST)
        assert judgment.recommended_state == HARVEST
        assert judgment.state_change_recommended is False
        assert judgment.bid_reduction_recommended is True
        assert judgment.bid_stop_recommended is False


class TestRedZone:
    def test_launch_hard_tolerated_for_growing_candidate(self):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.RED, growing=True, red=2), LH)
        assert judgment.recommended_state == LH
        assert judgment.target_acos_tightening_recommended is True
        assert judgment.bid_reduction_recommended is False

    def test_launch_hard_growing_candidate_past_tolerance(self):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.RED, growing=True, red=3), LH)
        assert judgment.recommended_state == LS

    def test_launch_hard_not_growing_demotes(self):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.RED, growing=False), LH)
        assert judgment.recommended_state == LS
        assert judgment.state_change_recommended is True
        assert judgment.bid_reduction_recommended is False

    @pytest.mark.parametrize("state, expected", [(LS, GROW), (GROW, HARVEST)])
    def test_demotes_with_bid_reduction(self, state, expected):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.RED), state)
        assert judgment.recommended_state == expected
        assert judgment.bid_reduction_recommended is True
        assert judgment.target_acos_tightening_recommended is True
        assert judgment.bid_stop_recommended is False

    def test_harvest_recommends_stop(self):
        judgment = judge_tacos_based_lifecycle(make_context(TacosZone.RED), HARVEST)
        assert judgment.recommended_state == HARVEST
        assert judgment.bid_stop_recommended is True
        assert judgment.state_change_recommended is False


class TestBidControlAction:
    def _judgment(self, reduction=False, stop=False, tightening=False):
        return TacosLifecycleJudgment(
            current_state=GROW,
            recommended_state=GROW,
            state_change_recommended=False,
            bid_reduction_recommended=reduction,
            bid_stop_recommended=stop,
            target_acos_tightening_recommended=tightening,
        )

    def test_stop(self):
        action = determine_bid_control_action(
            self._judgment(reduction=True, stop=True, tightening=True), make_context(TacosZone.RED)
        )
        assert action.stop_bidding is True
        assert action.bid_multiplier_adjustment == 0
        assert action.target_acos_adjustment == 1.0
        assert action.reason == "stop bidding"

    def test_red_reduction_with_tightening(self):
        action = determine_bid_control_action(
            self._judgment(reduction=True, tightening=True), make_context(TacosZone.RED, delta=-0.2)
        )
        assert action.bid_multiplier_adjustment == 0.8
        assert action.target_acos_adjustment == pytest.approx(0.9)
        assert action.reason == "RED zone: bids -20%; target ACOS tightened 10%"

    def test_orange_reduction_tightening_capped(self):
        action = determine_bid_control_action(
            self._judgment(reduction=True, tightening=True), make_context(TacosZone.ORANGE, delta=-0.6)
        )
        assert action.bid_multiplier_adjustment == 0.9
        assert action.target_acos_adjustment == pytest.approx(0.8)

    def test_no_tightening_with_headroom(self):
        action = determine_bid_control_action(
            self._judgment(tightening=True), make_context(TacosZone.ORANGE, delta=0.1)
        )
        assert action.target_acos_adjustment == 1.0
        assert action.reason == "no adjustment"

    def test_green_judgment_is_noop(self):
        context = make_context(TacosZone.GREEN, delta=0.2)
        action = determine_bid_control_action(judge_tacos_based_lifecycle(context, GROW), context)
        assert action.bid_multiplier_adjustment == 1.0
        assert action.stop_bidding is False
        assert action.reason == "no adjustment"
