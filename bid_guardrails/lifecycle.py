"""
TACOS-driven lifecycle judgment and bid control

Lifecycle path: LAUNCH_HARD -> LAUNCH_SOFT -> GROW -> HARVEST.
HARVEST is terminal here; it escalates to bid reduction and then a stop flag
instead of demoting further. Persisting a recommended stage change is the
caller's job.
"""

from typing import List

from .logger import get_logger
from .models import (
    BidControlAction,
    LifecycleState,
    TacosControlContext,
    TacosLifecycleJudgment,
    TacosZone,
)
from .profiles import LIFECYCLE_TACOS_ZONE_TOLERANCE

logger = get_logger(__name__)

NEXT_LIFECYCLE_STATE = {
    LifecycleState.LAUNCH_HARD: LifecycleState.LAUNCH_SOFT,
    LifecycleState.LAUNCH_SOFT: LifecycleState.GROW,
    LifecycleState.GROW: LifecycleState.HARVEST,
}

RED_BID_MULTIPLIER = 0.8
ORANGE_BID_MULTIPLIER = 0.9
TIGHTENING_SENSITIVITY = 0.5
MAX_TIGHTENING_RATE = 0.2


class _Judgment:
    """Mutable scratchpad for one judgment, frozen into TacosLifecycleJudgment at the end."""

    def __init__(self, current_state: LifecycleState):
        self.current_state = current_state
        self.recommended_state = current_state
        self.bid_reduction = False
        self.bid_stop = False
        self.tightening = False
        self.reasons: List[str] = []
        self.warnings: List[str] = []

    def demote(self):
        self.recommended_state = NEXT_LIFECYCLE_STATE.get(self.current_state, self.current_state)

    def freeze(self) -> TacosLifecycleJudgment:
        return TacosLifecycleJudgment(
            current_state=self.current_state,
            recommended_state=self.recommended_state,
            state_change_recommended=self.recommended_state != self.current_state,
            bid_reduction_recommended=self.bid_reduction,
            bid_stop_recommended=self.bid_stop,
            target_acos_tightening_recommended=self.tightening,
            reasons=self.reasons,
            warnings=self.warnings,
        )


def judge_tacos_based_lifecycle(
    context: TacosControlContext,
    current_state: LifecycleState,
) -> TacosLifecycleJudgment:
    """
    Judge whether the current lifecycle stage still fits the TACOS zone.

    - GREEN: continue, no flags
    - ORANGE: tolerated for orange_tolerance_months, then tighten + demote one step
      (GROW also cuts bids, HARVEST cuts bids without demoting)
    - RED: LAUNCH_HARD tolerated only for growing candidates within the red
      tolerance; every other stage demotes or, in HARVEST, stops bidding
    """
    zone = context.tacos_zone
    is_growing_candidate = bool(context.is_growing_candidate)
    orange_months = context.orange_zone_months or 0
    red_months = context.red_zone_months or 0

    tolerance = LIFECYCLE_TACOS_ZONE_TOLERANCE.get(
        current_state, LIFECYCLE_TACOS_ZONE_TOLERANCE[LifecycleState.GROW]
    )
    j = _Judgment(current_state)
    stage = current_state.value

    if zone == TacosZone.GREEN:
        j.reasons.append(f"GREEN zone: healthy, continue {stage}")

    elif zone == TacosZone.ORANGE:
        if current_state == LifecycleState.HARVEST:
            j.warnings.append("ORANGE zone: not tolerated in HARVEST, reduce bids")
            j.bid_reduction = True
            j.tightening = True
        elif orange_months <= tolerance.orange_tolerance_months:
            tolerance_note = (
                f"ORANGE zone month {orange_months}: within tolerance "
                f"(up to {tolerance.orange_tolerance_months} months)"
            )
            # LAUNCH_HARD: note only, no warning
            if current_state == LifecycleState.LAUNCH_HARD:
                j.reasons.append(tolerance_note)
            else:
                j.warnings.append(tolerance_note)
            j.reasons.append(f"ORANGE zone tolerated, continue {stage}")
            if current_state == LifecycleState.GROW:
                j.tightening = True
        else:
            j.tightening = True
            j.demote()
            if current_state == LifecycleState.GROW:
                j.bid_reduction = True
            j.warnings.append(
                f"ORANGE zone for {orange_months} months: tighten target ACOS, "
                f"move to {j.recommended_state.value}"
            )

    elif zone == TacosZone.RED:
        if current_state == LifecycleState.LAUNCH_HARD:
            j.tightening = True
            if is_growing_candidate and red_months <= tolerance.red_tolerance_months_for_growth:
                j.warnings.append(
                    f"RED zone month {red_months}: tolerated for growing candidate "
                    f"(up to {tolerance.red_tolerance_months_for_growth} months)"
                )
            else:
                j.demote()
                j.warnings.append("RED zone: tighten target ACOS now, move to LAUNCH_SOFT")
        elif current_state == LifecycleState.HARVEST:
            j.bid_stop = True
            j.bid_reduction = True
            j.tightening = True
            j.warnings.append("RED zone: recommend stopping bids")
        else:
            j.demote()
            j.bid_reduction = True
            j.tightening = True
            j.warnings.append(
                f"RED zone: tighten target ACOS, reduce bids, move to {j.recommended_state.value}"
            )

    judgment = j.freeze()
    logger.debug(
        "Lifecycle judged",
        extra={"fields": {"tacos_zone": zone.value, "judgment": judgment.as_dict()}},
    )
    return judgment


def determine_bid_control_action(
    judgment: TacosLifecycleJudgment,
    context: TacosControlContext,
) -> BidControlAction:
    bid_multiplier = 1.0
    target_acos_adjustment = 1.0
    stop_bidding = False
    reasons = []

    # 1. Stop / reduce
    if judgment.bid_stop_recommended:
        stop_bidding = True
        bid_multiplier = 0.0
        reasons.append("stop bidding")
    elif judgment.bid_reduction_recommended:
        if context.tacos_zone == TacosZone.RED:
            bid_multiplier = RED_BID_MULTIPLIER
            reasons.append("RED zone: bids -20%")
        elif context.tacos_zone == TacosZone.ORANGE:
            bid_multiplier = ORANGE_BID_MULTIPLIER
            reasons.append("ORANGE zone: bids -10%")

    # 2. Tighten target ACOS proportionally to overspend
    if judgment.target_acos_tightening_recommended and not stop_bidding:
        delta = context.tacos_delta
        if delta < 0:
            tightening_rate = min(abs(delta) * TIGHTENING_SENSITIVITY, MAX_TIGHTENING_RATE)
            target_acos_adjustment = 1 - tightening_rate
            reasons.append(f"target ACOS tightened {tightening_rate * 100:.0f}%")

    return BidControlAction(
        bid_multiplier_adjustment=bid_multiplier,
        stop_bidding=stop_bidding,
        target_acos_adjustment=target_acos_adjustment,
        reason="; ".join(reasons) or "no adjustment",
    )
