"""
Keyword role x lifecycle guardrails

Decides which reduction actions (STOP / NEGATIVE / STRONG_DOWN) a keyword may
receive and how much evidence (clicks, overspend ratio) each action needs.

Roles, most protected first:
- CORE: the product's money keywords; almost never stopped
- SUPPORT: the main adjustment target
- EXPERIMENT: cut fastest

overspend_ratio = acos_w / target_acos
"""

from dataclasses import replace
from types import MappingProxyType
from typing import Optional

from .logger import get_logger
from .models import (
    BidAction,
    GuardedAction,
    GuardrailContext,
    KeywordRole,
    LifecycleState,
    LossBudgetState,
    PresaleType,
    RoleLifecycleGuardrails,
    SalePhase,
    parse_enum,
)

logger = get_logger(__name__)

# Base click thresholds
MIN_CLICKS_BASE_DOWN = 30
MIN_CLICKS_BASE_STRONG_DOWN = 50
MIN_CLICKS_BASE_STOP = 80

# Overspend ratio bands
SMALL_OVER = 1.1
MED_OVER = 1.3
HEAVY_OVER = 1.6

EXPERIMENT_CLICK_SCALE = 0.7

DEFAULT_ROLE_LIFECYCLE_GUARDRAILS = RoleLifecycleGuardrails(
    allow_stop=True,
    allow_negative=True,
    allow_strong_down=True,
    min_clicks_down=MIN_CLICKS_BASE_DOWN,
    min_clicks_strong_down=MIN_CLICKS_BASE_STRONG_DOWN,
    min_clicks_stop=MIN_CLICKS_BASE_STOP,
    overspend_threshold_down=SMALL_OVER,
    overspend_threshold_strong_down=MED_OVER,
    overspend_threshold_stop=HEAVY_OVER,
    max_down_step_ratio=0.2,
    reason="default guardrails",
)


def _simple_lifecycle(stage: LifecycleState) -> str:
    if stage in (LifecycleState.LAUNCH_HARD, LifecycleState.LAUNCH_SOFT):
        return "LAUNCH"
    return stage.value


def _is_presale_hold_back(ctx: GuardrailContext) -> bool:
    return ctx.sale_phase == SalePhase.PRE_SALE and ctx.presale_type == PresaleType.HOLD_BACK


# =============================================================================
# Role base rails
# =============================================================================

def _core_guardrails(ctx: GuardrailContext) -> RoleLifecycleGuardrails:
    lifecycle = _simple_lifecycle(ctx.lifecycle_stage)
    budget = ctx.loss_budget_state.value

    if lifecycle == "LAUNCH":
        # Only cautious DOWN; the STOP/STRONG_DOWN numbers are never reached
        return RoleLifecycleGuardrails(
            allow_stop=False,
            allow_negative=False,
            allow_strong_down=False,
            min_clicks_down=MIN_CLICKS_BASE_DOWN * 3,
            min_clicks_strong_down=MIN_CLICKS_BASE_STRONG_DOWN * 3,
            min_clicks_stop=MIN_CLICKS_BASE_STOP * 3,
            overspend_threshold_down=MED_OVER,
            overspend_threshold_strong_down=HEAVY_OVER,
            overspend_threshold_stop=2.0,
            max_down_step_ratio=0.1,
            reason=f"CORE x LAUNCH: STOP/NEG/STRONG_DOWN forbidden, cautious DOWN only (lossBudget={budget})",
        )

    if lifecycle == "GROW":
        allow_stop_neg = ctx.loss_budget_state == LossBudgetState.CRITICAL
        return RoleLifecycleGuardrails(
            allow_stop=allow_stop_neg,
            allow_negative=allow_stop_neg,
            allow_strong_down=not _is_presale_hold_back(ctx),
            min_clicks_down=MIN_CLICKS_BASE_DOWN * 2,
            min_clicks_strong_down=MIN_CLICKS_BASE_STRONG_DOWN * 2,
            min_clicks_stop=MIN_CLICKS_BASE_STOP * 2,
            overspend_threshold_down=SMALL_OVER,
            overspend_threshold_strong_down=MED_OVER,
            overspend_threshold_stop=HEAVY_OVER,
            max_down_step_ratio=0.15,
            reason=(
                f"CORE x GROW: STOP/NEG={'allowed by exception' if allow_stop_neg else 'forbidden'} "
                f"(lossBudget={budget})"
            ),
        )

    # HARVEST: treated close to SUPPORT
    allow_stop = ctx.loss_budget_state != LossBudgetState.SAFE
    allow_negative = ctx.loss_budget_state == LossBudgetState.CRITICAL
    return replace(
        DEFAULT_ROLE_LIFECYCLE_GUARDRAILS,
        allow_stop=allow_stop,
        allow_negative=allow_negative,
        reason=f"CORE x HARVEST: STOP={allow_stop}, NEG={allow_negative} (lossBudget={budget})",
    )


def _support_guardrails(ctx: GuardrailContext) -> RoleLifecycleGuardrails:
    lifecycle = _simple_lifecycle(ctx.lifecycle_stage)
    budget = ctx.loss_budget_state.value

    if lifecycle == "LAUNCH":
        allow_stop = ctx.loss_budget_state == LossBudgetState.CRITICAL
        allow_strong_down = not _is_presale_hold_back(ctx)
        return RoleLifecycleGuardrails(
            allow_stop=allow_stop,
            allow_negative=False,
            allow_strong_down=allow_strong_down,
            min_clicks_down=int(MIN_CLICKS_BASE_DOWN * 1.5),
            min_clicks_strong_down=MIN_CLICKS_BASE_STRONG_DOWN * 2,
            min_clicks_stop=MIN_CLICKS_BASE_STOP * 2,
            overspend_threshold_down=SMALL_OVER,
            overspend_threshold_strong_down=MED_OVER,
            overspend_threshold_stop=HEAVY_OVER,
            max_down_step_ratio=0.15,
            reason=f"SUPPORT x LAUNCH: STOP={allow_stop}, STRONG_DOWN={allow_strong_down} (lossBudget={budget})",
        )

    if lifecycle == "GROW":
        allow_negative = ctx.loss_budget_state != LossBudgetState.SAFE
        return replace(
            DEFAULT_ROLE_LIFECYCLE_GUARDRAILS,
            allow_negative=allow_negative,
            reason=f"SUPPORT x GROW: standard adjustment target, NEG={allow_negative} (lossBudget={budget})",
        )

    # HARVEST: profit first
    return replace(
        DEFAULT_ROLE_LIFECYCLE_GUARDRAILS,
        overspend_threshold_strong_down=SMALL_OVER,
        overspend_threshold_stop=MED_OVER,
        max_down_step_ratio=0.25,
        reason=f"SUPPORT x HARVEST: profit first, aggressive STOP/NEG (lossBudget={budget})",
    )


def _experiment_guardrails(ctx: GuardrailContext) -> RoleLifecycleGuardrails:
    return replace(
        DEFAULT_ROLE_LIFECYCLE_GUARDRAILS,
        min_clicks_down=round(MIN_CLICKS_BASE_DOWN * EXPERIMENT_CLICK_SCALE),
        min_clicks_strong_down=round(MIN_CLICKS_BASE_STRONG_DOWN * EXPERIMENT_CLICK_SCALE),
        min_clicks_stop=round(MIN_CLICKS_BASE_STOP * EXPERIMENT_CLICK_SCALE),
        max_down_step_ratio=0.3,
        reason=f"EXPERIMENT x {ctx.lifecycle_stage.value}: first to cut",
    )


ROLE_GUARDRAIL_BUILDERS = MappingProxyType({
    KeywordRole.CORE: _core_guardrails,
    KeywordRole.SUPPORT: _support_guardrails,
    KeywordRole.EXPERIMENT: _experiment_guardrails,
})


# =============================================================================
# Cross-cutting corrections (CORE handles both inside its own rails)
# =============================================================================

def _apply_presale_hold_back_correction(
    guardrails: RoleLifecycleGuardrails,
    ctx: GuardrailContext,
) -> RoleLifecycleGuardrails:
    if not _is_presale_hold_back(ctx) or ctx.role == KeywordRole.CORE:
        return guardrails
    return replace(
        guardrails,
        allow_strong_down=False,
        overspend_threshold_stop=max(guardrails.overspend_threshold_stop, HEAVY_OVER),
        min_clicks_stop=max(guardrails.min_clicks_stop, MIN_CLICKS_BASE_STOP * 2),
        reason=f"{guardrails.reason} -> PRE_SALE/HOLD_BACK: STRONG_DOWN forbidden, STOP threshold raised",
    )


def _apply_loss_budget_critical_correction(
    guardrails: RoleLifecycleGuardrails,
    ctx: GuardrailContext,
) -> RoleLifecycleGuardrails:
    if ctx.loss_budget_state != LossBudgetState.CRITICAL or ctx.role == KeywordRole.CORE:
        return guardrails
    return replace(
        guardrails,
        allow_stop=True,
        allow_negative=True,
        overspend_threshold_stop=min(guardrails.overspend_threshold_stop, MED_OVER),
        reason=f"{guardrails.reason} -> CRITICAL: STOP/NEG forced, STOP threshold lowered",
    )


def normalize_context(ctx: GuardrailContext) -> GuardrailContext:
    """Coerce raw strings on a context to enum members; unknown roles become SUPPORT."""
    return GuardrailContext(
        role=parse_enum(KeywordRole, ctx.role, KeywordRole.SUPPORT),
        lifecycle_stage=parse_enum(LifecycleState, ctx.lifecycle_stage, LifecycleState.GROW),
        sale_phase=parse_enum(SalePhase, ctx.sale_phase, SalePhase.NORMAL),
        presale_type=parse_enum(PresaleType, ctx.presale_type, PresaleType.NONE),
        loss_budget_state=parse_enum(LossBudgetState, ctx.loss_budget_state, LossBudgetState.SAFE),
    )


def get_role_lifecycle_guardrails(ctx: GuardrailContext) -> RoleLifecycleGuardrails:
    ctx = normalize_context(ctx)

    # 1. Role base rails
    guardrails = ROLE_GUARDRAIL_BUILDERS[ctx.role](ctx)

    # 2. PRE_SALE x HOLD_BACK
    guardrails = _apply_presale_hold_back_correction(guardrails, ctx)

    # 3. Loss budget CRITICAL
    guardrails = _apply_loss_budget_critical_correction(guardrails, ctx)

    return guardrails


# =============================================================================
# Utilities
# =============================================================================

def compute_overspend_ratio(acos_w: Optional[float], target_acos: float) -> float:
    if acos_w is None or target_acos <= 0:
        return 0.0
    return acos_w / target_acos


def is_action_allowed(action: GuardedAction, guardrails: RoleLifecycleGuardrails) -> bool:
    action = parse_enum(GuardedAction, action)
    if action == GuardedAction.DOWN:
        # DOWN is gated by thresholds only
        return True
    if action == GuardedAction.STRONG_DOWN:
        return guardrails.allow_strong_down
    if action == GuardedAction.STOP:
        return guardrails.allow_stop
    if action == GuardedAction.NEGATIVE:
        return guardrails.allow_negative
    return False


def meets_action_threshold(
    action: GuardedAction,
    clicks_w: int,
    overspend_ratio: float,
    guardrails: RoleLifecycleGuardrails,
) -> bool:
    action = parse_enum(GuardedAction, action)
    if action == GuardedAction.DOWN:
        return clicks_w >= guardrails.min_clicks_down and overspend_ratio >= guardrails.overspend_threshold_down
    if action == GuardedAction.STRONG_DOWN:
        return (
            clicks_w >= guardrails.min_clicks_strong_down
            and overspend_ratio >= guardrails.overspend_threshold_strong_down
        )
    if action == GuardedAction.STOP:
        return clicks_w >= guardrails.min_clicks_stop and overspend_ratio >= guardrails.overspend_threshold_stop
    return False


def clip_down_ratio(requested_down_ratio: float, guardrails: RoleLifecycleGuardrails) -> float:
    return min(requested_down_ratio, guardrails.max_down_step_ratio)


# (role, disallowed action) -> substitutes in preference order.
# The first substitute the guardrails permit wins.
FALLBACK_TABLE = MappingProxyType({
    (KeywordRole.CORE, BidAction.STOP): (BidAction.KEEP,),
    (KeywordRole.SUPPORT, BidAction.STOP): (BidAction.STRONG_DOWN, BidAction.MILD_DOWN),
    (KeywordRole.EXPERIMENT, BidAction.STOP): (BidAction.STRONG_DOWN, BidAction.MILD_DOWN),
    (KeywordRole.CORE, BidAction.STRONG_DOWN): (BidAction.MILD_DOWN,),
    (KeywordRole.SUPPORT, BidAction.STRONG_DOWN): (BidAction.MILD_DOWN,),
    (KeywordRole.EXPERIMENT, BidAction.STRONG_DOWN): (BidAction.MILD_DOWN,),
})


def _bid_action_permitted(action: BidAction, guardrails: RoleLifecycleGuardrails) -> bool:
    if action == BidAction.STOP:
        return guardrails.allow_stop
    if action == BidAction.STRONG_DOWN:
        return guardrails.allow_strong_down
    # UP, KEEP and MILD_DOWN are never gated
    return True


def fallback_action(
    action: BidAction,
    guardrails: RoleLifecycleGuardrails,
    role: KeywordRole,
) -> BidAction:
    """
    Redirect an action the guardrails forbid to the nearest permitted one.

    STOP becomes KEEP for CORE, else STRONG_DOWN if permitted, else MILD_DOWN.
    STRONG_DOWN becomes MILD_DOWN. Everything else passes through.
    """
    action = parse_enum(BidAction, action, BidAction.KEEP)
    role = parse_enum(KeywordRole, role, KeywordRole.SUPPORT)

    if _bid_action_permitted(action, guardrails):
        return action

    for substitute in FALLBACK_TABLE[(role, action)]:
        if _bid_action_permitted(substitute, guardrails):
            logger.debug(
                "Action redirected by guardrails",
                extra={"fields": {"role": role.value, "requested": action.value, "applied": substitute.value}},
            )
            return substitute
    return BidAction.MILD_DOWN
