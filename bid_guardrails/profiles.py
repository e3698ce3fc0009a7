"""
Static product profile templates and stage control tables

Everything here is compiled-in constant data exposed through read-only mappings.
Lookups never raise: unknown profile types and lifecycle states fall back to the
DEFAULT profile's entries.
"""

from types import MappingProxyType
from typing import Mapping, Union

from .models import (
    LifecycleState,
    LifecycleTacosZoneTolerance,
    ProductProfile,
    ProductProfileType,
    StageTacosConfig,
    StageTacosControlParams,
    parse_enum,
)

LH = LifecycleState.LAUNCH_HARD
LS = LifecycleState.LAUNCH_SOFT
GROW = LifecycleState.GROW
HARVEST = LifecycleState.HARVEST


def _per_stage(launch_hard, launch_soft, grow, harvest) -> Mapping:
    return MappingProxyType({LH: launch_hard, LS: launch_soft, GROW: grow, HARVEST: harvest})


# =============================================================================
# Product profiles
# =============================================================================

# High-margin, high-repeat supplements: LTV justifies aggressive ad spend
SUPPLEMENT_HIGH_LTV_PROFILE = ProductProfile(
    type=ProductProfileType.SUPPLEMENT_HIGH_LTV,
    description="High-margin, high-LTV supplement",
    margin_rate_normal_default=0.55,
    expected_repeat_orders_assumed=1.7,
    ltv_safety_factor=0.7,
    loss_budget_multiple_initial=0.6,
    loss_budget_multiple_mature=0.4,
    expected_repeat_orders_prior=1.3,
    ltv_safety_factor_prior=0.5,
    max_consecutive_loss_months=_per_stage(6, 4, 3, 1),
    tacos_config=_per_stage(
        StageTacosConfig(0.25, 0.40),
        StageTacosConfig(0.22, 0.38),
        StageTacosConfig(0.20, 0.35),
        StageTacosConfig(0.10, 0.20),
    ),
)

SUPPLEMENT_STANDARD_PROFILE = ProductProfile(
    type=ProductProfileType.SUPPLEMENT_STANDARD,
    description="Standard supplement, closer to one-shot purchase",
    margin_rate_normal_default=0.40,
    expected_repeat_orders_assumed=1.3,
    ltv_safety_factor=0.7,
    loss_budget_multiple_initial=0.4,
    loss_budget_multiple_mature=0.25,
    expected_repeat_orders_prior=1.1,
    ltv_safety_factor_prior=0.5,
    max_consecutive_loss_months=_per_stage(4, 3, 2, 1),
    tacos_config=_per_stage(
        StageTacosConfig(0.25, 0.55),
        StageTacosConfig(0.20, 0.45),
        StageTacosConfig(0.15, 0.35),
        StageTacosConfig(0.10, 0.25),
    ),
)

SINGLE_PURCHASE_PROFILE = ProductProfile(
    type=ProductProfileType.SINGLE_PURCHASE,
    description="Single-purchase product (shoes etc.)",
    margin_rate_normal_default=0.30,
    expected_repeat_orders_assumed=1.0,
    ltv_safety_factor=0.8,
    loss_budget_multiple_initial=0.2,
    loss_budget_multiple_mature=0.1,
    expected_repeat_orders_prior=1.0,
    ltv_safety_factor_prior=0.7,
    max_consecutive_loss_months=_per_stage(3, 2, 1, 0),
    tacos_config=_per_stage(
        StageTacosConfig(0.20, 0.40),
        StageTacosConfig(0.15, 0.35),
        StageTacosConfig(0.12, 0.25),
        StageTacosConfig(0.08, 0.18),
    ),
)

DEFAULT_PROFILE = ProductProfile(
    type=ProductProfileType.DEFAULT,
    description="Conservative default",
    margin_rate_normal_default=0.30,
    expected_repeat_orders_assumed=1.0,
    ltv_safety_factor=0.7,
    loss_budget_multiple_initial=0.3,
    loss_budget_multiple_mature=0.2,
    expected_repeat_orders_prior=1.0,
    ltv_safety_factor_prior=0.5,
    max_consecutive_loss_months=_per_stage(4, 3, 2, 1),
    tacos_config=_per_stage(
        StageTacosConfig(0.25, 0.55),
        StageTacosConfig(0.20, 0.45),
        StageTacosConfig(0.15, 0.35),
        StageTacosConfig(0.10, 0.25),
    ),
)

PRODUCT_PROFILES: Mapping[ProductProfileType, ProductProfile] = MappingProxyType({
    ProductProfileType.DEFAULT: DEFAULT_PROFILE,
    ProductProfileType.SUPPLEMENT_HIGH_LTV: SUPPLEMENT_HIGH_LTV_PROFILE,
    ProductProfileType.SUPPLEMENT_STANDARD: SUPPLEMENT_STANDARD_PROFILE,
    ProductProfileType.SINGLE_PURCHASE: SINGLE_PURCHASE_PROFILE,
})


def get_product_profile(profile_type: Union[ProductProfileType, str, None]) -> ProductProfile:
    key = parse_enum(ProductProfileType, profile_type, ProductProfileType.DEFAULT)
    return PRODUCT_PROFILES.get(key, DEFAULT_PROFILE)


# =============================================================================
# Stage TACOS control parameters
# =============================================================================

def _params(mid, acuity, penalty, acos_min, acos_max) -> StageTacosControlParams:
    return StageTacosControlParams(
        mid_factor=mid,
        tacos_acuity=acuity,
        tacos_penalty_factor_red=penalty,
        stage_acos_min=acos_min,
        stage_acos_max=acos_max,
    )


# profile type -> lifecycle state -> params
TACOS_CONTROL_PARAMS_DEFAULTS: Mapping[ProductProfileType, Mapping[LifecycleState, StageTacosControlParams]] = MappingProxyType({
    ProductProfileType.SUPPLEMENT_HIGH_LTV: _per_stage(
        _params(0.70, 0.8, 0.90, 0.15, 0.80),
        _params(0.72, 0.9, 0.85, 0.12, 0.70),
        _params(0.75, 1.0, 0.80, 0.10, 0.60),
        _params(0.80, 1.2, 0.70, 0.05, 0.40),
    ),
    ProductProfileType.SUPPLEMENT_STANDARD: _per_stage(
        _params(0.68, 0.9, 0.85, 0.15, 0.70),
        _params(0.70, 1.0, 0.80, 0.12, 0.60),
        _params(0.72, 1.1, 0.75, 0.10, 0.50),
        _params(0.78, 1.3, 0.70, 0.05, 0.35),
    ),
    ProductProfileType.SINGLE_PURCHASE: _per_stage(
        _params(0.65, 1.0, 0.80, 0.10, 0.50),
        _params(0.68, 1.1, 0.75, 0.08, 0.45),
        _params(0.70, 1.2, 0.70, 0.06, 0.35),
        _params(0.75, 1.4, 0.65, 0.04, 0.25),
    ),
    ProductProfileType.DEFAULT: _per_stage(
        _params(0.68, 0.9, 0.85, 0.12, 0.65),
        _params(0.70, 1.0, 0.80, 0.10, 0.55),
        _params(0.72, 1.1, 0.75, 0.08, 0.45),
        _params(0.78, 1.3, 0.70, 0.05, 0.30),
    ),
})


def get_stage_tacos_control_params(
    profile_type: Union[ProductProfileType, str, None],
    lifecycle_state: Union[LifecycleState, str, None],
) -> StageTacosControlParams:
    """
    Resolve control params for (profile, stage).

    A miss on the profile falls back to DEFAULT's table; an unknown stage falls
    back to DEFAULT x GROW.
    """
    defaults = TACOS_CONTROL_PARAMS_DEFAULTS[ProductProfileType.DEFAULT]
    stage = parse_enum(LifecycleState, lifecycle_state)
    if stage is None:
        return defaults[GROW]

    profile_key = parse_enum(ProductProfileType, profile_type)
    table = TACOS_CONTROL_PARAMS_DEFAULTS.get(profile_key, defaults)
    return table.get(stage, defaults[stage])


# =============================================================================
# Lifecycle zone tolerance
# =============================================================================

LIFECYCLE_TACOS_ZONE_TOLERANCE: Mapping[LifecycleState, LifecycleTacosZoneTolerance] = _per_stage(
    # RED only tolerated for growing candidates
    LifecycleTacosZoneTolerance(True, True, 3, 2),
    LifecycleTacosZoneTolerance(True, False, 2, 1),
    LifecycleTacosZoneTolerance(True, False, 1, 0),
    LifecycleTacosZoneTolerance(False, False, 0, 0),
)
