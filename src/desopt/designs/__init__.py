"""Experimental designs: stimulus-sequence generators driven by design variables."""

from .base import BoundDesign, DesignFn, bind_design
from .periodic import onecue_rect, resolve_half_period
from .stochastic import (
    ConditioningStage,
    backward_blocking,
    stochastic_conditioning,
    stochastic_conditioning_design,
    twostage_twocuecmpnd,
    twostage_twocueonly,
)

__all__ = [
    "BoundDesign",
    "ConditioningStage",
    "DesignFn",
    "backward_blocking",
    "bind_design",
    "onecue_rect",
    "resolve_half_period",
    "stochastic_conditioning",
    "stochastic_conditioning_design",
    "twostage_twocuecmpnd",
    "twostage_twocueonly",
]
