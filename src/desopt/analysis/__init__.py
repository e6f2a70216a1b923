"""Post-hoc analysis of design evaluations."""

from .effect_sizes import (
    BootstrapInterval,
    BootstrapTTestResult,
    OddsRatioResult,
    binomial_ci,
    bootstrap_ttest,
    cles,
    cles_bootstrap_ci,
    modsel_accuracy_ci,
    odds_ratio,
)
from .information_criteria import (
    INFORMATION_CRITERIA,
    InformationCriterion,
    aic,
    bic,
    information_criterion,
    parse_criterion_name,
)

__all__ = [
    "INFORMATION_CRITERIA",
    "BootstrapInterval",
    "BootstrapTTestResult",
    "InformationCriterion",
    "OddsRatioResult",
    "aic",
    "bic",
    "binomial_ci",
    "bootstrap_ttest",
    "cles",
    "cles_bootstrap_ci",
    "information_criterion",
    "modsel_accuracy_ci",
    "odds_ratio",
    "parse_criterion_name",
]
