"""Tests for plugin manifests and auto-discovery."""

from __future__ import annotations

import pytest

from desopt.designs.periodic import onecue_rect
from desopt.evaluation.criteria import MODSEL_ERR, PARAMEST_ERR
from desopt.models.baseline import constant_response_log_likelihood
from desopt.models.learning import evo_krw, evo_lsspd, obs_wa_mix
from desopt.plugins import ComponentManifest, PluginRegistry, build_default_registry


def test_default_registry_discovers_builtin_components() -> None:
    """Default registry should include built-in components across all kinds."""

    registry = build_default_registry()

    def ids(kind: str) -> set[str]:
        return {manifest.component_id for manifest in registry.list(kind=kind)}

    assert {"lsspd", "krw"}.issubset(ids("evolution"))
    assert {"wa_mix", "linear"}.issubset(ids("observation"))
    assert {
        "onecue_rect",
        "stochastic_conditioning",
        "twostage_twocueonly",
        "twostage_twocuecmpnd",
        "backward_blocking",
    }.issubset(ids("design"))
    assert {"paramest_err", "modsel_err"}.issubset(ids("criterion"))
    assert "constant_response" in ids("simulator")
    assert "constant_response" in ids("log_likelihood")


def test_default_registry_resolves_ids_and_aliases() -> None:
    """Registered ids and their aliases should resolve to the same callable."""

    registry = build_default_registry()

    assert registry.resolve("evolution", "lsspd") is evo_lsspd
    assert registry.resolve("evolution", "evo_lsspd_batch") is evo_lsspd
    assert registry.resolve("evolution", "krw") is evo_krw
    assert registry.resolve("observation", "obs_wa_mix_batch") is obs_wa_mix
    assert registry.resolve("design", "exp_onecue_rect") is onecue_rect
    assert registry.resolve("criterion", "loss_modsel_err") is MODSEL_ERR
    assert registry.resolve("criterion", "paramest_err") is PARAMEST_ERR
    assert registry.resolve("log_likelihood", "constant_response") is constant_response_log_likelihood


def test_registry_reports_unknown_ids_with_available_options() -> None:
    """Unknown identifiers should list what is available."""

    registry = build_default_registry()

    with pytest.raises(KeyError, match="unknown design component 'nope'"):
        registry.get("design", "nope")


def test_registry_rejects_conflicting_manifests() -> None:
    """Registering a different component under a taken id should fail."""

    registry = PluginRegistry()
    registry.register(ComponentManifest(kind="evolution", component_id="rw", component=evo_lsspd))
    registry.register(ComponentManifest(kind="evolution", component_id="rw", component=evo_lsspd))

    with pytest.raises(ValueError, match="manifest conflict"):
        registry.register(ComponentManifest(kind="evolution", component_id="rw", component=evo_krw))
    with pytest.raises(ValueError, match="manifest conflict"):
        registry.register(
            ComponentManifest(kind="evolution", component_id="kalman", component=evo_krw, aliases=("rw",))
        )


def test_manifest_validates_kind_and_id() -> None:
    """Manifests should reject unknown kinds and empty ids."""

    with pytest.raises(ValueError, match="unknown component kind"):
        ComponentManifest(kind="model", component_id="x", component=evo_lsspd)
    with pytest.raises(ValueError, match="component_id must be non-empty"):
        ComponentManifest(kind="evolution", component_id="", component=evo_lsspd)


def test_registry_list_collapses_aliases() -> None:
    """Listing should return each manifest once even with aliases."""

    registry = PluginRegistry()
    registry.register(
        ComponentManifest(kind="evolution", component_id="rw", component=evo_lsspd, aliases=("a", "b"))
    )

    assert len(registry.list()) == 1
    assert registry.resolve("evolution", "b") is evo_lsspd
