"""Component manifests and auto-discovery registry.

Configuration files name evolution/observation functions, designs, and
criteria by string. This registry maps those identifiers to the callables
implementing them. Discovery scans packages for module-level
``PLUGIN_MANIFESTS`` lists, so an unknown identifier fails when a config is
parsed rather than on first use.
"""

from __future__ import annotations

import importlib
import pkgutil
from dataclasses import dataclass
from typing import Any, Callable, Literal

ComponentKind = Literal[
    "evolution",
    "observation",
    "design",
    "criterion",
    "simulator",
    "log_likelihood",
]

COMPONENT_KINDS: tuple[str, ...] = (
    "evolution",
    "observation",
    "design",
    "criterion",
    "simulator",
    "log_likelihood",
)


@dataclass(frozen=True, slots=True)
class ComponentManifest:
    """Manifest for a discoverable component.

    Parameters
    ----------
    kind : str
        Component category, one of :data:`COMPONENT_KINDS`.
    component_id : str
        Stable identifier unique within ``kind``.
    component : Callable[..., Any]
        The registered callable (e.g. an evolution function or a
        :class:`~desopt.evaluation.criteria.DesignCriterion`).
    description : str, optional
        Human-readable component summary.
    aliases : tuple[str, ...], optional
        Additional identifiers resolving to the same component.
    """

    kind: ComponentKind
    component_id: str
    component: Callable[..., Any]
    description: str = ""
    aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in COMPONENT_KINDS:
            raise ValueError(f"unknown component kind {self.kind!r}; expected one of {COMPONENT_KINDS}")
        if not self.component_id:
            raise ValueError("component_id must be non-empty")


class PluginRegistry:
    """Registry of component manifests with package auto-discovery."""

    def __init__(self) -> None:
        self._manifests: dict[tuple[str, str], ComponentManifest] = {}

    def register(self, manifest: ComponentManifest) -> None:
        """Register one manifest under its id and aliases.

        Raises
        ------
        ValueError
            If a different manifest already exists for the same key.
        """

        for component_id in (manifest.component_id, *manifest.aliases):
            key = (manifest.kind, component_id)
            existing = self._manifests.get(key)
            if existing is not None and existing != manifest:
                raise ValueError(
                    f"manifest conflict for {manifest.kind}:{component_id}; already registered"
                )
            self._manifests[key] = manifest

    def get(self, kind: ComponentKind, component_id: str) -> ComponentManifest:
        """Return a manifest by key.

        Raises
        ------
        KeyError
            If nothing is registered under ``(kind, component_id)``. The
            message lists the available identifiers.
        """

        try:
            return self._manifests[(kind, component_id)]
        except KeyError:
            available = sorted({item.component_id for item in self.list(kind)})
            raise KeyError(
                f"unknown {kind} component {component_id!r}; available: {available}"
            ) from None

    def resolve(self, kind: ComponentKind, component_id: str) -> Callable[..., Any]:
        """Return the registered callable for ``(kind, component_id)``."""

        return self.get(kind, component_id).component

    def list(self, kind: ComponentKind | None = None) -> tuple[ComponentManifest, ...]:
        """List registered manifests (aliases collapsed), sorted by key."""

        unique = {(item.kind, item.component_id): item for item in self._manifests.values()}
        manifests = tuple(unique.values())
        if kind is not None:
            manifests = tuple(item for item in manifests if item.kind == kind)
        return tuple(sorted(manifests, key=lambda item: (item.kind, item.component_id)))

    def discover(self, package_name: str) -> tuple[ComponentManifest, ...]:
        """Discover and register manifests in a package tree.

        Parameters
        ----------
        package_name : str
            Package root to scan. Every module may define ``PLUGIN_MANIFESTS``.

        Returns
        -------
        tuple[ComponentManifest, ...]
            Manifests discovered in the package.
        """

        discovered: list[ComponentManifest] = []
        package = importlib.import_module(package_name)

        modules = [package]
        if hasattr(package, "__path__"):
            for module_info in pkgutil.walk_packages(package.__path__, prefix=package.__name__ + "."):
                modules.append(importlib.import_module(module_info.name))

        for module in modules:
            for manifest in getattr(module, "PLUGIN_MANIFESTS", ()):
                if not isinstance(manifest, ComponentManifest):
                    raise TypeError(
                        f"{module.__name__}.PLUGIN_MANIFESTS must contain ComponentManifest objects"
                    )
                self.register(manifest)
                discovered.append(manifest)

        return tuple(discovered)


def build_default_registry() -> PluginRegistry:
    """Build a registry with the built-in models, designs, and criteria."""

    registry = PluginRegistry()
    registry.discover("desopt.models")
    registry.discover("desopt.designs")
    registry.discover("desopt.evaluation.criteria")
    return registry


__all__ = [
    "COMPONENT_KINDS",
    "ComponentKind",
    "ComponentManifest",
    "PluginRegistry",
    "build_default_registry",
]
