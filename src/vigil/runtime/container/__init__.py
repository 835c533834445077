"""Lagom container wiring the runtime object graph.

Bindings live in :mod:`vigil.runtime.container.initialize`, imported on the
first build.
"""

from __future__ import annotations

from typing import Any, Mapping

from lagom import Container

RuntimeContainer = Container


def build_runtime_container(
    overrides: Mapping[type[Any], object] | None = None,
) -> RuntimeContainer:
    from vigil.runtime.container.initialize import build_runtime_container as build

    return build(overrides)
