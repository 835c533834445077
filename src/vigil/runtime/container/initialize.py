from __future__ import annotations

from typing import Any, Mapping

from lagom import Singleton

from vigil.peripheral.core.event_bus import EventBus
from vigil.peripheral.gamepad.mirror import InputMirror
from vigil.peripheral.gamepad.physical import (AxisLayout, ControllerBackend,
                                               PygameControllerBackend)
from vigil.peripheral.gamepad.virtual import create_virtual_controller
from vigil.peripheral.keyboard import KeyInjector, PynputKeyInjector
from vigil.rules.script import Evaluator, ScriptEvaluator
from vigil.runtime.container import RuntimeContainer
from vigil.runtime.core import Core, CoreSettings
from vigil.runtime.scheduler import CooperativeScheduler
from vigil.runtime.state_cache import (AddressTable, StateCache,
                                       StaticAddressTable)
from vigil.utilities.env import Configuration
from vigil.utilities.logging import get_logger

logger = get_logger(__name__)


def _build_address_table(_: RuntimeContainer) -> AddressTable:
    return StaticAddressTable()


def _build_core_settings(_: RuntimeContainer) -> CoreSettings:
    return CoreSettings.from_configuration()


def _build_axis_layout(_: RuntimeContainer) -> AxisLayout:
    return AxisLayout.from_indices(Configuration.stick_axes())


def _build_controller_backend(resolver: RuntimeContainer) -> ControllerBackend:
    return PygameControllerBackend(layout=resolver[AxisLayout])


def _build_input_mirror(resolver: RuntimeContainer) -> InputMirror:
    return InputMirror(
        create_virtual_controller(Configuration.virtual_controller_backend()),
        resolver[ControllerBackend],
        poll_interval_ms=Configuration.mirror_poll_interval_ms(),
        backoff_seconds=Configuration.mirror_backoff_seconds(),
        press_duration_ms=Configuration.press_duration_ms(),
    )


def _build_evaluator(_: RuntimeContainer) -> Evaluator:
    return ScriptEvaluator()


def _build_key_injector(_: RuntimeContainer) -> KeyInjector:
    return PynputKeyInjector()


def _build_core(resolver: RuntimeContainer) -> Core:
    return Core(
        bus=resolver[EventBus],
        scheduler=resolver[CooperativeScheduler],
        cache=resolver[StateCache],
        address_table=resolver[AddressTable],
        settings=resolver[CoreSettings],
        mirror_factory=lambda: resolver[InputMirror],
    )


def build_runtime_container(
    overrides: Mapping[type[Any], object] | None = None,
) -> RuntimeContainer:
    container = RuntimeContainer()
    logger.debug("Created Lagom container for runtime configuration.")
    configure_runtime_container(container=container, overrides=overrides)
    return container


def configure_runtime_container(
    *,
    container: RuntimeContainer,
    overrides: Mapping[type[Any], object] | None = None,
) -> None:
    logger.debug(
        "Configuring Lagom runtime container with overrides=%s.",
        set(overrides.keys()) if overrides else set(),
    )
    _configure_runtime_bindings(container, overrides)
    _configure_controller_bindings(container, overrides)
    _configure_rule_bindings(container, overrides)
    _bind(container, overrides, Core, Singleton(_build_core))


def _bind(
    container: RuntimeContainer,
    overrides: Mapping[type[Any], object] | None,
    key: type[Any],
    value: object,
) -> None:
    if overrides and key in overrides:
        container[key] = overrides[key]
        logger.debug("Applied Lagom override for %s.", key)
        return
    if key in container.defined_types:
        logger.debug("Lagom already defined %s; skipping registration.", key)
        return
    container[key] = value
    logger.debug("Registered Lagom provider for %s.", key)


def _configure_runtime_bindings(
    container: RuntimeContainer,
    overrides: Mapping[type[Any], object] | None,
) -> None:
    _bind(container, overrides, EventBus, Singleton(EventBus))
    _bind(container, overrides, CooperativeScheduler, Singleton(CooperativeScheduler))
    _bind(container, overrides, StateCache, Singleton(StateCache))
    _bind(container, overrides, AddressTable, Singleton(_build_address_table))
    _bind(container, overrides, CoreSettings, Singleton(_build_core_settings))


def _configure_controller_bindings(
    container: RuntimeContainer,
    overrides: Mapping[type[Any], object] | None,
) -> None:
    _bind(container, overrides, AxisLayout, Singleton(_build_axis_layout))
    _bind(container, overrides, ControllerBackend, Singleton(_build_controller_backend))
    _bind(container, overrides, InputMirror, Singleton(_build_input_mirror))


def _configure_rule_bindings(
    container: RuntimeContainer,
    overrides: Mapping[type[Any], object] | None,
) -> None:
    _bind(container, overrides, Evaluator, Singleton(_build_evaluator))
    _bind(container, overrides, KeyInjector, Singleton(_build_key_injector))
