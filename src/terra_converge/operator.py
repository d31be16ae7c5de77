# src/terra_converge/operator.py
"""
Montagem do operador: settings → logging → manager com controllers.

    settings = load_settings("operator.yaml")
    configure_logging(settings)
    manager = build_manager(store, settings)
    manager.start()
    ...
    manager.stop()

Controllers registrados:
    - ConfigurationController (workers.configuration), observando ExecutionUnit
    - RevisionController (workers.revision), observando CloudResource
    - DriftController (workers.drift), somente com `drift.check_interval_seconds > 0`
    - ExpireController (workers.expire), somente com expiração habilitada
"""

from __future__ import annotations

import logging
from typing import Optional

from terra_converge.core.clock import Clock, utcnow
from terra_converge.core.config.settings import Settings
from terra_converge.core.engine.manager import Manager
from terra_converge.core.traceability.events import EventRecorder, LoggingEventRecorder
from terra_converge.core.traceability.metrics import MetricsSink, NoopMetrics
from terra_converge.model.resources import CloudResource, ExecutionUnit
from terra_converge.render.units import UnitRenderer
from terra_converge.steps.configuration.controller import ConfigurationController, unit_owner_keys
from terra_converge.steps.drift.controller import DriftController
from terra_converge.steps.expire.controller import ExpireController
from terra_converge.steps.revision.controller import RevisionController

log = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.getLogger("terra_converge").setLevel(settings.log_level)


def build_manager(
    store,
    settings: Settings,
    *,
    recorder: Optional[EventRecorder] = None,
    metrics: Optional[MetricsSink] = None,
    renderer: Optional[UnitRenderer] = None,
    clock: Clock = utcnow,
    cycle_timeout: Optional[float] = None,
) -> Manager:
    recorder = recorder or LoggingEventRecorder()
    metrics = metrics or NoopMetrics()
    manager = Manager(store, settings, cycle_timeout=cycle_timeout)

    configurations = ConfigurationController(
        store, settings, recorder, metrics=metrics, renderer=renderer, clock=clock
    )
    manager.register(
        configurations,
        concurrency=settings.workers.configuration,
        watches=[(ExecutionUnit, unit_owner_keys)],
        name="configuration",
    )

    revisions = RevisionController(store, settings, recorder, metrics=metrics, clock=clock)
    manager.register(
        revisions,
        concurrency=settings.workers.revision,
        watches=[(CloudResource, revisions.consumer_keys)],
        name="revision",
    )

    if settings.drift.enabled:
        manager.register(
            DriftController(store, settings, recorder, clock=clock),
            concurrency=settings.workers.drift,
            name="drift",
        )
    else:
        log.info("drift detection disabled")

    if settings.revisions.expiry_enabled:
        manager.register(
            ExpireController(store, settings, recorder, clock=clock),
            concurrency=settings.workers.expire,
            name="expire",
        )
    else:
        log.info("revision expiration disabled")

    log.info("operator configured", extra={"config_hash": settings.config_hash})
    return manager
