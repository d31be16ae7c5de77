# tests/steps/configuration/conftest.py
"""
Fixtures dos workflows de Configuration.

Decisões arquiteturais:
    - O controller é montado com os mesmos colaboradores dos testes de
      engine (store, recorder, métricas e relógio fixos)
    - `units_of` consulta o store, nunca o scratch state de um ciclo
"""

import pytest

from terra_converge.model.labels import STAGE_LABEL, WATCHER_LABEL
from terra_converge.model.resources import Configuration, ExecutionUnit
from terra_converge.steps.configuration.controller import ConfigurationController


@pytest.fixture
def controller(store, settings, recorder, metrics, clock):
    return ConfigurationController(store, settings, recorder, metrics=metrics, clock=clock)


@pytest.fixture
def units_of(store, settings):
    def _units(stage=None):
        units = store.list(ExecutionUnit, namespace=settings.controller.namespace)
        units = [u for u in units if u.metadata.labels.get(WATCHER_LABEL) != "true"]
        if stage is not None:
            units = [u for u in units if u.metadata.labels.get(STAGE_LABEL) == stage]
        return units

    return _units


@pytest.fixture
def current(store):
    def _get(name="bucket", namespace="apps"):
        return store.get(Configuration, namespace, name)

    return _get
