# tests/model/test_labels.py
"""
Testes do contrato de labels de correlação.

Labels chegam como strings do store e são tipados na fronteira; erros
de formato viram `InvalidLabelError` com o label ofensor em `details`.
"""

import pytest

from terra_converge.core.exceptions import InvalidLabelError
from terra_converge.model.labels import (
    GENERATION_LABEL,
    OWNER_UID_LABEL,
    STAGE_LABEL,
    Stage,
    UnitLabels,
    config_artifact_name,
    parse_generation,
    parse_stage,
    plan_artifact_name,
    policy_artifact_name,
    state_artifact_name,
    watcher_name,
)


def test_labels_round_trip_through_store_strings():
    labels = UnitLabels(name="bucket", namespace="apps", owner_uid="u-1", stage=Stage.PLAN, generation=3)

    raw = labels.to_dict()

    assert raw[GENERATION_LABEL] == "3"
    assert raw[STAGE_LABEL] == "plan"
    assert UnitLabels.parse(raw) == labels


def test_missing_labels_are_reported():
    raw = UnitLabels(name="b", namespace="a", owner_uid="u", stage=Stage.APPLY, generation=1).to_dict()
    del raw[OWNER_UID_LABEL]

    with pytest.raises(InvalidLabelError) as info:
        UnitLabels.parse(raw)

    assert info.value.details["missing"] == [OWNER_UID_LABEL]


@pytest.mark.parametrize("value", ["", "abc", "1.5", "-1"])
def test_invalid_generation(value):
    with pytest.raises(InvalidLabelError):
        parse_generation(value)


def test_invalid_stage():
    with pytest.raises(InvalidLabelError) as info:
        parse_stage("deploy")
    assert info.value.details["label"] == STAGE_LABEL


def test_artifact_names():
    assert config_artifact_name("u-1") == "config-u-1"
    assert state_artifact_name("u-1") == "tfstate-default-u-1"
    assert policy_artifact_name("u-1") == "policy-u-1"
    assert plan_artifact_name("u-1") == "tfplan-json-u-1"
    assert watcher_name("bucket", 2, Stage.DESTROY) == "bucket-2-destroy"
