import json

import pytest

from stackstate.stacks.catalog import (
    DisplaySettings,
    ModifierKind,
    RuleCatalog,
    StackConfigError,
    StackStateDefinition,
    load_catalog,
    load_catalog_file,
)


def _record(**overrides):
    record = {"stateId": 5, "maxStack": 10, "initialStack": 1}
    record.update(overrides)
    return record


def test_record_fields_are_read():
    catalog = load_catalog([
        _record(autoStateAdd="true", autoStateRemove=True, syncTurnCount="false", showStackNum="false"),
    ])
    definition = catalog.definition_of(5)

    assert definition == StackStateDefinition(
        status_id=5,
        max_stack=10,
        initial_stack=1,
        auto_add=True,
        auto_remove=True,
        sync_duration=False,
        show_stack=False,
    )
    assert catalog.is_stack_status(5)
    assert 5 in catalog
    assert len(catalog) == 1
    assert catalog.definition_of(6) is None


def test_show_stack_defaults_to_true():
    definition = load_catalog([_record()]).definition_of(5)
    assert definition.show_stack is True
    assert definition.auto_add is False


def test_rules_are_compiled_and_indexed():
    catalog = load_catalog([
        _record(
            elementRate=[{"id": 2, "value": "5"}],
            nparam=[{"id": 2, "addValue": "3", "rateValue": "10"}, {"id": 6, "addValue": "", "rateValue": "1"}],
            xparam=[{"id": 0, "value": "a.level"}],
            attackState=[{"id": 4, "value": 20}],
            attackSpeedStack="2",
            attackTimesStack="",
        ),
        _record(stateId=6, elementRate=[{"id": 2, "value": "7"}], stateRete=[{"id": 4, "value": "-10"}]),
    ])

    element_rules = catalog.rules_for(ModifierKind.ELEMENT_RATE, 2)
    assert [(entry.status_id, entry.value.evaluate()) for entry in element_rules] == [(5, 5), (6, 7)]
    assert [entry.status_id for entry in catalog.rules_for(ModifierKind.PARAM_ADD, 2)] == [5]
    assert [entry.status_id for entry in catalog.rules_for(ModifierKind.PARAM_RATE, 6)] == [5]
    assert catalog.rules_for(ModifierKind.PARAM_ADD, 6) == ()
    assert catalog.rules_for(ModifierKind.STATUS_RATE, 4)[0].value.evaluate() == -10
    assert catalog.targets_of(ModifierKind.ATTACK_STATUS) == (4,)
    assert len(catalog.rules_for(ModifierKind.ATTACK_SPEED)) == 1
    assert catalog.rules_for(ModifierKind.ATTACK_TIMES) == ()
    kinds = [rule.kind for rule in catalog.definition_of(5).rules]
    assert kinds == [
        ModifierKind.ELEMENT_RATE,
        ModifierKind.PARAM_ADD,
        ModifierKind.PARAM_RATE,
        ModifierKind.PARAM_RATE,
        ModifierKind.XPARAM,
        ModifierKind.ATTACK_STATUS,
        ModifierKind.ATTACK_SPEED,
    ]
    assert [rule.target for rule in catalog.definition_of(5).rules_of(ModifierKind.PARAM_RATE)] == [2, 6]


def test_plugin_parameters_with_encoded_strings():
    raw = {
        "stateConfig": json.dumps([
            json.dumps({"stateId": "9", "maxStack": "3", "initialStack": "0", "sparam": json.dumps([{"id": "1", "value": "4"}])}),
        ]),
        "stackFontSize": "24",
        "stackAxisX": "2",
        "stackAxisY": "",
    }
    catalog = load_catalog(raw)

    assert catalog.definition_of(9).max_stack == 3
    assert catalog.rules_for(ModifierKind.SPARAM, 1)[0].status_id == 9
    assert catalog.display == DisplaySettings(font_size=24, offset_x=2, offset_y=8)


def test_load_catalog_file(tmp_path):
    path = tmp_path / "stack_states.json"
    path.write_text(json.dumps({"stateConfig": [_record()]}), encoding="utf-8")

    catalog = load_catalog_file(path)

    assert catalog.definition_of(5).initial_stack == 1


def test_clamp_bounds():
    assert StackStateDefinition(status_id=1, max_stack=10).clamp(15) == 10
    assert StackStateDefinition(status_id=1, max_stack=10).clamp(-3) == 0
    assert StackStateDefinition(status_id=1).clamp(10_000) == 10_000


@pytest.mark.parametrize(
    "records",
    [
        [_record(), _record()],
        [{"maxStack": 3}],
        [_record(stateId=0)],
        [_record(maxStack=-1)],
        [_record(maxStack="lots")],
        [_record(initialStack=1.5)],
        [_record(xparam=[{"id": 10, "value": 1}])],
        [_record(debuffRate=[{"value": 1}])],
        [_record(elementRate={"id": 1})],
        ["not a record"],
    ],
)
def test_invalid_configuration_is_rejected(records):
    with pytest.raises(StackConfigError):
        load_catalog(records)


def test_unsupported_configuration_type():
    with pytest.raises(StackConfigError):
        load_catalog(12)
    with pytest.raises(ValueError):
        RuleCatalog([StackStateDefinition(status_id=1), StackStateDefinition(status_id=1)])
