from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from coreops.core.config_schema import CoreOpsConfig, load_config, validate_config
from coreops.core.errors import ConfigurationError
from coreops.core.options import CriticalSearch, DepletionIsotope, ECPControl, TimeUnit, XenonMode


def _base() -> dict:
    return {
        "name": "unit",
        "rods": [{"id": "P"}, {"id": "R3"}, {"id": "R4"}, {"id": "R5", "overlap": "R4"}],
        "option": {"search": "boron", "xenon": "transient", "rod_positions": {"R5": 381.0}},
    }


def test_minimal_config_validates() -> None:
    cfg = validate_config(_base())
    assert isinstance(cfg, CoreOpsConfig)
    assert cfg.option.search == CriticalSearch.BORON
    assert cfg.option.xenon == XenonMode.TRANSIENT
    assert cfg.rods[3].travel == (0.0, 381.0)
    option = cfg.option.to_option()
    assert option.rod_positions == {"R5": 381.0}


def test_enum_fields_accept_names_and_codes() -> None:
    data = _base()
    data["option"]["search"] = 3
    data["operation"] = {
        "kind": "ECP",
        "control": "rod",
        "end_time": 3600.0,
        "time_step": 600.0,
        "insert_sequence": {"rods": ["R5"], "limits": [0.0]},
    }
    cfg = validate_config(data)
    assert cfg.option.search == CriticalSearch.ROD
    assert cfg.operation.kind == "ecp"
    assert cfg.operation.control == ECPControl.ROD


def test_unknown_enum_name_lists_choices() -> None:
    data = _base()
    data["option"]["xenon"] = "sometimes"
    with pytest.raises(ValidationError, match="EQUILIBRIUM"):
        validate_config(data)


def test_unknown_rod_reference_rejected() -> None:
    data = _base()
    data["option"]["rod_positions"] = {"R9": 10.0}
    with pytest.raises(ValidationError, match="unknown rod group"):
        validate_config(data)


def test_margin_rods_must_be_declared() -> None:
    data = _base()
    data["margin"] = {"failed_rod": "P", "stuck_rods": ["X1"]}
    with pytest.raises(ValidationError, match="X1"):
        validate_config(data)


def test_duplicate_rod_ids_rejected() -> None:
    data = _base()
    data["rods"].append({"id": "P"})
    with pytest.raises(ValidationError, match="unique"):
        validate_config(data)


def test_unknown_operation_kind_rejected() -> None:
    data = _base()
    data["operation"] = {"kind": "meltdown"}
    with pytest.raises(ValidationError, match="unknown operation kind"):
        validate_config(data)


def test_sequence_lengths_must_match() -> None:
    data = _base()
    data["operation"] = {"kind": "coastdown", "insert_sequence": {"rods": ["R5", "R4"], "limits": [0.0]}}
    with pytest.raises(ValidationError, match="limits"):
        validate_config(data)


def test_burnup_must_be_a_registered_point() -> None:
    data = _base()
    data["burnup_points"] = [0.0, 1000.0]
    data["burnup"] = 500.0
    with pytest.raises(ValidationError, match="burnup_points"):
        validate_config(data)


def test_depletion_entries_convert_to_options() -> None:
    data = _base()
    data["operation"] = {
        "kind": "general",
        "depletions": [
            {"isotope": "xenon", "increment": 2.0, "time_unit": "hours"},
            {"increment": 50.0, "time_unit": "MWD_PER_TON"},
        ],
    }
    cfg = validate_config(data)
    first, second = (d.to_option() for d in cfg.operation.depletions)
    assert first.isotope == DepletionIsotope.XENON
    assert first.seconds == 7200.0
    assert second.time_unit == TimeUnit.MWD_PER_TON


def test_poison_only_burnup_depletion_rejected() -> None:
    data = _base()
    data["operation"] = {
        "kind": "general",
        "depletions": [{"isotope": "xenon", "increment": 50.0, "time_unit": "mwd_per_ton"}],
    }
    with pytest.raises(ValidationError, match="time increment"):
        validate_config(data)


def test_extra_keys_are_kept() -> None:
    data = _base()
    data["solver_notes"] = "cycle 12"
    cfg = validate_config(data)
    assert cfg.model_extra["solver_notes"] == "cycle 12"


def test_load_config_wraps_every_failure(tmp_path) -> None:
    good = tmp_path / "run.json"
    good.write_text(json.dumps(_base()))
    assert load_config(good).name == "unit"

    broken = tmp_path / "broken.json"
    broken.write_text("{")
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_config(broken)

    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps({"rods": []}))
    with pytest.raises(ConfigurationError, match="invalid config"):
        load_config(invalid)

    with pytest.raises(ConfigurationError, match="cannot read"):
        load_config(tmp_path / "absent.json")
