"""Tests for target mapping validation."""

import math

from sharplog.core.models import Target, TargetMapping
from sharplog.targets.validator import TargetMappingValidator, is_valid_contribution

TARGETS = [
    Target(id="a", user_id="alice", name="Ship 10 features"),
    Target(id="b", user_id="alice", name="Review 50 PRs"),
    Target(id="inactive", user_id="alice", name="Old goal", is_active=False),
    Target(id="nameless", user_id="alice", name="  "),
    Target(id="bobs", user_id="bob", name="Bob's goal"),
]


def ids(mappings):
    return [m.target_id for m in mappings]


def test_valid_mapping_kept_and_name_filled():
    result = TargetMappingValidator().validate([TargetMapping("a", contribution_value=2)], TARGETS, "alice")
    assert ids(result) == ["a"]
    assert result[0].target_name == "Ship 10 features"


def test_model_supplied_name_kept():
    result = TargetMappingValidator().validate(
        [TargetMapping("a", target_name="Features")], TARGETS, "alice",
    )
    assert result[0].target_name == "Features"


def test_each_rejection_reason():
    proposed = [
        TargetMapping("unknown", contribution_value=1),
        TargetMapping("inactive", contribution_value=1),
        TargetMapping("nameless", contribution_value=1),
        TargetMapping("bobs", contribution_value=1),
    ]
    validator = TargetMappingValidator()
    assert validator.validate(proposed, TARGETS, "alice") == []
    assert validator.stats == {"accepted": 0, "rejected": 4}


def test_ownership_not_checked_without_user():
    result = TargetMappingValidator().validate([TargetMapping("bobs", contribution_value=1)], TARGETS)
    assert ids(result) == ["bobs"]


def test_contribution_values():
    assert is_valid_contribution(None)
    assert is_valid_contribution(1)
    assert is_valid_contribution(0.5)
    assert is_valid_contribution(250)
    assert not is_valid_contribution(0)
    assert not is_valid_contribution(-3)
    assert not is_valid_contribution(math.nan)
    assert not is_valid_contribution(math.inf)
    assert not is_valid_contribution(True)
    assert not is_valid_contribution("5")


def test_bad_contribution_drops_mapping():
    proposed = [
        TargetMapping("a", contribution_value=0),
        TargetMapping("b", contribution_value="lots"),
    ]
    assert TargetMappingValidator().validate(proposed, TARGETS, "alice") == []


def test_missing_contribution_is_fine():
    result = TargetMappingValidator().validate([TargetMapping("b")], TARGETS, "alice")
    assert ids(result) == ["b"]
    assert result[0].contribution_value is None


def test_duplicates_keep_first():
    proposed = [
        TargetMapping("a", contribution_value=1, contribution_note="first"),
        TargetMapping("a", contribution_value=5, contribution_note="second"),
    ]
    result = TargetMappingValidator().validate(proposed, TARGETS, "alice")
    assert len(result) == 1
    assert result[0].contribution_note == "first"


def test_invalid_duplicate_does_not_block_valid_one():
    proposed = [
        TargetMapping("a", contribution_value=-1),
        TargetMapping("a", contribution_value=2),
    ]
    result = TargetMappingValidator().validate(proposed, TARGETS, "alice")
    assert [m.contribution_value for m in result] == [2]


def test_output_always_points_at_live_owned_targets():
    live = {t.id for t in TARGETS if t.is_active and t.user_id == "alice" and t.name.strip()}
    values = [None, 1, 0, -2, 3.5, True, math.nan]
    proposed = [
        TargetMapping(target_id, contribution_value=value)
        for target_id in ["a", "b", "inactive", "nameless", "bobs", "ghost"]
        for value in values
    ]
    result = TargetMappingValidator().validate(proposed, TARGETS, "alice")

    assert set(ids(result)) <= live
    assert len(ids(result)) == len(set(ids(result)))
    assert all(is_valid_contribution(m.contribution_value) for m in result)


def test_empty_inputs():
    assert TargetMappingValidator().validate([], TARGETS, "alice") == []
    assert TargetMappingValidator().validate([TargetMapping("a")], [], "alice") == []
