"""Test tag merging"""
# Local
from tiered_backup.tags import default_tags, merge_tags


def test_later_maps_win():
    assert merge_tags({"a": "1", "b": "2"}, {"b": "3"}, {"c": "4"}) == {"a": "1", "b": "3", "c": "4"}


def test_none_and_empty_maps_are_skipped():
    assert merge_tags(None, {"a": "1"}, {}, None) == {"a": "1"}
    assert merge_tags() == {}


def test_values_are_strings():
    assert merge_tags({"Retention": 30, 1: True}) == {"Retention": "30", "1": "True"}


def test_inputs_are_not_mutated():
    base = {"Environment": "dev"}
    merged = merge_tags(base, {"Environment": "prod"})
    assert base == {"Environment": "dev"}
    assert merged == {"Environment": "prod"}


def test_default_tags():
    assert default_tags("gcc-prod") == {"Environment": "gcc-prod", "ManagedBy": "tiered-backup"}
