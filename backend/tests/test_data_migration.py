import copy
from types import SimpleNamespace

import pytest

from unitask.data_migration import (
    Absent,
    LegacyObject,
    LegacyScalar,
    ResolvedProgress,
    Shadow,
    classify_progress,
    get_progress_safe,
    resolve_progress,
)


def resolved(task):
    return resolve_progress(task).to_dict()


class TestScenarios:
    def test_missing_task(self):
        assert resolved(None) == {"actual": 0, "planned": 0}

    def test_shadow_only(self):
        assert resolved({"progressV13": {"actual": 40, "planned": 100}}) == {"actual": 40, "planned": 100}

    def test_shadow_wins_over_legacy_object(self):
        task = {"progress": {"actual": 5, "planned": 10}, "progressV13": {"actual": 40, "planned": 100}}
        assert resolved(task) == {"actual": 40, "planned": 100}

    def test_legacy_object_without_planned(self):
        assert resolved({"progress": {"actual": 5}}) == {"actual": 5, "planned": 0}

    def test_legacy_number(self):
        assert resolved({"progress": 75}) == {"actual": 75, "planned": 0}

    def test_empty_task(self):
        assert resolved({}) == {"actual": 0, "planned": 0}


class TestShadowPrecedence:
    @pytest.mark.parametrize("legacy", [75, {"actual": 5, "planned": 10}, None, "junk"])
    def test_zero_shadow_still_wins(self, legacy):
        task = {"progress": legacy, "progressV13": {"actual": 0, "planned": 0}}
        assert resolved(task) == {"actual": 0, "planned": 0}

    def test_aggregated_passes_through(self):
        task = {"progressV13": {"actual": 10, "planned": 20, "aggregated": 35}}
        assert resolved(task) == {"actual": 10, "planned": 20, "aggregated": 35}

    def test_shadow_without_subfields_defaults_to_zero(self):
        assert resolved({"progress": 50, "progressV13": {}}) == {"actual": 0, "planned": 0}

    def test_non_mapping_shadow_is_ignored(self):
        assert resolved({"progress": 30, "progressV13": 99}) == {"actual": 30, "planned": 0}


class TestLegacyShapes:
    def test_legacy_object_never_synthesizes_aggregated(self):
        result = resolve_progress({"progress": {"actual": 5, "planned": 10, "aggregated": 7}})
        assert result.aggregated is None
        assert result.to_dict() == {"actual": 5, "planned": 10}

    def test_malformed_legacy_object_defaults_each_field(self):
        assert resolved({"progress": {"actual": "lots", "planned": 8}}) == {"actual": 0, "planned": 8}
        assert resolved({"progress": {"planned": 8}}) == {"actual": 0, "planned": 8}

    def test_legacy_zero_is_indistinguishable_from_absent(self):
        assert resolved({"progress": 0}) == resolved({})

    def test_legacy_fraction_is_not_rescaled(self):
        assert resolved({"progress": 0.4}) == {"actual": 0.4, "planned": 0}

    @pytest.mark.parametrize("value", ["75", True, [1, 2], float("nan"), float("inf")])
    def test_unrecognized_legacy_values_default(self, value):
        assert resolved({"progress": value}) == {"actual": 0, "planned": 0}

    def test_unknown_fields_are_ignored(self):
        task = {"progress": 12, "someFutureField": {"actual": 99}}
        assert resolved(task) == {"actual": 12, "planned": 0}


class TestInputKinds:
    def test_object_with_snake_case_attributes(self):
        row = SimpleNamespace(progress=10, progress_v13={"actual": 60, "planned": 80})
        assert resolved(row) == {"actual": 60, "planned": 80}

    def test_object_with_legacy_only(self):
        assert resolved(SimpleNamespace(progress=10, progress_v13=None)) == {"actual": 10, "planned": 0}

    def test_snake_case_document_key(self):
        assert resolved({"progress_v13": {"actual": 1, "planned": 2}}) == {"actual": 1, "planned": 2}

    def test_task_row(self, make_task):
        task = make_task(progress={"actual": 3, "planned": 9})
        assert resolved(task) == {"actual": 3, "planned": 9}


class TestContract:
    def test_returns_resolved_progress(self):
        assert isinstance(resolve_progress({"progress": 5}), ResolvedProgress)

    def test_alias(self):
        assert get_progress_safe is resolve_progress

    def test_input_is_not_mutated(self):
        task = {"progress": {"actual": 5}, "progressV13": {"actual": 1, "planned": 2, "aggregated": 3}}
        before = copy.deepcopy(task)
        resolve_progress(task)
        assert task == before

    def test_output_is_a_new_object(self):
        shadow = {"actual": 1, "planned": 2}
        result = resolve_progress({"progressV13": shadow})
        result.actual = 50
        assert shadow["actual"] == 1

    @pytest.mark.parametrize("task", [
        None,
        {},
        {"progress": 75},
        {"progress": {"actual": 5}},
        {"progressV13": {"actual": 40, "planned": 100, "aggregated": 60}},
    ])
    def test_idempotent(self, task):
        assert resolve_progress(task) == resolve_progress(task)


class TestClassification:
    @pytest.mark.parametrize("task, variant", [
        (None, Absent),
        ({}, Absent),
        ({"progress": "75"}, Absent),
        ({"progress": 75}, LegacyScalar),
        ({"progress": {"actual": 1}}, LegacyObject),
        ({"progress": 75, "progressV13": {"actual": 1, "planned": 0}}, Shadow),
    ])
    def test_exactly_one_variant(self, task, variant):
        assert isinstance(classify_progress(task), variant)
