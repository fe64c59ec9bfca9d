from __future__ import annotations

from typing import List

import pytest

from coursereq.core.errors import DivisionByZeroError, NumericOverflowError, UnboundVariableError
from coursereq.scoring import VerdictState, best_scores, score_course, score_group, score_student
from coursereq.store import CourseSnapshot, RequirementGroup, SubmissionResult


def _results(student_id: str, **scores: float) -> List[SubmissionResult]:
    return [SubmissionResult(student_id=student_id, task_id=task_id, score=score) for task_id, score in scores.items()]


def _snapshot(*groups: RequirementGroup) -> CourseSnapshot:
    return CourseSnapshot(course_id="c1", version=1, groups=groups)


def test_value_equal_to_threshold_passes() -> None:
    group = RequirementGroup(id="g1", name="Sheets", tasks=("a", "b"), formula="task(a) + task(b)", threshold=50)
    verdict = score_group("s1", group, {"a": 20, "b": 30})
    assert verdict.state is VerdictState.PASSED
    assert verdict.value == 50
    assert verdict.inputs == {"a": 20, "b": 30}


def test_value_just_below_threshold_fails() -> None:
    group = RequirementGroup(id="g1", name="Sheets", tasks=("a",), formula="task(a)", threshold=50)
    verdict = score_group("s1", group, {"a": 49.999})
    assert verdict.state is VerdictState.FAILED
    assert not verdict.passed
    assert verdict.evaluable


@pytest.mark.parametrize("threshold, expected", [(0, VerdictState.PASSED), (1, VerdictState.FAILED)])
def test_empty_group_is_worth_zero(threshold: float, expected: VerdictState) -> None:
    group = RequirementGroup(id="g1", name="Empty", formula="task(x) / 0", threshold=threshold)
    verdict = score_group("s1", group, {})
    assert verdict.state is expected
    assert verdict.value == 0


def test_unbound_task_makes_only_that_group_unevaluable() -> None:
    snapshot = _snapshot(
        RequirementGroup(id="g1", name="Broken", tasks=("1",), formula="task(99)", created_seq=1),
        RequirementGroup(id="g2", name="Fine", tasks=("2",), formula="task(2) * 2", threshold=10, created_seq=2),
    )
    broken, fine = score_student(snapshot, "s1", _results("s1", **{"1": 5, "2": 6}))

    assert broken.state is VerdictState.UNEVALUABLE
    assert broken.value is None
    assert isinstance(broken.error, UnboundVariableError)
    assert not broken.passed
    assert fine.state is VerdictState.PASSED
    assert fine.value == 12


def test_division_by_zero_is_unevaluable() -> None:
    group = RequirementGroup(id="g1", name="Ratio", tasks=("a", "b"), formula="task(a) / task(b)")
    verdict = score_group("s1", group, {"a": 3})
    assert verdict.state is VerdictState.UNEVALUABLE
    assert isinstance(verdict.error, DivisionByZeroError)
    assert verdict.to_dict()["error"]["type"] == "DivisionByZeroError"


def test_missing_result_binds_to_zero() -> None:
    group = RequirementGroup(id="g1", name="Sheets", tasks=("a", "b"), formula="task(a) + task(b)", threshold=5)
    verdict = score_group("s1", group, {"a": 7})
    assert verdict.inputs == {"a": 7, "b": 0}
    assert verdict.value == 7
    assert verdict.passed


def test_blank_formula_sums_group_tasks() -> None:
    group = RequirementGroup(id="g1", name="Sheets", tasks=("a", "b"), threshold=10)
    verdict = score_group("s1", group, {"a": 4.5, "b": 5.5, "c": 100})
    assert verdict.value == 10.0
    assert verdict.passed


def test_best_score_per_task_counts() -> None:
    results = _results("s1", a=20) + _results("s1", a=28) + _results("s2", a=99)
    assert best_scores("s1", results) == {"a": 28}


def test_verdicts_follow_creation_order() -> None:
    snapshot = _snapshot(
        RequirementGroup(id="late", name="Late", created_seq=5),
        RequirementGroup(id="early", name="Early", created_seq=1),
    )
    verdicts = score_student(snapshot, "s1", [])
    assert [verdict.group_id for verdict in verdicts] == ["early", "late"]


def test_scoring_is_deterministic_and_per_student() -> None:
    snapshot = _snapshot(
        RequirementGroup(id="g1", name="Sheets", tasks=("a", "b"), formula="max(task(a), task(b)) / 3", threshold=2),
    )
    by_student = {
        "s1": _results("s1", a=7, b=11),
        "s2": _results("s2", a=1),
    }
    first = score_course(snapshot, by_student)
    second = score_course(snapshot, by_student)

    assert [v.to_dict() for v in first["s1"]] == [v.to_dict() for v in second["s1"]]
    assert first["s1"][0].passed
    assert first["s2"][0].state is VerdictState.FAILED


def test_overflowing_group_does_not_stop_its_siblings() -> None:
    huge = "1" + "0" * 400
    snapshot = _snapshot(
        RequirementGroup(id="g1", name="Scaled", tasks=("a",), formula=f"task(a) * 0.5 * {huge}", created_seq=1),
        RequirementGroup(id="g2", name="Plain", tasks=("b",), formula="task(b)", threshold=1, created_seq=2),
    )
    scaled, plain = score_student(snapshot, "s1", _results("s1", a=3, b=4))

    assert scaled.state is VerdictState.UNEVALUABLE
    assert isinstance(scaled.error, NumericOverflowError)
    assert plain.state is VerdictState.PASSED
    assert plain.value == 4.0
