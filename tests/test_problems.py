"""
Tests for reader diagnostics.
"""

from fmcore.problems import Problem, ProblemList, Severity


def test_problem_defaults_to_error():
    problem = Problem("Unexpected input", 3)
    assert problem.severity == Severity.ERROR
    assert problem.column is None
    assert str(problem) == "[ERROR] line 3: Unexpected input"


def test_problem_without_location():
    assert str(Problem("Cannot load", severity=Severity.WARNING)) == "[WARNING] no location: Cannot load"


def test_problem_list_helpers():
    problems = ProblemList([
        Problem("a", 1, Severity.WARNING),
        Problem("b", 2, Severity.INFO),
    ])
    assert not problems.contains_error()
    assert [p.message for p in problems.warnings] == ["a"]

    problems.append(Problem("c", 3))
    assert problems.contains_error()
    assert [p.message for p in problems.errors] == ["c"]
