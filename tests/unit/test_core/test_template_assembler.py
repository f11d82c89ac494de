"""Unit tests for runtime statement assembly.

Tests cover list splicing, duplicate list reuse, argument ordering for
numbered and bare placeholder conventions, binding errors and the empty
list advisory.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from sqlinclude.core.assembler import AssembledStatement, TemplateAssembler, assemble
from sqlinclude.core.parameters import classify_statement
from sqlinclude.exceptions import BindingError, ExtraParameterError, MissingParameterError

CREW_BY_RANK = "SELECT id FROM sailors WHERE ship_id = :ship AND rank IN (:ranks)"


def test_scalar_and_list_assembly() -> None:
    """Scalars come first, list elements follow with continued numbering."""
    stmt = classify_statement(CREW_BY_RANK, "$")

    sql, args = stmt.bind(ship=7, ranks=["captain", "midshipman"])

    assert sql == "SELECT id FROM sailors WHERE ship_id = $1 AND rank IN ($2,$3)"
    assert args == (7, "captain", "midshipman")


def test_result_is_named_tuple() -> None:
    """The result unpacks as a pair and exposes named fields."""
    result = classify_statement(CREW_BY_RANK).bind(ship=1, ranks=[2])

    assert isinstance(result, AssembledStatement)
    assert result.sql == result[0]
    assert result.parameters == result[1] == (1, 2)


def test_duplicate_list_reuses_rendered_text() -> None:
    """A repeated list is rendered once and its values are bound once."""
    stmt = classify_statement("SELECT * FROM t WHERE a IN (:x) OR b IN (:x)", "$")

    sql, args = stmt.bind(x=[1, 2])

    assert sql == "SELECT * FROM t WHERE a IN ($1,$2) OR b IN ($1,$2)"
    assert args == (1, 2)


def test_mixed_lists_and_scalars() -> None:
    """Lists are numbered after all scalars, in first-occurrence order."""
    stmt = classify_statement(
        "SELECT * FROM t WHERE a IN (:xs) AND b = :s AND c IN (:ys) AND d IN (:xs) AND e = :s", "$"
    )

    sql, args = stmt.bind(xs=[1, 2], s=9, ys=["a"])

    assert sql == "SELECT * FROM t WHERE a IN ($2,$3) AND b = $1 AND c IN ($4) AND d IN ($2,$3) AND e = $1"
    assert args == (9, 1, 2, "a")


@pytest.mark.parametrize("length", [1, 3, 7])
def test_list_fragments_are_identical(length: int) -> None:
    """Every occurrence of a list renders the same L-element fragment."""
    stmt = classify_statement("SELECT * FROM t WHERE a IN (:x) OR b IN (:x) OR c IN (:x)", "$")

    sql, args = stmt.bind(x=list(range(length)))

    fragment = ",".join(f"${i}" for i in range(1, length + 1))
    assert sql.count(f"({fragment})") == 3
    assert args == tuple(range(length))


def test_statement_without_lists_is_not_spliced() -> None:
    """Without list parameters the template is the final text."""
    stmt = classify_statement("SELECT * FROM t WHERE a = :a AND b = :b AND c = :a", "$")

    sql, args = stmt.bind(b="B", a="A")

    assert sql == stmt.sql
    assert args == ("A", "B")


def test_statement_without_parameters() -> None:
    """A statement without parameters assembles with no bindings."""
    assert classify_statement("SELECT 1").assemble() == ("SELECT 1", ())


def test_unnumbered_markers_follow_text_order() -> None:
    """Bare markers bind in textual order, repeating repeated scalars."""
    stmt = classify_statement("SELECT * FROM t WHERE a = :s AND b IN (:xs) AND c = :s", "?")

    sql, args = stmt.bind(s=1, xs=[2, 3])

    assert sql == "SELECT * FROM t WHERE a = ? AND b IN (?,?) AND c = ?"
    assert args == (1, 2, 3, 1)


def test_unnumbered_duplicate_list_supplies_values_again() -> None:
    """Each occurrence of a list consumes its own bare markers."""
    stmt = classify_statement("SELECT * FROM t WHERE a IN (:x) OR b IN (:x)", "%s")

    sql, args = stmt.bind(x=[1, 2])

    assert sql == "SELECT * FROM t WHERE a IN (%s,%s) OR b IN (%s,%s)"
    assert args == (1, 2, 1, 2)


def test_marker_count_matches_arguments_for_bare_markers() -> None:
    """Placeholder count always equals the number of arguments."""
    stmt = classify_statement("SELECT * FROM t WHERE a = :a AND b IN (:b) AND c IN (:b) AND d = :a", "?")

    sql, args = stmt.bind(a=0, b=[1, 2, 3])

    assert sql.count("?") == len(args) == 8


def test_empty_list_renders_empty_set(caplog: pytest.LogCaptureFixture) -> None:
    """An empty list is not an error but is reported as an advisory."""
    stmt = classify_statement("SELECT * FROM t WHERE a IN (:xs) AND b = :b", "$", name="empty")

    with caplog.at_level(logging.WARNING, logger="sqlinclude"):
        sql, args = stmt.bind(xs=[], b=1)

    assert sql == "SELECT * FROM t WHERE a IN () AND b = $1"
    assert args == (1,)
    assert any("Empty list bound to ':xs'" in record.getMessage() for record in caplog.records)


def test_missing_binding() -> None:
    """Every declared name must be bound."""
    stmt = classify_statement(CREW_BY_RANK)

    with pytest.raises(MissingParameterError) as exc_info:
        stmt.bind(ship=7)

    assert isinstance(exc_info.value, BindingError)
    assert "ranks" in str(exc_info.value)


def test_extra_binding() -> None:
    """Undeclared names are rejected."""
    stmt = classify_statement(CREW_BY_RANK)

    with pytest.raises(ExtraParameterError) as exc_info:
        stmt.bind(ship=7, ranks=[], captain="Ahab")

    assert "captain" in str(exc_info.value)


@pytest.mark.parametrize("value", ["captain", b"captain", 42, None])
def test_list_requires_non_string_iterable(value: object) -> None:
    """Strings and scalars cannot be spliced as lists."""
    stmt = classify_statement(CREW_BY_RANK)

    with pytest.raises(BindingError):
        stmt.bind(ship=7, ranks=value)


def test_list_accepts_any_iterable() -> None:
    """Generators and tuples are materialized in input order."""
    stmt = classify_statement(CREW_BY_RANK)

    _, args = stmt.bind(ship=7, ranks=(rank for rank in ("captain", "bosun")))

    assert args == (7, "captain", "bosun")


def test_values_are_opaque() -> None:
    """Values are passed through without inspection or conversion."""
    marker = object()
    stmt = classify_statement(CREW_BY_RANK)

    _, args = stmt.bind(ship=marker, ranks=[marker])

    assert args[0] is marker
    assert args[1] is marker


def test_assembly_is_idempotent() -> None:
    """Identical bindings give byte-identical results."""
    stmt = classify_statement("SELECT * FROM t WHERE a IN (:x) OR b IN (:x) AND c = :c", "$")
    assembler = TemplateAssembler()

    first = assembler.assemble(stmt, {"x": [1, 2, 3], "c": "z"})
    second = assembler.assemble(stmt, {"x": [1, 2, 3], "c": "z"})

    assert first == second


def test_module_level_assemble_merges_bindings() -> None:
    """Keyword bindings are merged with the mapping."""
    stmt = classify_statement(CREW_BY_RANK)

    assert assemble(stmt, {"ship": 3}, ranks=["cook"]) == stmt.bind(ship=3, ranks=["cook"])


def test_concurrent_assembly_shares_one_statement() -> None:
    """Concurrent callers get independent results from one statement."""
    stmt = classify_statement(CREW_BY_RANK, "$")

    def run(n: int) -> AssembledStatement:
        return stmt.bind(ship=n, ranks=list(range(n)))

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(run, range(1, 33)))

    for n, (sql, args) in enumerate(results, start=1):
        assert args == (n, *range(n))
        assert sql.count("$") == n + 1
