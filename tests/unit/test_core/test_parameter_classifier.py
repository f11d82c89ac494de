"""Unit tests for named parameter classification.

Tests cover role detection around IN lists, ordinal allocation and reuse,
duplicate list tracking, role conflicts and template baking.
"""

from dataclasses import FrozenInstanceError

import pytest

from sqlinclude.core.config import PlaceholderConfig
from sqlinclude.core.lexer import tokenize
from sqlinclude.core.parameters import ParameterClassifier, classify_statement, parameter_role
from sqlinclude.core.statement import ParameterRole, ScalarParam
from sqlinclude.exceptions import LexError, ParameterRoleConflictError, UnresolvedParameterError

CREW_BY_RANK = "SELECT id FROM sailors WHERE ship_id = :ship AND rank IN (:ranks)"


def _role_of(sql: str, name: str) -> ParameterRole:
    tokens = list(tokenize(sql))
    index = next(i for i, t in enumerate(tokens) if t.value == f":{name}")
    return parameter_role(tokens, index)


def test_scalar_baked_and_list_left_open() -> None:
    """Scalars get their final placeholder while lists stay in the template."""
    stmt = classify_statement(CREW_BY_RANK, "$", name="select_ship_crew_by_rank")

    assert stmt.name == "select_ship_crew_by_rank"
    assert stmt.sql == "SELECT id FROM sailors WHERE ship_id = $1 AND rank IN (:ranks)"
    assert stmt.scalar_names == ("ship",)
    assert stmt.scalar_params[0].ordinal == 1
    assert stmt.list_names == ("ranks",)
    assert stmt.list_params[0].offset == stmt.sql.index(":ranks")
    assert stmt.source == CREW_BY_RANK


@pytest.mark.parametrize(
    ("sql", "name", "expected"),
    [
        ("SELECT * FROM t WHERE a IN (:ids)", "ids", ParameterRole.LIST),
        ("select * from t where a not in (:ids)", "ids", ParameterRole.LIST),
        ("SELECT * FROM t WHERE a IN(:ids)", "ids", ParameterRole.LIST),
        ("SELECT * FROM t WHERE a IN /* list */ ( :ids -- c\n )", "ids", ParameterRole.LIST),
        ("SELECT * FROM t WHERE a = :ids", "ids", ParameterRole.SCALAR),
        ("SELECT * FROM t WHERE a IN (:ids, :other)", "ids", ParameterRole.SCALAR),
        ("SELECT * FROM t WHERE a IN (:other, :ids)", "ids", ParameterRole.SCALAR),
        ("SELECT * FROM t WHERE a = ANY(:ids)", "ids", ParameterRole.SCALAR),
        ("SELECT * FROM t WHERE a IN ((:ids))", "ids", ParameterRole.SCALAR),
        ("SELECT * FROM t JOIN (:ids) x ON true", "ids", ParameterRole.SCALAR),
        ("SELECT * FROM t WHERE a IN (:ids::int)", "ids", ParameterRole.SCALAR),
    ],
)
def test_parameter_role(sql: str, name: str, expected: ParameterRole) -> None:
    """LIST only when the token is alone inside the parentheses after IN."""
    assert _role_of(sql, name) is expected


def test_repeated_scalar_shares_one_ordinal() -> None:
    """A repeated scalar name gets one record and a marker at every occurrence."""
    stmt = classify_statement("SELECT * FROM t WHERE a = :x OR b = :x OR c = :x", "$")

    assert stmt.sql == "SELECT * FROM t WHERE a = $1 OR b = $1 OR c = $1"
    assert len(stmt.scalar_params) == 1
    param = stmt.scalar_params[0]
    assert param.ordinal == 1
    assert len(param.positions) == 3
    assert all(stmt.sql[pos : pos + 2] == "$1" for pos in param.positions)


def test_ordinals_follow_first_sighting() -> None:
    """Ordinals are allocated in first-sighting order and reused afterwards."""
    stmt = classify_statement("UPDATE t SET a = :y WHERE b = :x AND c = :y AND d IN (:l) AND e = :z", "$")

    assert stmt.sql == "UPDATE t SET a = $1 WHERE b = $2 AND c = $1 AND d IN (:l) AND e = $3"
    assert [(p.name, p.ordinal) for p in stmt.scalar_params] == [("y", 1), ("x", 2), ("z", 3)]


def test_unnumbered_placeholder_template() -> None:
    """Bare markers are baked without ordinals."""
    stmt = classify_statement("SELECT * FROM t WHERE a = :x OR b = :y OR c = :x", "?")

    assert stmt.sql == "SELECT * FROM t WHERE a = ? OR b = ? OR c = ?"
    assert stmt.placeholder == PlaceholderConfig("?", numbered=False)
    assert [(p.name, p.ordinal) for p in stmt.scalar_params] == [("x", 1), ("y", 2)]


def test_colon_prefix_placeholder() -> None:
    """Oracle-style ``:n`` markers do not confuse later analysis."""
    stmt = classify_statement("SELECT * FROM t WHERE a = :a AND b IN (:b)", ":")

    assert stmt.sql == "SELECT * FROM t WHERE a = :1 AND b IN (:b)"
    assert stmt.list_names == ("b",)


def test_duplicate_list_occurrences() -> None:
    """A repeated list name gives one entry plus duplicate markers."""
    stmt = classify_statement("SELECT * FROM t WHERE a IN (:x) OR b IN (:x) OR c IN (:x)", "$")

    assert stmt.list_names == ("x",)
    param = stmt.list_params[0]
    assert len(param.occurrences) == 3
    assert not param.occurrences[0].duplicate
    assert [p.duplicate for p in param.duplicates] == [True, True]
    assert len(stmt.splice_points) == 3


def test_list_offsets_increase_in_first_occurrence_order() -> None:
    """List parameters are ordered by first occurrence with increasing offsets."""
    stmt = classify_statement(
        "SELECT * FROM t WHERE a IN (:first) AND b IN (:second) AND c IN (:first) AND d IN (:third)", "$"
    )

    assert stmt.list_names == ("first", "second", "third")
    offsets = [p.offset for p in stmt.list_params]
    assert offsets == sorted(offsets)
    starts = [p.start for p in stmt.splice_points]
    assert starts == sorted(starts)
    for point in stmt.splice_points:
        assert stmt.sql[point.start : point.end] == f":{point.name}"


def test_parameters_in_comments_and_strings_are_ignored() -> None:
    """Colons in comments, literals and casts never become parameters."""
    stmt = classify_statement("SELECT ':a', x::text -- :b\nFROM t /* :c */ WHERE d = :d", "$")

    assert stmt.parameter_names == ("d",)
    assert stmt.sql == "SELECT ':a', x::text -- :b\nFROM t /* :c */ WHERE d = $1"


def test_role_conflict_list_then_scalar() -> None:
    """A list name reused as a scalar is an error citing both offsets."""
    sql = "SELECT * FROM t WHERE a IN (:foo) AND b = :foo"

    with pytest.raises(ParameterRoleConflictError) as exc_info:
        classify_statement(sql)

    error = exc_info.value
    assert error.name == "foo"
    assert error.first_position == sql.index(":foo")
    assert error.second_position == sql.rindex(":foo")
    assert str(error.first_position) in str(error)
    assert str(error.second_position) in str(error)


def test_role_conflict_scalar_then_list() -> None:
    """The first observed role wins; the conflicting use fails."""
    sql = "SELECT * FROM t WHERE b = :foo AND a IN (:foo)"

    with pytest.raises(ParameterRoleConflictError) as exc_info:
        classify_statement(sql)

    assert exc_info.value.first_position == sql.index(":foo")
    assert exc_info.value.second_position == sql.rindex(":foo")


def test_unclosed_in_list_is_unresolved() -> None:
    """A list position whose parenthesis never closes cannot be classified."""
    with pytest.raises(UnresolvedParameterError) as exc_info:
        classify_statement("SELECT * FROM t WHERE a IN (:ids  ")

    assert exc_info.value.name == "ids"
    assert exc_info.value.position == 28


def test_lex_error_propagates() -> None:
    """Lexing failures surface unchanged from classification."""
    with pytest.raises(LexError):
        classify_statement("SELECT * FROM t WHERE a = 'oops")


def test_statement_without_parameters() -> None:
    """Plain SQL passes through untouched."""
    stmt = classify_statement("SELECT 1")

    assert stmt.sql == "SELECT 1"
    assert stmt.parameter_names == ()
    assert not stmt.has_list_parameters


def test_descriptors_are_immutable() -> None:
    """Analysis results cannot be modified after the fact."""
    stmt = classify_statement(CREW_BY_RANK)

    with pytest.raises(AttributeError):
        stmt.sql = "DROP TABLE sailors"  # type: ignore[misc]
    with pytest.raises(FrozenInstanceError):
        stmt.scalar_params[0].ordinal = 5  # type: ignore[misc]
    with pytest.raises(FrozenInstanceError):
        stmt.list_params[0].name = "other"  # type: ignore[misc]


def test_classifier_accepts_config_or_prefix() -> None:
    """The classifier takes a PlaceholderConfig or a bare prefix."""
    assert ParameterClassifier("$").placeholder == PlaceholderConfig("$", numbered=True)
    config = PlaceholderConfig("?", numbered=True)
    assert ParameterClassifier(config).placeholder is config


def test_classifier_keeps_metadata() -> None:
    """Doc, dialect and start line travel with the statement."""
    stmt = ParameterClassifier("$").classify("SELECT :a", "q", doc="Docs", dialect="postgres", start_line=12)

    assert stmt.doc == "Docs"
    assert stmt.dialect == "postgres"
    assert stmt.start_line == 12
    assert stmt.scalar_params == (ScalarParam("a", 1, (7,)),)


def test_statements_compare_by_content() -> None:
    """Two analyses of the same text are equal."""
    assert classify_statement(CREW_BY_RANK) == classify_statement(CREW_BY_RANK)
    assert classify_statement(CREW_BY_RANK, "$") != classify_statement(CREW_BY_RANK, "?")
