"""Named parameter classification.

Every ``:name`` token of a statement is assigned a role:

- LIST when the token is the only thing between the parentheses of an
  ``IN (...)`` membership test (comments and whitespace aside);
- SCALAR everywhere else.

The role test is a local lookaround over the token stream, not a grammar.
``IN ((:x))``, ``= ANY(:x)`` or a list hidden behind a function call are all
classified as scalars.

Scalars are rewritten to their final positional placeholder while the
template is built; list occurrences stay in the text and are recorded as
splice points for the assembler.
"""

import logging
import re
from collections.abc import Sequence
from typing import Final, Optional, Union

from mypy_extensions import mypyc_attr

from sqlinclude.core.config import PlaceholderConfig
from sqlinclude.core.lexer import Token, TokenType, tokenize
from sqlinclude.core.statement import ListParam, ParameterRole, ScalarParam, SplicePoint, Statement
from sqlinclude.exceptions import ParameterRoleConflictError, UnresolvedParameterError
from sqlinclude.utils.logging import get_logger, log_event

__all__ = ("ParameterClassifier", "classify_statement", "parameter_role")

logger = get_logger("core.parameters")

MEMBERSHIP_OPENER: Final = re.compile(r"(?<![\w$])IN\s*\(\s*$", re.IGNORECASE)
MEMBERSHIP_CLOSER: Final = re.compile(r"\s*\)")


def _text_before(tokens: "Sequence[Token]", index: int) -> str:
    parts: list[str] = []
    for token in reversed(tokens[:index]):
        if token.is_comment:
            parts.append(" ")
        elif token.type is TokenType.PLAIN_TEXT:
            parts.append(token.value)
        else:
            break
    return "".join(reversed(parts))


def _text_after(tokens: "Sequence[Token]", index: int) -> "tuple[str, bool]":
    """Plain text following ``index`` and whether it runs to the end of input."""
    parts: list[str] = []
    for token in tokens[index + 1 :]:
        if token.is_comment:
            parts.append(" ")
        elif token.type is TokenType.PLAIN_TEXT:
            parts.append(token.value)
        else:
            return "".join(parts), False
    return "".join(parts), True


def parameter_role(tokens: "Sequence[Token]", index: int) -> ParameterRole:
    """Classify the parameter token at ``tokens[index]``.

    Raises:
        UnresolvedParameterError: When the token opens an ``IN (`` list that
            is never closed.
    """
    token = tokens[index]
    if not MEMBERSHIP_OPENER.search(_text_before(tokens, index)):
        return ParameterRole.SCALAR
    following, at_end = _text_after(tokens, index)
    if MEMBERSHIP_CLOSER.match(following):
        return ParameterRole.LIST
    if at_end and not following.strip():
        raise UnresolvedParameterError(token.name, token.position)
    return ParameterRole.SCALAR


class _Sighting:
    __slots__ = ("list_points", "ordinal", "position", "role", "template_positions")

    def __init__(self, role: ParameterRole, position: int, ordinal: int = 0) -> None:
        self.role = role
        self.position = position
        self.ordinal = ordinal
        self.template_positions: list[int] = []
        self.list_points: list[SplicePoint] = []


@mypyc_attr(allow_interpreted_subclasses=False)
class ParameterClassifier:
    """Builds :class:`Statement` descriptors from statement text.

    The name table lives only for the duration of one :meth:`classify` call;
    nothing is shared between statements.
    """

    __slots__ = ("placeholder",)

    def __init__(self, placeholder: "Union[PlaceholderConfig, str]" = "$") -> None:
        if isinstance(placeholder, str):
            placeholder = PlaceholderConfig.from_prefix(placeholder)
        self.placeholder = placeholder

    def classify(
        self,
        sql: str,
        name: str = "statement",
        *,
        doc: Optional[str] = None,
        dialect: Optional[str] = None,
        start_line: int = 1,
    ) -> Statement:
        """Classify every parameter of ``sql`` and build its template.

        Raises:
            LexError: On an unterminated string literal or block comment.
            ParameterRoleConflictError: When a name is used both as a scalar
                and as a list.
            UnresolvedParameterError: On an unclosed ``IN (:name``.
        """
        tokens = list(tokenize(sql, start_line))
        table: dict[str, _Sighting] = {}
        scalar_count = 0
        pieces: list[str] = []
        length = 0

        for index, token in enumerate(tokens):
            if token.type is not TokenType.PARAMETER:
                pieces.append(token.value)
                length += len(token.value)
                continue

            role = parameter_role(tokens, index)
            sighting = table.get(token.name)
            if sighting is None:
                if role is ParameterRole.SCALAR:
                    scalar_count += 1
                sighting = table[token.name] = _Sighting(role, token.position, scalar_count)
            elif sighting.role is not role:
                raise ParameterRoleConflictError(token.name, sighting.position, token.position, sql)

            if role is ParameterRole.SCALAR:
                text = self.placeholder.render(sighting.ordinal)
                sighting.template_positions.append(length)
            else:
                text = token.value
                sighting.list_points.append(
                    SplicePoint(token.name, length, length + len(text), duplicate=bool(sighting.list_points))
                )
            pieces.append(text)
            length += len(text)

        scalar_params = tuple(
            ScalarParam(param_name, s.ordinal, tuple(s.template_positions))
            for param_name, s in table.items()
            if s.role is ParameterRole.SCALAR
        )
        list_params = tuple(
            ListParam(param_name, tuple(s.list_points))
            for param_name, s in table.items()
            if s.role is ParameterRole.LIST
        )
        statement = Statement(
            name,
            "".join(pieces),
            self.placeholder,
            scalar_params,
            list_params,
            source=sql,
            doc=doc,
            dialect=dialect,
            start_line=start_line,
        )
        log_event(
            logger,
            logging.DEBUG,
            "Classified statement %s: %d scalar, %d list parameters",
            name,
            len(scalar_params),
            len(list_params),
            statement=name,
            scalars=statement.scalar_names,
            lists=statement.list_names,
        )
        return statement


def classify_statement(
    sql: str, placeholder: "Union[PlaceholderConfig, str]" = "$", name: str = "statement"
) -> Statement:
    """Shortcut for ``ParameterClassifier(placeholder).classify(sql, name)``."""
    return ParameterClassifier(placeholder).classify(sql, name)
