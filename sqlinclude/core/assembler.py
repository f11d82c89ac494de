"""Runtime assembly of executable SQL from a classified statement.

The template is consumed in one forward pass over its splice points. Every
call builds its own output buffer and argument list, so one
:class:`~sqlinclude.core.statement.Statement` can be assembled concurrently
from many threads.

Argument order depends on the placeholder convention:

- numbered markers (``$1``, ``:1``, ``?1``): scalar values once each in
  ordinal order, then list elements in first-occurrence order. A duplicate
  list occurrence repeats the rendered markers and adds no arguments.
- bare markers (``?``, ``%s``): arguments follow the textual order of the
  markers, so a repeated scalar or a duplicate list occurrence supplies its
  values again.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple, Optional

from mypy_extensions import mypyc_attr
from typing_extensions import TypeAlias

from sqlinclude.core.statement import SplicePoint, Statement
from sqlinclude.exceptions import BindingError, ExtraParameterError, MissingParameterError
from sqlinclude.utils.logging import get_logger, log_event

__all__ = ("AssembledStatement", "Bindings", "TemplateAssembler", "assemble")

logger = get_logger("core.assembler")

Bindings: TypeAlias = "Mapping[str, Any]"


class AssembledStatement(NamedTuple):
    """Final SQL text and the positional arguments that go with it."""

    sql: str
    parameters: "tuple[Any, ...]"


def _as_list_values(name: str, value: Any) -> "tuple[Any, ...]":
    if isinstance(value, (str, bytes, bytearray, memoryview)) or not isinstance(value, Iterable):
        msg = f"List parameter ':{name}' must be bound to a non-string iterable, got {type(value).__name__}"
        raise BindingError(msg)
    return tuple(value)


@mypyc_attr(allow_interpreted_subclasses=False)
class TemplateAssembler:
    """Splices list parameters into a statement template."""

    __slots__ = ()

    @staticmethod
    def _check_bindings(statement: Statement, bindings: Bindings) -> None:
        declared = statement.parameter_names
        missing = [name for name in declared if name not in bindings]
        if missing:
            msg = f"Missing values for parameters: {', '.join(missing)} in statement '{statement.name}'"
            raise MissingParameterError(msg, statement.source)
        extra = sorted(set(bindings).difference(declared))
        if extra:
            msg = f"Unknown parameters: {', '.join(extra)} for statement '{statement.name}'"
            raise ExtraParameterError(msg, statement.source)

    def assemble(self, statement: Statement, bindings: Bindings) -> AssembledStatement:
        """Build the final SQL text and ordered arguments.

        Args:
            statement: A classified statement.
            bindings: One value per scalar name and one iterable per list name.

        Returns:
            The assembled ``(sql, parameters)`` pair.

        Raises:
            MissingParameterError: When a declared name has no binding.
            ExtraParameterError: When a binding names no declared parameter.
            BindingError: When a list parameter is bound to a non-iterable.
        """
        self._check_bindings(statement, bindings)
        lists = {param.name: _as_list_values(param.name, bindings[param.name]) for param in statement.list_params}
        for name, values in lists.items():
            if not values:
                log_event(
                    logger,
                    logging.WARNING,
                    "Empty list bound to ':%s' in statement '%s' renders an empty IN () set",
                    name,
                    statement.name,
                    statement=statement.name,
                    parameter=name,
                )

        if statement.placeholder.reuses_markers:
            result = self._assemble_numbered(statement, bindings, lists)
        else:
            result = self._assemble_positional(statement, bindings, lists)
        log_event(
            logger,
            logging.DEBUG,
            "Assembled statement %s with %d arguments",
            statement.name,
            len(result.parameters),
            statement=statement.name,
            arguments=len(result.parameters),
        )
        return result

    @staticmethod
    def _assemble_numbered(
        statement: Statement, bindings: Bindings, lists: "dict[str, tuple[Any, ...]]"
    ) -> AssembledStatement:
        placeholder = statement.placeholder
        template = statement.sql
        arguments: list[Any] = [bindings[param.name] for param in statement.scalar_params]
        if not statement.splice_points:
            return AssembledStatement(template, tuple(arguments))

        rendered: dict[str, str] = {}
        buffer: list[str] = []
        cursor = 0
        for point in statement.splice_points:
            buffer.append(template[cursor : point.start])
            if point.duplicate:
                buffer.append(rendered[point.name])
            else:
                values = lists[point.name]
                first = len(arguments) + 1
                text = placeholder.list_separator.join(placeholder.render(first + i) for i in range(len(values)))
                arguments.extend(values)
                rendered[point.name] = text
                buffer.append(text)
            cursor = point.end
        buffer.append(template[cursor:])
        return AssembledStatement("".join(buffer), tuple(arguments))

    @staticmethod
    def _assemble_positional(
        statement: Statement, bindings: Bindings, lists: "dict[str, tuple[Any, ...]]"
    ) -> AssembledStatement:
        placeholder = statement.placeholder
        template = statement.sql
        marks: list[tuple[int, str]] = [(pos, param.name) for param in statement.scalar_params for pos in param.positions]
        cuts: list[tuple[int, SplicePoint]] = [(point.start, point) for point in statement.splice_points]
        events = sorted([*marks, *cuts], key=lambda event: event[0])

        rendered: dict[str, str] = {}
        arguments: list[Any] = []
        buffer: list[str] = []
        cursor = 0
        for _, event in events:
            if isinstance(event, str):
                arguments.append(bindings[event])
                continue
            buffer.append(template[cursor : event.start])
            values = lists[event.name]
            if event.name not in rendered:
                rendered[event.name] = placeholder.list_separator.join(placeholder.render(0) for _ in values)
            buffer.append(rendered[event.name])
            arguments.extend(values)
            cursor = event.end
        buffer.append(template[cursor:])
        return AssembledStatement("".join(buffer), tuple(arguments))


def assemble(statement: Statement, bindings: "Optional[Bindings]" = None, **kwargs: Any) -> AssembledStatement:
    """Assemble ``statement`` with ``bindings`` merged with keyword bindings."""
    merged = {**(bindings or {}), **kwargs}
    return TemplateAssembler().assemble(statement, merged)
