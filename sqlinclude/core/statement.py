"""Immutable descriptors produced by statement analysis.

A :class:`Statement` is built once per analysis pass and never mutated, so a
single instance can be shared by any number of concurrent assemblies.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from mypy_extensions import mypyc_attr

if TYPE_CHECKING:
    from sqlinclude.core.assembler import AssembledStatement
    from sqlinclude.core.config import PlaceholderConfig

__all__ = ("ListParam", "ParameterRole", "ScalarParam", "SplicePoint", "Statement")


class ParameterRole(str, Enum):
    """Syntactic role of a named parameter."""

    SCALAR = "scalar"
    LIST = "list"


@dataclass(frozen=True)
class ScalarParam:
    """A parameter bound to exactly one value.

    Attributes:
        name: Parameter name without the colon.
        ordinal: 1-based placeholder number, assigned on first sighting.
        positions: Template offsets of every marker baked for this name.
    """

    name: str
    ordinal: int
    positions: "tuple[int, ...]" = ()


@dataclass(frozen=True)
class SplicePoint:
    """Template region that is replaced by rendered list markers.

    ``start`` and ``end`` delimit the original ``:name`` text kept in the
    template. A duplicate point re-emits the text rendered for the first
    occurrence of the same name.
    """

    name: str
    start: int
    end: int
    duplicate: bool = False


@dataclass(frozen=True)
class ListParam:
    """A parameter bound to a variable number of values inside ``IN (...)``."""

    name: str
    occurrences: "tuple[SplicePoint, ...]" = field(default=())

    @property
    def offset(self) -> int:
        """Template offset of the first, non-duplicate occurrence."""
        return self.occurrences[0].start

    @property
    def duplicates(self) -> "tuple[SplicePoint, ...]":
        return self.occurrences[1:]


@mypyc_attr(allow_interpreted_subclasses=False)
class Statement:
    """A named SQL statement with its parameters classified.

    The template text has every scalar parameter rewritten to its final
    placeholder while list parameters are left in place, delimited by
    :attr:`splice_points`, to be expanded at assembly time.
    """

    __slots__ = (
        "dialect",
        "doc",
        "list_params",
        "name",
        "placeholder",
        "scalar_params",
        "source",
        "splice_points",
        "sql",
        "start_line",
    )

    def __init__(
        self,
        name: str,
        sql: str,
        placeholder: "PlaceholderConfig",
        scalar_params: "tuple[ScalarParam, ...]" = (),
        list_params: "tuple[ListParam, ...]" = (),
        source: Optional[str] = None,
        doc: Optional[str] = None,
        dialect: Optional[str] = None,
        start_line: int = 0,
    ) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "sql", sql)
        object.__setattr__(self, "placeholder", placeholder)
        object.__setattr__(self, "scalar_params", tuple(scalar_params))
        object.__setattr__(self, "list_params", tuple(list_params))
        object.__setattr__(
            self,
            "splice_points",
            tuple(sorted((p for lp in self.list_params for p in lp.occurrences), key=lambda p: p.start)),
        )
        object.__setattr__(self, "source", sql if source is None else source)
        object.__setattr__(self, "doc", doc)
        object.__setattr__(self, "dialect", dialect)
        object.__setattr__(self, "start_line", start_line)

    def __setattr__(self, name: str, value: Any) -> None:
        msg = f"{type(self).__name__} is immutable"
        raise AttributeError(msg)

    @property
    def scalar_names(self) -> "tuple[str, ...]":
        """Distinct scalar parameter names in ordinal order."""
        return tuple(p.name for p in self.scalar_params)

    @property
    def list_names(self) -> "tuple[str, ...]":
        """Distinct list parameter names in first-occurrence order."""
        return tuple(p.name for p in self.list_params)

    @property
    def parameter_names(self) -> "tuple[str, ...]":
        return self.scalar_names + self.list_names

    @property
    def has_list_parameters(self) -> bool:
        return bool(self.list_params)

    def assemble(self, bindings: "Optional[Mapping[str, Any]]" = None) -> "AssembledStatement":
        """Produce executable SQL and ordered arguments for ``bindings``."""
        from sqlinclude.core.assembler import TemplateAssembler

        return TemplateAssembler().assemble(self, bindings or {})

    def bind(self, **bindings: Any) -> "AssembledStatement":
        """Keyword form of :meth:`assemble`."""
        return self.assemble(bindings)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Statement):
            return NotImplemented
        return (
            self.name == other.name
            and self.sql == other.sql
            and self.placeholder == other.placeholder
            and self.scalar_params == other.scalar_params
            and self.list_params == other.list_params
        )

    def __hash__(self) -> int:
        return hash((self.name, self.sql, self.placeholder))

    def __repr__(self) -> str:
        return (
            f"Statement(name={self.name!r}, sql={self.sql!r}, "
            f"scalars={list(self.scalar_names)!r}, lists={list(self.list_names)!r})"
        )
