"""Placeholder conventions for positional bind markers.

A placeholder convention describes how the target driver spells a positional
parameter: either a bare symbol repeated for every value (``?``, ``%s``) or a
symbol followed by an increasing 1-based ordinal (``$1``, ``:1``, ``?1``).
"""

from enum import Enum
from typing import Final, Optional

from mypy_extensions import mypyc_attr

from sqlinclude.exceptions import ImproperConfigurationError

__all__ = ("DIALECT_PARAMETER_STYLES", "ParameterStyle", "PlaceholderConfig")


class ParameterStyle(str, Enum):
    """Positional parameter styles.

    - QMARK: ? placeholders
    - QMARK_NUMBERED: ?1, ?2 placeholders
    - NUMERIC: $1, $2 placeholders
    - POSITIONAL_COLON: :1, :2 placeholders
    - POSITIONAL_PYFORMAT: %s placeholders
    """

    QMARK = "qmark"
    QMARK_NUMBERED = "qmark_numbered"
    NUMERIC = "numeric"
    POSITIONAL_COLON = "positional_colon"
    POSITIONAL_PYFORMAT = "pyformat_positional"

    def __str__(self) -> str:
        return self.value


_STYLE_MARKERS: Final[dict[ParameterStyle, tuple[str, bool]]] = {
    ParameterStyle.QMARK: ("?", False),
    ParameterStyle.QMARK_NUMBERED: ("?", True),
    ParameterStyle.NUMERIC: ("$", True),
    ParameterStyle.POSITIONAL_COLON: (":", True),
    ParameterStyle.POSITIONAL_PYFORMAT: ("%s", False),
}

_UNNUMBERED_PREFIXES: Final = frozenset({"?", "%s"})

DIALECT_PARAMETER_STYLES: Final[dict[str, ParameterStyle]] = {
    "postgres": ParameterStyle.NUMERIC,
    "redshift": ParameterStyle.NUMERIC,
    "materialize": ParameterStyle.NUMERIC,
    "risingwave": ParameterStyle.NUMERIC,
    "oracle": ParameterStyle.POSITIONAL_COLON,
    "sqlite": ParameterStyle.QMARK,
    "duckdb": ParameterStyle.QMARK,
    "tsql": ParameterStyle.QMARK,
    "snowflake": ParameterStyle.QMARK,
    "trino": ParameterStyle.QMARK,
    "presto": ParameterStyle.QMARK,
    "mysql": ParameterStyle.POSITIONAL_PYFORMAT,
    "singlestore": ParameterStyle.POSITIONAL_PYFORMAT,
    "doris": ParameterStyle.POSITIONAL_PYFORMAT,
    "starrocks": ParameterStyle.POSITIONAL_PYFORMAT,
}


@mypyc_attr(allow_interpreted_subclasses=False)
class PlaceholderConfig:
    """Immutable description of a positional placeholder convention.

    Attributes:
        prefix: Marker symbol, e.g. ``$`` or ``?``.
        numbered: Whether an increasing ordinal follows the symbol.
        list_separator: Text placed between the markers of one list parameter.
    """

    __slots__ = ("_hash", "list_separator", "numbered", "prefix")

    def __init__(self, prefix: str, numbered: bool = True, list_separator: str = ",") -> None:
        if not prefix:
            msg = "Placeholder prefix must not be empty"
            raise ImproperConfigurationError(msg)
        object.__setattr__(self, "prefix", prefix)
        object.__setattr__(self, "numbered", numbered)
        object.__setattr__(self, "list_separator", list_separator)
        object.__setattr__(self, "_hash", None)

    def __setattr__(self, name: str, value: object) -> None:
        msg = f"{type(self).__name__} is immutable"
        raise AttributeError(msg)

    @classmethod
    def from_style(cls, style: "ParameterStyle | str") -> "PlaceholderConfig":
        """Build the convention for a named parameter style."""
        try:
            prefix, numbered = _STYLE_MARKERS[ParameterStyle(style)]
        except ValueError as e:
            msg = f"Unknown parameter style: {style!r}"
            raise ImproperConfigurationError(msg) from e
        return cls(prefix, numbered)

    @classmethod
    def from_prefix(cls, prefix: str, numbered: Optional[bool] = None) -> "PlaceholderConfig":
        """Build a convention from a bare marker prefix.

        ``?`` and ``%s`` are unnumbered unless ``numbered`` says otherwise;
        every other prefix is numbered.
        """
        if numbered is None:
            numbered = prefix not in _UNNUMBERED_PREFIXES
        return cls(prefix, numbered)

    @classmethod
    def for_dialect(cls, dialect: str) -> "PlaceholderConfig":
        """Default convention of the usual driver for ``dialect``."""
        style = DIALECT_PARAMETER_STYLES.get(dialect.lower().strip())
        if style is None:
            supported = ", ".join(sorted(DIALECT_PARAMETER_STYLES))
            msg = f"No default placeholder convention for dialect '{dialect}'. Supported: {supported}"
            raise ImproperConfigurationError(msg)
        return cls.from_style(style)

    @property
    def reuses_markers(self) -> bool:
        """Whether one marker may be referenced several times in the text.

        Only numbered markers can be repeated; with bare markers every textual
        occurrence consumes its own argument.
        """
        return self.numbered

    def render(self, ordinal: int) -> str:
        """Marker text for the 1-based ``ordinal``."""
        if self.numbered:
            return f"{self.prefix}{ordinal}"
        return self.prefix

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlaceholderConfig):
            return NotImplemented
        return (self.prefix, self.numbered, self.list_separator) == (
            other.prefix,
            other.numbered,
            other.list_separator,
        )

    def __hash__(self) -> int:
        if self._hash is None:
            object.__setattr__(self, "_hash", hash((self.prefix, self.numbered, self.list_separator)))
        return self._hash  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"PlaceholderConfig(prefix={self.prefix!r}, numbered={self.numbered!r})"
