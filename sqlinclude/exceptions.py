from typing import Any, Optional

__all__ = (
    "AnnotationError",
    "BindingError",
    "ExtraParameterError",
    "ImproperConfigurationError",
    "LexError",
    "MissingParameterError",
    "ParameterError",
    "ParameterRoleConflictError",
    "SQLFileNotFoundError",
    "SQLFileParseError",
    "SQLIncludeError",
    "SQLParsingError",
    "UnresolvedParameterError",
)


class SQLIncludeError(Exception):
    """Base exception class from which all sqlinclude exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLIncludeError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class ImproperConfigurationError(SQLIncludeError):
    """Improper Configuration error.

    Raised when a placeholder convention or dialect cannot be resolved.
    """


class SQLParsingError(SQLIncludeError):
    """Issues parsing SQL statements."""

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "Issues parsing SQL statement."
        super().__init__(message)


class LexError(SQLParsingError):
    """Unterminated string literal or block comment."""

    position: int
    line: int
    column: int

    def __init__(self, message: str, position: int, line: int = 1, column: int = 1) -> None:
        super().__init__(f"{message} at line {line}, column {column} (offset {position})")
        self.position = position
        self.line = line
        self.column = column


class AnnotationError(SQLIncludeError):
    """Malformed or duplicate statement annotation, or no statements at all."""

    line: Optional[int]
    other_line: Optional[int]
    path: Optional[str]

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        other_line: Optional[int] = None,
        path: Optional[str] = None,
    ) -> None:
        location = path or "<string>"
        if line is not None:
            location = f"{location}:{line}"
        super().__init__(detail=f"{location}: {message}")
        self.line = line
        self.other_line = other_line
        self.path = path


# -- SQL Parameter Errors --
class ParameterError(SQLIncludeError):
    """Base class for parameter-related errors."""

    sql: Optional[str]

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        """Initialize with optional SQL context."""
        detail_message = message
        if sql:
            detail_message = f"{message}\nSQL: {sql}"
        super().__init__(detail=detail_message)
        self.sql = sql


class ParameterRoleConflictError(ParameterError):
    """Raised when one name is used both as a scalar and as a list parameter."""

    name: str
    first_position: int
    second_position: int

    def __init__(self, name: str, first_position: int, second_position: int, sql: Optional[str] = None) -> None:
        super().__init__(
            f"Parameter ':{name}' is used as both a scalar and a list "
            f"(offsets {first_position} and {second_position})",
            sql,
        )
        self.name = name
        self.first_position = first_position
        self.second_position = second_position


class UnresolvedParameterError(ParameterError):
    """Raised when a parameter's role cannot be determined from its surroundings."""

    name: str
    position: int

    def __init__(self, name: str, position: int, sql: Optional[str] = None) -> None:
        super().__init__(f"Cannot resolve parameter ':{name}' at offset {position}: unclosed IN list", sql)
        self.name = name
        self.position = position


class BindingError(ParameterError):
    """Raised when supplied values cannot be bound to a statement."""


class MissingParameterError(BindingError):
    """Raised when required parameters are missing."""


class ExtraParameterError(BindingError):
    """Raised when extra parameters are provided."""


# -- SQL File Errors --
class SQLFileNotFoundError(SQLIncludeError):
    """Raised when a SQL file or a named statement cannot be found."""

    def __init__(self, name: str, path: Optional[str] = None) -> None:
        message = f"SQL file '{name}' not found" if path is None else f"{name}: {path}"
        super().__init__(message)
        self.name = name
        self.path = path


class SQLFileParseError(SQLIncludeError):
    """Raised when a SQL file cannot be read or decoded."""

    def __init__(self, name: str, path: str, original_error: Exception) -> None:
        super().__init__(f"Failed to parse SQL file '{name}' at {path}: {original_error}")
        self.name = name
        self.path = path
        self.original_error = original_error
