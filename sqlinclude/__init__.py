"""sqlinclude: named-parameter SQL files for positional-parameter drivers."""

from sqlinclude import core, exceptions, loader
from sqlinclude.__metadata__ import __version__
from sqlinclude.core import (
    AssembledStatement,
    ListParam,
    ParameterClassifier,
    ParameterStyle,
    PlaceholderConfig,
    ScalarParam,
    Statement,
    TemplateAssembler,
    assemble,
    classify_statement,
)
from sqlinclude.exceptions import (
    AnnotationError,
    BindingError,
    LexError,
    MissingParameterError,
    ParameterError,
    ParameterRoleConflictError,
    SQLFileNotFoundError,
    SQLFileParseError,
    SQLIncludeError,
)
from sqlinclude.loader import SQLFile, SQLFileLoader, parse_sql
from sqlinclude.utils.logging import configure_logging, set_correlation_id

__all__ = (
    "AnnotationError",
    "AssembledStatement",
    "BindingError",
    "LexError",
    "ListParam",
    "MissingParameterError",
    "ParameterClassifier",
    "ParameterError",
    "ParameterRoleConflictError",
    "ParameterStyle",
    "PlaceholderConfig",
    "SQLFile",
    "SQLFileLoader",
    "SQLFileNotFoundError",
    "SQLFileParseError",
    "SQLIncludeError",
    "ScalarParam",
    "Statement",
    "TemplateAssembler",
    "__version__",
    "assemble",
    "classify_statement",
    "configure_logging",
    "core",
    "exceptions",
    "loader",
    "parse_sql",
    "set_correlation_id",
)
