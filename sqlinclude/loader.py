"""SQL file loader module for named statements.

This module splits aiosql-style SQL files into named statements, runs the
parameter analysis on each of them and keeps the results for lookup by name.

File layout::

    -- name: select_ship_crew_by_rank
    -- dialect: postgres
    -- Selects sailors of a given ship that also have
    -- specific ranks
    SELECT id, name, rank
      FROM sailors
     WHERE ship_id = :ship
       AND rank IN (:ranks)
"""

import hashlib
import logging
import re
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from difflib import get_close_matches
from pathlib import Path
from typing import Any, Final, Optional, Union

from sqlglot.dialects.dialect import Dialects

from sqlinclude.core.assembler import AssembledStatement, TemplateAssembler
from sqlinclude.core.config import DIALECT_PARAMETER_STYLES, ParameterStyle, PlaceholderConfig
from sqlinclude.core.parameters import ParameterClassifier
from sqlinclude.core.statement import Statement
from sqlinclude.exceptions import AnnotationError, LexError, SQLFileNotFoundError, SQLFileParseError
from sqlinclude.utils.logging import get_logger, log_event

__all__ = ("DEFAULT_PLACEHOLDER", "SQLFile", "SQLFileLoader", "parse_sql")

logger = get_logger("loader")

# Matches any line that claims to be a name annotation; QUERY_NAME_PATTERN validates it.
ANNOTATION_LINE_PATTERN: Final = re.compile(r"^[ \t]*--[ \t]*name[ \t]*:(?P<rest>[^\n]*)$", re.MULTILINE | re.IGNORECASE)
# Name plus any trailing aiosql suffix characters (``!``, ``<!``, ``*!``, ``#``)
QUERY_NAME_PATTERN: Final = re.compile(r"^\s*(?P<name>[A-Za-z_][\w-]*)(?P<suffix>[^\w\s]*)\s*$")
TRIM_SPECIAL_CHARS: Final = re.compile(r"[^\w-]")
DIALECT_PATTERN: Final = re.compile(r"^\s*--\s*dialect\s*:\s*(?P<dialect>[a-zA-Z0-9_]+)\s*$", re.IGNORECASE)

SUPPORTED_DIALECTS: Final = frozenset(d.value for d in Dialects if d.value)

DIALECT_ALIASES: Final = {
    "postgresql": "postgres",
    "pg": "postgres",
    "pgplsql": "postgres",
    "plsql": "oracle",
    "oracledb": "oracle",
    "mssql": "tsql",
    "sqlserver": "tsql",
}

DEFAULT_PLACEHOLDER: Final = PlaceholderConfig.from_style(ParameterStyle.NUMERIC)


def _normalize_query_name(name: str) -> str:
    """Normalize query name to be a valid Python identifier.

    - Strips all special characters (like $, !, etc from aiosql)
    - Replaces hyphens with underscores
    """
    return TRIM_SPECIAL_CHARS.sub("", name).replace("-", "_")


def _normalize_lookup_name(name: str) -> str:
    """Normalize every segment of a possibly namespaced query name."""
    return ".".join(_normalize_query_name(part) for part in name.split("."))


def _normalize_dialect(dialect: str) -> str:
    """Normalize dialect name with aliases."""
    normalized = dialect.lower().strip()
    return DIALECT_ALIASES.get(normalized, normalized)


def _get_dialect_suggestions(invalid_dialect: str) -> "list[str]":
    """Get up to three dialect suggestions using fuzzy matching."""
    return get_close_matches(invalid_dialect, sorted(SUPPORTED_DIALECTS), n=3, cutoff=0.6)


def _resolve_dialect(dialect: str, line: Optional[int] = None) -> str:
    """Normalize ``dialect``, warning (not failing) when sqlglot does not know it."""
    normalized = _normalize_dialect(dialect)
    if normalized in SUPPORTED_DIALECTS:
        return normalized
    warning_msg = f"Unknown dialect '{dialect}'"
    if line is not None:
        warning_msg += f" at line {line}"
    suggestions = _get_dialect_suggestions(normalized)
    if suggestions:
        warning_msg += f". Did you mean: {', '.join(suggestions)}?"
    warning_msg += ". Using dialect as-is."
    log_event(logger, logging.WARNING, warning_msg, dialect=dialect, suggestions=suggestions)
    return dialect.lower().strip()


def _placeholder_for(dialect: Optional[str], placeholder: Optional[PlaceholderConfig]) -> PlaceholderConfig:
    if placeholder is not None:
        return placeholder
    if dialect is not None and dialect in DIALECT_PARAMETER_STYLES:
        return PlaceholderConfig.for_dialect(dialect)
    return DEFAULT_PLACEHOLDER


class _Section:
    """Raw text of one annotated statement before analysis."""

    __slots__ = ("dialect", "doc", "line", "name", "sql", "sql_line")

    def __init__(self, name: str, line: int) -> None:
        self.name = name
        self.line = line
        self.dialect: Optional[str] = None
        self.doc: Optional[str] = None
        self.sql = ""
        self.sql_line = line + 1


def _split_section(section: _Section, body: str) -> None:
    """Separate the optional dialect line and the doc comment from the SQL body."""
    lines = body.split("\n")
    index = 0
    while index < len(lines) and not lines[index].strip():
        index += 1

    if index < len(lines):
        dialect_match = DIALECT_PATTERN.match(lines[index])
        if dialect_match:
            section.dialect = _resolve_dialect(dialect_match.group("dialect"), section.line + index)
            index += 1

    doc_lines: list[str] = []
    while index < len(lines):
        stripped = lines[index].strip()
        if stripped.startswith("--"):
            doc_lines.append(stripped[2:].strip())
        elif stripped:
            break
        index += 1

    section.doc = "\n".join(doc_lines).strip() or None
    section.sql_line = section.line + index
    sql = "\n".join(lines[index:]).rstrip()
    if sql.endswith(";"):
        sql = sql[:-1].rstrip()
    section.sql = sql


def _extract_sections(content: str, path: str) -> "list[_Section]":
    matches = list(ANNOTATION_LINE_PATTERN.finditer(content))
    if not matches:
        msg = "No named SQL statements found (-- name: statement_name)"
        raise AnnotationError(msg, path=path)

    sections: list[_Section] = []
    seen: dict[str, int] = {}
    for i, match in enumerate(matches):
        line = content.count("\n", 0, match.start()) + 1
        name_match = QUERY_NAME_PATTERN.match(match.group("rest"))
        if name_match is None:
            msg = f"Malformed statement annotation: {match.group(0).strip()!r}"
            raise AnnotationError(msg, line=line, path=path)

        name = _normalize_query_name(name_match.group("name"))
        if name in seen:
            msg = f"Duplicate statement name '{name}' (first declared at line {seen[name]})"
            raise AnnotationError(msg, line=line, other_line=seen[name], path=path)
        seen[name] = line

        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        section = _Section(name, line)
        _split_section(section, content[match.end() : end])
        if not section.sql:
            msg = f"Statement '{name}' has no SQL body"
            raise AnnotationError(msg, line=line, path=path)
        sections.append(section)
    return sections


def parse_sql(
    content: str, path: str = "<string>", placeholder: "Optional[Union[PlaceholderConfig, str]]" = None
) -> "dict[str, Statement]":
    """Split ``content`` into named statements and analyse each of them.

    Args:
        content: Raw SQL file content.
        path: File path for error reporting.
        placeholder: Placeholder convention; derived from each statement's
            dialect (or :data:`DEFAULT_PLACEHOLDER`) when omitted.

    Returns:
        Statements by normalized name, in file order.

    Raises:
        AnnotationError: If no statement is found, a name is duplicated or an
            annotation is malformed.
        LexError: On an unterminated string literal or block comment.
        ParameterError: On a role conflict or an unresolved parameter.
    """
    if isinstance(placeholder, str):
        placeholder = PlaceholderConfig.from_prefix(placeholder)
    return {section.name: statement for section, statement in _analyse_sections(content, path, placeholder)}


def _analyse_sections(
    content: str, path: str, placeholder: Optional[PlaceholderConfig]
) -> "Iterator[tuple[_Section, Statement]]":
    for section in _extract_sections(content, path):
        classifier = ParameterClassifier(_placeholder_for(section.dialect, placeholder))
        try:
            statement = classifier.classify(
                section.sql, section.name, doc=section.doc, dialect=section.dialect, start_line=section.sql_line
            )
        except LexError as e:
            log_event(
                logger,
                logging.ERROR,
                "Failed to tokenize statement %s in %s: %s",
                section.name,
                path,
                e.detail,
                statement=section.name,
                path=path,
                line=e.line,
            )
            raise
        yield section, statement


@dataclass
class SQLFile:
    """Represents a loaded SQL file with metadata."""

    content: str
    """The raw SQL content from the file."""

    path: str
    """Path where the SQL file was loaded from."""

    metadata: "dict[str, Any]" = field(default_factory=dict)
    """Optional metadata associated with the SQL file."""

    checksum: str = field(init=False)
    """MD5 checksum of the SQL content."""

    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """Timestamp when the file was loaded."""

    def __post_init__(self) -> None:
        self.checksum = hashlib.md5(self.content.encode(), usedforsecurity=False).hexdigest()


class SQLFileLoader:
    """Loads SQL files with named statements and assembles them on request.

    Example:
        ```python
        loader = SQLFileLoader(placeholder="$")
        loader.load_sql("queries/crew.sql")

        sql, args = loader.get_sql("select_ship_crew_by_rank", ship=7, ranks=["captain", "midshipman"])
        cursor.execute(sql, args)
        ```
    """

    def __init__(
        self, *, placeholder: "Optional[Union[PlaceholderConfig, str]]" = None, encoding: str = "utf-8"
    ) -> None:
        """Initialize the SQL file loader.

        Args:
            placeholder: Placeholder convention of the target driver. When
                omitted it is derived from each statement's dialect.
            encoding: Text encoding for reading SQL files.
        """
        if isinstance(placeholder, str):
            placeholder = PlaceholderConfig.from_prefix(placeholder)
        self.placeholder = placeholder
        self.encoding = encoding
        self._assembler = TemplateAssembler()
        self._queries: dict[str, Statement] = {}
        self._files: dict[str, SQLFile] = {}
        self._query_to_file: dict[str, str] = {}
        self._query_lines: dict[str, int] = {}

    def _read_file_content(self, path: Path) -> str:
        try:
            return path.read_text(encoding=self.encoding)
        except FileNotFoundError as e:
            raise SQLFileNotFoundError(str(path)) from e
        except (OSError, UnicodeDecodeError) as e:
            raise SQLFileParseError(path.name, str(path), e) from e

    def load_sql(self, *paths: "Union[str, Path]") -> None:
        """Load SQL files and parse named statements.

        Directories are scanned recursively; statements from sub-directories
        are namespaced with the dotted relative directory path.

        Args:
            *paths: One or more file paths or directory paths to load.
        """
        start_time = time.perf_counter()
        loaded_count = 0
        query_count_before = len(self._queries)

        try:
            for path in paths:
                path_obj = Path(path)
                if path_obj.is_dir():
                    loaded_count += self._load_directory(path_obj)
                elif path_obj.exists():
                    self._load_single_file(path_obj, None)
                    loaded_count += 1
                else:
                    raise SQLFileNotFoundError(str(path))
        except Exception as e:
            duration = time.perf_counter() - start_time
            log_event(
                logger,
                logging.ERROR,
                "Failed to load SQL files after %.3fms",
                duration * 1000,
                exc_info=True,
                error_type=type(e).__name__,
                duration_ms=round(duration * 1000, 3),
            )
            raise

        duration = time.perf_counter() - start_time
        new_queries = len(self._queries) - query_count_before
        log_event(
            logger,
            logging.INFO,
            "Loaded %d SQL files with %d new queries in %.3fms",
            loaded_count,
            new_queries,
            duration * 1000,
            files_loaded=loaded_count,
            new_queries=new_queries,
            duration_ms=round(duration * 1000, 3),
        )

    def _load_directory(self, dir_path: Path) -> int:
        """Load all SQL files from a directory with namespacing."""
        sql_files = sorted(dir_path.rglob("*.sql"))
        for file_path in sql_files:
            namespace_parts = file_path.relative_to(dir_path).parent.parts
            namespace = ".".join(_normalize_query_name(part) for part in namespace_parts) or None
            self._load_single_file(file_path, namespace)
        return len(sql_files)

    def _source_of(self, name: str) -> str:
        source = self._query_to_file.get(name, "<directly added>")
        line = self._query_lines.get(name)
        return source if line is None else f"{source}:{line}"

    def _load_single_file(self, file_path: Path, namespace: Optional[str]) -> None:
        path_str = str(file_path)
        if path_str in self._files:
            return

        content = self._read_file_content(file_path)
        analysed = [
            (f"{namespace}.{section.name}" if namespace else section.name, section.line, statement)
            for section, statement in _analyse_sections(content, path_str, self.placeholder)
        ]
        for namespaced_name, line, _ in analysed:
            if namespaced_name in self._queries:
                msg = f"Query name '{namespaced_name}' already exists in {self._source_of(namespaced_name)}"
                raise AnnotationError(
                    msg, line=line, other_line=self._query_lines.get(namespaced_name), path=path_str
                )

        self._files[path_str] = SQLFile(content=content, path=path_str)
        for namespaced_name, line, statement in analysed:
            self._queries[namespaced_name] = statement
            self._query_to_file[namespaced_name] = path_str
            self._query_lines[namespaced_name] = line

    def add_named_sql(self, name: str, sql: str, dialect: "Optional[str]" = None) -> Statement:
        """Analyse and register a named statement without loading a file.

        The name is normalized like annotation names (``get-user`` becomes
        ``get_user``).

        Raises:
            AnnotationError: If the name already exists.
        """
        safe_name = _normalize_lookup_name(name)
        if safe_name in self._queries:
            msg = f"Query name '{safe_name}' already exists in {self._source_of(safe_name)}"
            raise AnnotationError(msg, other_line=self._query_lines.get(safe_name))

        if dialect is not None:
            dialect = _resolve_dialect(dialect)
        classifier = ParameterClassifier(_placeholder_for(dialect, self.placeholder))
        statement = classifier.classify(sql.strip(), safe_name, dialect=dialect)
        self._queries[safe_name] = statement
        self._query_to_file[safe_name] = "<directly added>"
        return statement

    def get_statement(self, name: str) -> Statement:
        """Get an analysed statement by name.

        Raises:
            SQLFileNotFoundError: If statement name not found.
        """
        safe_name = _normalize_lookup_name(name)
        if safe_name not in self._queries:
            available = ", ".join(sorted(self._queries)) if self._queries else "none"
            log_event(logger, logging.ERROR, "Statement not found: %s", name, statement=name)
            raise SQLFileNotFoundError(name, path=f"Statement '{name}' not found. Available statements: {available}")
        return self._queries[safe_name]

    def get_sql(self, name: str, parameters: "Optional[dict[str, Any]]" = None, **kwargs: Any) -> AssembledStatement:
        """Assemble a named statement with the given bindings.

        Args:
            name: Statement name (hyphens are converted to underscores).
            parameters: Bindings by parameter name.
            **kwargs: Additional bindings, taking precedence over ``parameters``.

        Returns:
            The final SQL text and its ordered arguments.
        """
        statement = self.get_statement(name)
        return self._assembler.assemble(statement, {**(parameters or {}), **kwargs})

    def get_file(self, path: "Union[str, Path]") -> "Optional[SQLFile]":
        return self._files.get(str(path))

    def get_file_for_query(self, name: str) -> "Optional[SQLFile]":
        """Get the SQLFile object that contains a query, if it came from a file."""
        safe_name = _normalize_lookup_name(name)
        file_path = self._query_to_file.get(safe_name)
        return self._files.get(file_path) if file_path else None

    def list_queries(self) -> "list[str]":
        return sorted(self._queries)

    def list_files(self) -> "list[str]":
        return sorted(self._files)

    def has_query(self, name: str) -> bool:
        safe_name = _normalize_lookup_name(name)
        return safe_name in self._queries

    def get_query_text(self, name: str) -> str:
        """Get the template text of a query (scalar placeholders already in place)."""
        return self.get_statement(name).sql

    def clear_cache(self) -> None:
        """Forget all loaded files and queries."""
        self._files.clear()
        self._queries.clear()
        self._query_to_file.clear()
        self._query_lines.clear()
