"""Statement analysis and assembly.

- lexer.py: typed spans over statement text
- parameters.py: scalar/list classification and template baking
- statement.py: immutable Statement, ScalarParam and ListParam descriptors
- assembler.py: runtime splicing of list parameters
- config.py: positional placeholder conventions
"""

from sqlinclude.core.assembler import AssembledStatement, TemplateAssembler, assemble
from sqlinclude.core.config import ParameterStyle, PlaceholderConfig
from sqlinclude.core.lexer import Token, TokenType, render_tokens, tokenize
from sqlinclude.core.parameters import ParameterClassifier, classify_statement, parameter_role
from sqlinclude.core.statement import ListParam, ParameterRole, ScalarParam, SplicePoint, Statement

__all__ = (
    "AssembledStatement",
    "ListParam",
    "ParameterClassifier",
    "ParameterRole",
    "ParameterStyle",
    "PlaceholderConfig",
    "ScalarParam",
    "SplicePoint",
    "Statement",
    "TemplateAssembler",
    "Token",
    "TokenType",
    "assemble",
    "classify_statement",
    "parameter_role",
    "render_tokens",
    "tokenize",
)
