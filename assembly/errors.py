"""Resolution-time errors.

Raised while parsing and resolving modules, before anything executes. Each
error carries the source location it was found at.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SourceLocation:
    """File path and 1-based line number."""
    path: str
    line: int

    def __str__(self) -> str:
        return f"{self.path}:{self.line}"


class AssemblyError(Exception):
    """Fatal error found while building a program or library."""

    code = "assembly_error"

    def __init__(self, message: str, location: Optional[SourceLocation] = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "path": self.location.path if self.location else None,
            "line": self.location.line if self.location else None,
        }

    def __str__(self) -> str:
        if self.location is None:
            return self.message
        return f"{self.location}: {self.message}"


class AssemblySyntaxError(AssemblyError):
    code = "syntax_error"


class InvalidNameError(AssemblyError):
    code = "invalid_name"


class LocalsLimitError(AssemblyError):
    code = "locals_limit_exceeded"


class CallGraphCycleError(AssemblyError):
    code = "call_graph_cycle"


class ForwardReferenceError(AssemblyError):
    code = "forward_reference"


class UndefinedReferenceError(AssemblyError):
    code = "undefined_reference"


class ConstantError(AssemblyError):
    code = "invalid_constant"


class ModuleKindError(AssemblyError):
    code = "invalid_module_kind"


class MisplacedDocCommentError(AssemblyError):
    code = "misplaced_doc_comment"


class MisplacedDeclarationError(AssemblyError):
    code = "misplaced_declaration"


class DuplicateDefinitionError(AssemblyError):
    code = "duplicate_definition"
