"""Source-level declarations produced by the parser and consumed by the resolver."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import SourceLocation


@dataclass(frozen=True)
class Instruction:
    """`keyword` with zero or more period-separated parameters, e.g. push.1.2."""
    name: str
    params: Tuple[str, ...]
    location: SourceLocation

    def __str__(self) -> str:
        return ".".join((self.name, *self.params))


@dataclass(frozen=True)
class ImportDecl:
    """use.<path> or use.<path>-><alias>"""
    path: str
    alias: str
    location: SourceLocation


@dataclass(frozen=True)
class ConstantDecl:
    """const.<NAME>=<expr>"""
    name: str
    expr: str
    location: SourceLocation


@dataclass(frozen=True)
class ReExportDecl:
    """export.<alias>::<name> or export.<alias>::<name>-><export_as>"""
    module: str
    name: str
    export_as: str
    location: SourceLocation
    docs: Optional[str] = None


@dataclass
class ProcedureDecl:
    """proc/export declaration, or the program entry (name None)."""
    name: Optional[str]
    num_locals: int
    exported: bool
    location: SourceLocation
    body: List[Instruction] = field(default_factory=list)
    docs: Optional[str] = None

    @property
    def is_entry(self) -> bool:
        return self.name is None


@dataclass
class ModuleAst:
    """Parsed module: imports, constants, then procedures in declaration order."""
    path: str
    file: str
    imports: List[ImportDecl] = field(default_factory=list)
    constants: List[ConstantDecl] = field(default_factory=list)
    procedures: List[ProcedureDecl] = field(default_factory=list)
    reexports: List[ReExportDecl] = field(default_factory=list)
    entry: Optional[ProcedureDecl] = None

    @property
    def is_program(self) -> bool:
        return self.entry is not None
