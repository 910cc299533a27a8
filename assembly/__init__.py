"""Assembly - parsing and resolving modules into executable programs."""

from assembly.code_block_table import CodeBlock, CodeBlockTable
from assembly.errors import (
    AssemblyError,
    AssemblySyntaxError,
    CallGraphCycleError,
    ConstantError,
    DuplicateDefinitionError,
    ForwardReferenceError,
    InvalidNameError,
    LocalsLimitError,
    MisplacedDeclarationError,
    MisplacedDocCommentError,
    ModuleKindError,
    SourceLocation,
    UndefinedReferenceError,
)
from assembly.module import Kernel, Module, Procedure, Program
from assembly.parser import parse_module
from assembly.resolver import MAX_PROCEDURE_LOCALS, MAX_TOTAL_LOCALS, Assembler, ProcedureArena

__all__ = [
    # Resolution
    "Assembler",
    "ProcedureArena",
    "parse_module",
    "MAX_PROCEDURE_LOCALS",
    "MAX_TOTAL_LOCALS",
    # Resolved objects
    "Procedure",
    "Module",
    "Kernel",
    "Program",
    "CodeBlock",
    "CodeBlockTable",
    # Errors
    "SourceLocation",
    "AssemblyError",
    "AssemblySyntaxError",
    "InvalidNameError",
    "LocalsLimitError",
    "CallGraphCycleError",
    "ForwardReferenceError",
    "UndefinedReferenceError",
    "ConstantError",
    "ModuleKindError",
    "MisplacedDocCommentError",
    "MisplacedDeclarationError",
    "DuplicateDefinitionError",
]
