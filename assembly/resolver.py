"""Procedure and module resolution.

The Assembler holds a registry of module sources and a procedure arena.
Modules are resolved on demand, imports first, and each procedure is appended
to the arena as soon as its body is lowered. Invocations can only name
procedures already in the arena, so every reference points to a strictly
smaller index and the call graph is acyclic by construction.
"""

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Set

from primitives.digest import DIGEST_SIZE, Digest, hash_words
from processor.opcodes import STATIC_INVOCATION, Operation

from .ast import ModuleAst, ProcedureDecl
from .code_block_table import CodeBlockTable
from .constants import resolve_constants
from .errors import (
    CallGraphCycleError,
    DuplicateDefinitionError,
    ForwardReferenceError,
    LocalsLimitError,
    ModuleKindError,
    SourceLocation,
    UndefinedReferenceError,
)
from .instructions import lower_instruction
from .module import ENTRY_NAME, Kernel, Module, Procedure, Program
from .parser import MAX_PROCEDURE_LOCALS, parse_module

logger = logging.getLogger(__name__)

MAX_TOTAL_LOCALS = 1 << 30

PROGRAM_PATH = "program"
KERNEL_PATH = "kernel"

# Instructions whose parameter names a procedure
_REFERENCING = ("exec", "call", "procref")


class ProcedureArena:
    """List of resolved procedures indexed by resolution order.

    Library procedures are only ever appended. A program's own procedures are
    dropped again with truncate() once the program holds its copy.
    """

    def __init__(self, procedures: Sequence[Procedure] = ()) -> None:
        self._procedures: List[Procedure] = list(procedures)

    def digest_of(self, num_locals: int, body: Sequence[Operation]) -> Digest:
        """Content digest: locals count, then each operation's encoding with
        static invocation targets replaced by their digests."""
        words = [num_locals]
        for op in body:
            if op.opcode in STATIC_INVOCATION:
                words += [op.opcode.value, DIGEST_SIZE, *self._procedures[op.imm[0]].digest]
            else:
                words += op.encode()
        return hash_words(words)

    def add(self, name: str, module: str, num_locals: int, body: Sequence[Operation],
            references: Set[int], exported: bool = False, docs: Optional[str] = None,
            location: Optional[SourceLocation] = None) -> Procedure:
        index = len(self._procedures)
        for ref in references:
            if ref >= index:
                raise CallGraphCycleError(
                    f"procedure '{name}' references arena index {ref} >= its own index {index}", location
                )
        body = tuple(body)
        proc = Procedure(
            index=index,
            name=name,
            module=module,
            num_locals=num_locals,
            body=body,
            digest=self.digest_of(num_locals, body),
            exported=exported,
            docs=docs,
            location=location,
            references=frozenset(references),
        )
        self._procedures.append(proc)
        return proc

    def truncate(self, length: int) -> None:
        """Drop every procedure at index length or above."""
        del self._procedures[length:]

    def __getitem__(self, index: int) -> Procedure:
        return self._procedures[index]

    def __len__(self) -> int:
        return len(self._procedures)

    def __iter__(self) -> Iterator[Procedure]:
        return iter(self._procedures)


def _local_references(decl: ProcedureDecl) -> Set[str]:
    return {
        inst.params[0]
        for inst in decl.body
        if inst.name in _REFERENCING and len(inst.params) == 1 and "::" not in inst.params[0]
    }


class _ModuleResolver:
    """Resolves the declarations of one parsed module into the arena."""

    def __init__(self, assembler: "Assembler", ast: ModuleAst) -> None:
        self.assembler = assembler
        self.ast = ast
        self.arena = assembler.arena
        self.imports: Dict[str, Module] = {}
        self.constants: Dict[str, int] = {}
        self.resolved: Dict[str, Procedure] = {}
        self.declared: Dict[str, ProcedureDecl] = {}
        self.graph: Dict[str, Set[str]] = {}
        self.current: Optional[str] = None

    def run(self) -> Module:
        ast = self.ast
        for imp in ast.imports:
            if imp.alias in self.imports:
                raise DuplicateDefinitionError(f"import alias '{imp.alias}' is already bound", imp.location)
            self.imports[imp.alias] = self.assembler.resolve_module(imp.path, imp.location)

        self.constants = resolve_constants(ast.constants)

        for decl in ast.procedures:
            if decl.name in self.declared:
                raise DuplicateDefinitionError(f"procedure '{decl.name}' is already defined", decl.location)
            self.declared[decl.name] = decl
            self.graph[decl.name] = _local_references(decl)

        module = Module(
            path=ast.path,
            constants=self.constants,
            imports={alias: m.path for alias, m in self.imports.items()},
        )
        for decl in ast.procedures:
            proc = self.lower(decl, decl.name)
            module.procedures[decl.name] = proc
            if decl.exported:
                module.exports[decl.name] = proc

        for rex in ast.reexports:
            if rex.export_as in module.exports:
                raise DuplicateDefinitionError(f"'{rex.export_as}' is already exported", rex.location)
            module.exports[rex.export_as] = self.imported(rex.module, rex.name, rex.location)
        return module

    def lower(self, decl: ProcedureDecl, name: str) -> Procedure:
        self.current = name
        references: Set[int] = set()

        def resolve(kind: str, target: str, location: SourceLocation) -> Procedure:
            proc = self.resolve_target(kind, target, location)
            references.add(proc.index)
            return proc

        body: List[Operation] = []
        for inst in decl.body:
            body += lower_instruction(inst, self.constants, decl.num_locals, resolve)

        proc = self.arena.add(
            name=name,
            module=self.ast.path,
            num_locals=decl.num_locals,
            body=body,
            references=references,
            exported=decl.exported,
            docs=decl.docs,
            location=decl.location,
        )
        self.resolved[name] = proc
        self.current = None
        return proc

    # --- References ---

    def resolve_target(self, kind: str, target: str, location: SourceLocation) -> Procedure:
        if kind == "syscall":
            kernel = self.assembler.kernel
            if kernel is None:
                raise UndefinedReferenceError(f"syscall to '{target}' without a kernel", location)
            proc = kernel.module.export(target)
            if proc is None:
                raise UndefinedReferenceError(f"kernel does not export '{target}'", location)
            return proc

        if "::" in target:
            alias, _, name = target.rpartition("::")
            return self.imported(alias, name, location)

        if target in self.resolved:
            return self.resolved[target]
        if target == self.current:
            raise CallGraphCycleError(f"procedure '{target}' invokes itself", location)
        if target in self.declared:
            if self.reaches(target, self.current):
                raise CallGraphCycleError(
                    f"invoking '{target}' from '{self.current}' creates a cycle in the call graph", location
                )
            raise ForwardReferenceError(
                f"'{target}' is declared after '{self.current}'; only earlier procedures can be invoked", location
            )
        raise UndefinedReferenceError(f"undefined procedure '{target}'", location)

    def imported(self, alias: str, name: str, location: SourceLocation) -> Procedure:
        module = self.imports.get(alias)
        if module is None:
            raise UndefinedReferenceError(f"module '{alias}' is not imported", location)
        proc = module.export(name)
        if proc is None:
            raise UndefinedReferenceError(f"module '{module.path}' does not export '{name}'", location)
        return proc

    def reaches(self, start: str, goal: Optional[str]) -> bool:
        """True if goal is reachable from start over local static references."""
        seen: Set[str] = set()
        pending = [start]
        while pending:
            name = pending.pop()
            if name == goal:
                return True
            if name in seen:
                continue
            seen.add(name)
            pending.extend(self.graph.get(name, ()))
        return False


class Assembler:
    """Builds libraries, kernels and programs from module sources.

    Example:
        asm = Assembler.with_kernel(kernel_source)
        asm.add_module("std::math", math_source)
        program = asm.assemble_program(program_source)
    """

    def __init__(self, kernel: Optional[Kernel] = None) -> None:
        self.kernel = kernel
        self.arena = ProcedureArena(kernel.arena if kernel is not None else ())
        self._sources: Dict[str, ModuleAst] = {}
        self._modules: Dict[str, Module] = {}
        self._resolving: List[str] = []

    @classmethod
    def with_kernel(cls, source: str, path: str = KERNEL_PATH, file: Optional[str] = None) -> "Assembler":
        return cls(kernel=cls().assemble_kernel(source, path, file))

    # --- Module registry ---

    def add_module(self, path: str, source: str, file: Optional[str] = None) -> None:
        """Register library source under a module path; parsed immediately."""
        if path in self._sources or path in self._modules:
            raise DuplicateDefinitionError(f"module '{path}' is already registered")
        self._sources[path] = parse_module(source, path, file)

    def resolve_module(self, path: str, location: Optional[SourceLocation] = None) -> Module:
        if path in self._modules:
            return self._modules[path]
        if path in self._resolving:
            cycle = " -> ".join(self._resolving[self._resolving.index(path):] + [path])
            raise CallGraphCycleError(f"import cycle: {cycle}", location)
        ast = self._sources.get(path)
        if ast is None:
            raise UndefinedReferenceError(f"module '{path}' not found", location)

        self._resolving.append(path)
        try:
            module = self._resolve_library(ast)
        finally:
            self._resolving.pop()
        self._modules[path] = module
        logger.debug("resolved module %s: %d procedures, %d exports",
                     path, len(module.procedures), len(module.exports))
        return module

    # --- Build entry points ---

    def assemble_library(self, path: str) -> Module:
        return self.resolve_module(path)

    def assemble_kernel(self, source: str, path: str = KERNEL_PATH, file: Optional[str] = None) -> Kernel:
        """Resolve a kernel library into this assembler's arena."""
        self.add_module(path, source, file)
        module = self.resolve_module(path)
        return Kernel(module=module, arena=tuple(self.arena))

    def assemble_program(self, source: str, file: str = "<program>") -> Program:
        """Parse and resolve an executable program.

        Raises:
            AssemblyError: If the program fails to parse or resolve
        """
        ast = parse_module(source, PROGRAM_PATH, file)
        if ast.entry is None:
            raise ModuleKindError("program has no 'begin' entry", SourceLocation(file, 1))
        for decl in ast.procedures:
            if decl.exported:
                raise ModuleKindError(
                    f"program cannot export procedure '{decl.name}'", decl.location
                )
        if ast.reexports:
            raise ModuleKindError("program cannot re-export procedures", ast.reexports[0].location)

        # Libraries stay in the shared arena; the program's procedures do not
        for imp in ast.imports:
            self.resolve_module(imp.path, imp.location)
        mark = len(self.arena)
        try:
            resolver = _ModuleResolver(self, ast)
            module = resolver.run()
            entry = resolver.lower(ast.entry, ENTRY_NAME)

            program = Program(
                entry=entry,
                arena=list(self.arena),
                code_blocks=self._code_block_table(),
                kernel=self.kernel,
                constants=module.constants,
            )
        finally:
            self.arena.truncate(mark)

        total = sum(p.num_locals for p in program.reachable())
        if total > MAX_TOTAL_LOCALS:
            raise LocalsLimitError(
                f"procedures reachable from the entry declare {total} locals, limit is {MAX_TOTAL_LOCALS}",
                ast.entry.location,
            )
        logger.debug("assembled program %s: %d procedures, %d code blocks",
                     program.digest, len(program.arena), len(program.code_blocks))
        return program

    def _resolve_library(self, ast: ModuleAst) -> Module:
        if ast.entry is not None:
            raise ModuleKindError(f"library '{ast.path}' cannot have a 'begin' entry", ast.entry.location)
        if not ast.reexports and not any(d.exported for d in ast.procedures):
            raise ModuleKindError(
                f"library '{ast.path}' exports no procedures", SourceLocation(ast.file, 1)
            )
        return _ModuleResolver(self, ast).run()

    def _code_block_table(self) -> CodeBlockTable:
        table = CodeBlockTable()
        skip = len(self.kernel.arena) if self.kernel is not None else 0
        for proc in list(self.arena)[skip:]:
            table.insert(proc)
        return table.freeze()


__all__ = [
    "Assembler",
    "ProcedureArena",
    "MAX_PROCEDURE_LOCALS",
    "MAX_TOTAL_LOCALS",
]
