"""Resolved procedures, modules, kernels and programs."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from primitives.digest import Digest
from processor.opcodes import Operation

from .code_block_table import CodeBlockTable
from .errors import SourceLocation

ENTRY_NAME = "#entry"


@dataclass(frozen=True, eq=False)
class Procedure:
    """A resolved procedure.

    Attributes:
        index: Arena index, assigned in resolution order
        name: Label (ENTRY_NAME for a program entry)
        module: Path of the declaring module
        num_locals: Size of the locals frame allocated per invocation
        body: Lowered operations
        digest: Content digest of num_locals and body
        exported: True for exported procedures
        docs: Documentation comment text, if any
        location: Declaration location
        references: Arena indices of static invocation and procref targets
    """
    index: int
    name: str
    module: str
    num_locals: int
    body: Tuple[Operation, ...]
    digest: Digest
    exported: bool = False
    docs: Optional[str] = None
    location: Optional[SourceLocation] = None
    references: FrozenSet[int] = frozenset()

    @property
    def qualified_name(self) -> str:
        return f"{self.module}::{self.name}"

    def __repr__(self) -> str:
        return f"Procedure({self.index}, {self.qualified_name}, {self.digest})"


@dataclass
class Module:
    """A resolved library module.

    `exports` maps exported names to procedures, including re-exports, which
    are bound to the original procedure object.
    """
    path: str
    procedures: Dict[str, Procedure] = field(default_factory=dict)
    exports: Dict[str, Procedure] = field(default_factory=dict)
    constants: Dict[str, int] = field(default_factory=dict)
    imports: Dict[str, str] = field(default_factory=dict)

    def export(self, name: str) -> Optional[Procedure]:
        return self.exports.get(name)


@dataclass(frozen=True)
class Kernel:
    """Library whose exports are the only legal syscall targets.

    Attributes:
        module: Resolved kernel module
        arena: All procedures resolved for the kernel, in arena order
    """
    module: Module
    arena: Tuple[Procedure, ...]

    @property
    def digests(self) -> FrozenSet[Digest]:
        return frozenset(p.digest for p in self.module.exports.values())

    def contains(self, digest: Digest) -> bool:
        return digest in self.digests


@dataclass
class Program:
    """Executable program: entry, procedure arena and code block table."""
    entry: Procedure
    arena: List[Procedure]
    code_blocks: CodeBlockTable
    kernel: Optional[Kernel] = None
    constants: Dict[str, int] = field(default_factory=dict)

    @property
    def digest(self) -> Digest:
        return self.entry.digest

    def procedure(self, index: int) -> Procedure:
        return self.arena[index]

    def reachable(self) -> List[Procedure]:
        """Procedures reachable from the entry, entry included, in arena order."""
        seen = {self.entry.index}
        pending = [self.entry]
        while pending:
            proc = pending.pop()
            for i in proc.references:
                if i not in seen:
                    seen.add(i)
                    pending.append(self.arena[i])
        return [self.arena[i] for i in sorted(seen)]
