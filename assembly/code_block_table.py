"""Code Block Table: digest -> code block, used for dynamic dispatch.

Populated by the assembler and frozen before execution begins. The executor
only ever looks blocks up by digest value.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterator, Optional

from primitives.digest import Digest

if TYPE_CHECKING:
    from assembly.module import Procedure


@dataclass(frozen=True)
class CodeBlock:
    """Executable handle for one procedure body."""
    digest: Digest
    procedure: "Procedure"


class CodeBlockTable:
    """Content-addressed table of code blocks."""

    def __init__(self) -> None:
        self._blocks: Dict[Digest, CodeBlock] = {}
        self._frozen = False

    def insert(self, procedure: "Procedure") -> CodeBlock:
        """Add a procedure; equal bodies share one entry."""
        if self._frozen:
            raise RuntimeError("code block table is frozen")
        block = self._blocks.get(procedure.digest)
        if block is None:
            block = CodeBlock(procedure.digest, procedure)
            self._blocks[procedure.digest] = block
        return block

    def get(self, digest: Digest) -> Optional[CodeBlock]:
        return self._blocks.get(digest)

    def freeze(self) -> "CodeBlockTable":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, digest: Digest) -> bool:
        return digest in self._blocks

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[CodeBlock]:
        return iter(self._blocks.values())

    def to_dict(self) -> Dict[str, str]:
        """Digest hex -> qualified procedure name."""
        return {d.hex(): b.procedure.qualified_name for d, b in self._blocks.items()}
