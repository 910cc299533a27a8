"""VM operation codes and the lowered operation record."""

from dataclasses import dataclass, field
from enum import Enum


# --- Opcodes ---
class OpCode(Enum):
    """Operations executed by the stack machine, one per step."""
    # Field operations
    ADD = 1
    NEG = 2
    MUL = 3
    INV = 4
    INCR = 5
    NOT = 6
    AND = 7
    OR = 8
    EQ = 9
    EQZ = 10
    EXPACC = 11
    EXT2MUL = 12

    # Stack manipulation
    PUSH = 20
    PAD = 21
    DROP = 22
    DUP = 23
    SWAP = 24
    MOVUP = 25
    MOVDN = 26
    ASSERT = 27

    # Locals and memory
    LOCLOAD = 30
    LOCSTORE = 31
    MLOAD = 32
    MSTORE = 33
    CALLER = 34

    # Invocation
    EXEC = 40
    CALL = 41
    SYSCALL = 42
    DYNEXEC = 43
    DYNCALL = 44
    END = 45


# Operations that open a new execution context
CONTEXT_CHANGING = frozenset({OpCode.CALL, OpCode.SYSCALL, OpCode.DYNCALL})

# Operations dispatched by content hash read from the stack
DYNAMIC_DISPATCH = frozenset({OpCode.DYNEXEC, OpCode.DYNCALL})

# Operations whose immediate names a procedure in the arena
STATIC_INVOCATION = frozenset({OpCode.EXEC, OpCode.CALL, OpCode.SYSCALL})

# Operations whose immediate changes which stack positions are constrained
STRUCTURAL_IMMEDIATE = frozenset({OpCode.DUP, OpCode.SWAP, OpCode.MOVUP, OpCode.MOVDN})


@dataclass(frozen=True)
class Operation:
    """A single lowered VM operation.

    Attributes:
        opcode: Operation code
        imm: Immediates. PUSH: (value,). DUP/SWAP/MOVUP/MOVDN: (n,).
            LOCLOAD/LOCSTORE: (local index,). EXEC/CALL/SYSCALL: (arena index,).
    """
    opcode: OpCode
    imm: tuple = field(default_factory=tuple)

    def __str__(self) -> str:
        name = self.opcode.name.lower()
        if not self.imm:
            return name
        return name + "." + ".".join(str(v) for v in self.imm)

    def encode(self) -> list:
        """Canonical word encoding used for code block hashing."""
        return [self.opcode.value, len(self.imm), *self.imm]
