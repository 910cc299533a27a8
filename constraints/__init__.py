"""Constraint evaluation modules.

Each VM operation has a ConstraintModule holding the polynomial equalities a
(current frame, next frame, helpers) triple must satisfy for that operation.
Modules for operations whose immediate changes which stack positions are
constrained (DUP, SWAP, MOVUP, MOVDN) are built per immediate.
"""

from typing import Hashable

from processor.opcodes import STRUCTURAL_IMMEDIATE, OpCode, Operation

from .base import (
    BatchConstraintContext,
    ConstraintContext,
    ConstraintModule,
    StepConstraintContext,
)
from .boolean_ops import AndConstraints, NotConstraints, OrConstraints
from .comparison_ops import EqConstraints, EqzConstraints
from .extension_ops import Ext2MulConstraints, ExpAccConstraints
from .field_ops import (
    AddConstraints,
    IncrConstraints,
    InvConstraints,
    MulConstraints,
    NegConstraints,
)
from .stack_ops import (
    AssertConstraints,
    CallerConstraints,
    ContextMarkerConstraints,
    DropConstraints,
    DupConstraints,
    LocLoadConstraints,
    LocStoreConstraints,
    MLoadConstraints,
    MovDnConstraints,
    MovUpConstraints,
    MStoreConstraints,
    PadConstraints,
    PushConstraints,
    SwapConstraints,
)

# Registry mapping opcodes to constraint module classes
CONSTRAINT_REGISTRY: dict[OpCode, type[ConstraintModule]] = {
    OpCode.ADD: AddConstraints,
    OpCode.NEG: NegConstraints,
    OpCode.MUL: MulConstraints,
    OpCode.INV: InvConstraints,
    OpCode.INCR: IncrConstraints,
    OpCode.NOT: NotConstraints,
    OpCode.AND: AndConstraints,
    OpCode.OR: OrConstraints,
    OpCode.EQ: EqConstraints,
    OpCode.EQZ: EqzConstraints,
    OpCode.EXPACC: ExpAccConstraints,
    OpCode.EXT2MUL: Ext2MulConstraints,
    OpCode.PUSH: PushConstraints,
    OpCode.PAD: PadConstraints,
    OpCode.DROP: DropConstraints,
    OpCode.DUP: DupConstraints,
    OpCode.SWAP: SwapConstraints,
    OpCode.MOVUP: MovUpConstraints,
    OpCode.MOVDN: MovDnConstraints,
    OpCode.ASSERT: AssertConstraints,
    OpCode.LOCLOAD: LocLoadConstraints,
    OpCode.LOCSTORE: LocStoreConstraints,
    OpCode.MLOAD: MLoadConstraints,
    OpCode.MSTORE: MStoreConstraints,
    OpCode.CALLER: CallerConstraints,
    OpCode.CALL: ContextMarkerConstraints,
    OpCode.SYSCALL: ContextMarkerConstraints,
    OpCode.DYNCALL: ContextMarkerConstraints,
    OpCode.DYNEXEC: ContextMarkerConstraints,
    OpCode.END: ContextMarkerConstraints,
}


# Operations whose constraints read exactly one immediate
_ONE_IMMEDIATE = STRUCTURAL_IMMEDIATE | {OpCode.PUSH}


def constraint_key(op: Operation) -> Hashable:
    """Key grouping operations that share one set of constraint polynomials."""
    if op.opcode in STRUCTURAL_IMMEDIATE:
        return (op.opcode, op.imm)
    return op.opcode


def check_operation(op: Operation) -> None:
    """Check that an operation read from a trace can be constrained at all.

    Raises:
        KeyError: If the operation has no constraint module (EXEC is inlined
            and never appears as a step)
        ValueError: If the operation does not carry the immediate its
            constraints read
    """
    if op.opcode not in CONSTRAINT_REGISTRY:
        raise KeyError(
            f"No constraint module for operation '{op.opcode.name}'. "
            f"Available: {[c.name for c in CONSTRAINT_REGISTRY]}"
        )
    if op.opcode in _ONE_IMMEDIATE and len(op.imm) != 1:
        raise ValueError(f"{op.opcode.name} takes one immediate, got {len(op.imm)}")


def get_constraint_module(op: Operation) -> ConstraintModule:
    """Get the constraint module instance for an operation.

    Raises:
        KeyError: If the operation has no constraint module
        ValueError: If its immediates are missing or out of range
    """
    check_operation(op)
    cls = CONSTRAINT_REGISTRY[op.opcode]
    if op.opcode in STRUCTURAL_IMMEDIATE:
        return cls(op.imm[0])
    return cls()


__all__ = [
    "ConstraintContext",
    "StepConstraintContext",
    "BatchConstraintContext",
    "ConstraintModule",
    "CONSTRAINT_REGISTRY",
    "constraint_key",
    "check_operation",
    "get_constraint_module",
]


# Evaluator imports the registry above
from .errors import ConstraintFailure, TraceRejectedError  # noqa: E402
from .evaluator import ConstraintEvaluator, TraceVerification, verify_trace  # noqa: E402

__all__ += [
    "ConstraintEvaluator",
    "TraceVerification",
    "verify_trace",
    "ConstraintFailure",
    "TraceRejectedError",
]
