"""Lowering of source instructions to VM operations.

Most instructions map to a single operation. Aliases expand to short
sequences (`sub` is NEG ADD, `mem_store.a` is PUSH(a) MSTORE DROP, ...), and
`procref` expands to four PUSHes of the target digest. Immediates are decimal
or hex literals, or names of constants already resolved in the module.
"""

from typing import Callable, Dict, List, Sequence

from primitives.digest import DIGEST_SIZE
from processor.opcodes import OpCode, Operation
from processor.stack import STACK_TOP_SIZE

from .ast import Instruction
from .constants import parse_literal
from .errors import AssemblySyntaxError, ConstantError, LocalsLimitError, SourceLocation

# resolve(kind, target, location) -> Procedure, kind in {"exec", "call", "syscall", "procref"}
Resolve = Callable[[str, str, SourceLocation], "Procedure"]  # noqa: F821

# Instructions without immediates that lower to a fixed sequence
_FIXED: Dict[str, Sequence[OpCode]] = {
    "add": (OpCode.ADD,),
    "sub": (OpCode.NEG, OpCode.ADD),
    "mul": (OpCode.MUL,),
    "div": (OpCode.INV, OpCode.MUL),
    "neg": (OpCode.NEG,),
    "inv": (OpCode.INV,),
    "incr": (OpCode.INCR,),
    "not": (OpCode.NOT,),
    "and": (OpCode.AND,),
    "or": (OpCode.OR,),
    "eq": (OpCode.EQ,),
    "neq": (OpCode.EQ, OpCode.NOT),
    "eqz": (OpCode.EQZ,),
    "assert": (OpCode.ASSERT,),
    "assertz": (OpCode.EQZ, OpCode.ASSERT),
    "expacc": (OpCode.EXPACC,),
    "ext2mul": (OpCode.EXT2MUL,),
    "pad": (OpCode.PAD,),
    "drop": (OpCode.DROP,),
    "mem_load": (OpCode.MLOAD,),
    "mem_store": (OpCode.MSTORE, OpCode.DROP),
    "caller": (OpCode.CALLER,),
    "dynexec": (OpCode.DYNEXEC,),
    "dyncall": (OpCode.DYNCALL,),
}

# Binary instructions accepting a constant operand: `op.v` is PUSH(v) followed by `op`
_WITH_OPERAND = ("add", "sub", "mul", "div", "eq", "neq")

# Stack instructions taking a position: (opcode, default, min, max)
_POSITIONAL = {
    "dup": (OpCode.DUP, 0, 0, STACK_TOP_SIZE - 1),
    "swap": (OpCode.SWAP, 1, 1, STACK_TOP_SIZE - 1),
    "movup": (OpCode.MOVUP, None, 2, STACK_TOP_SIZE - 1),
    "movdn": (OpCode.MOVDN, None, 2, STACK_TOP_SIZE - 1),
}

_INVOCATIONS = {
    "exec": OpCode.EXEC,
    "call": OpCode.CALL,
    "syscall": OpCode.SYSCALL,
}


def _ops(*opcodes: OpCode) -> List[Operation]:
    return [Operation(op) for op in opcodes]


def parse_value(text: str, constants: Dict[str, int], location: SourceLocation) -> int:
    """Immediate value: a literal or the name of a resolved constant."""
    if text[0].isdigit():
        return parse_literal(text, location)
    if text in constants:
        return constants[text]
    raise ConstantError(f"undefined constant '{text}'", location)


def _parse_index(inst: Instruction, lo: int, hi: int) -> int:
    text = inst.params[0]
    if not text.isdigit():
        raise AssemblySyntaxError(f"'{inst}': expected a decimal index, got '{text}'", inst.location)
    n = int(text)
    if not lo <= n <= hi:
        raise AssemblySyntaxError(f"'{inst}': index must be in [{lo}, {hi}]", inst.location)
    return n


def _expect_params(inst: Instruction, *allowed: int) -> None:
    if len(inst.params) not in allowed:
        raise AssemblySyntaxError(f"'{inst}': wrong number of parameters", inst.location)


def lower_instruction(
    inst: Instruction,
    constants: Dict[str, int],
    num_locals: int,
    resolve: Resolve,
) -> List[Operation]:
    """Lower one source instruction.

    Args:
        inst: Parsed instruction
        constants: Resolved constants of the enclosing module
        num_locals: Locals count of the enclosing procedure
        resolve: Callback resolving invocation targets to procedures

    Returns:
        Operations in execution order
    """
    name = inst.name
    loc = inst.location

    if name in _WITH_OPERAND and inst.params:
        _expect_params(inst, 1)
        value = parse_value(inst.params[0], constants, loc)
        return [Operation(OpCode.PUSH, (value,))] + _ops(*_FIXED[name])

    if name in ("mem_load", "mem_store") and inst.params:
        _expect_params(inst, 1)
        addr = parse_value(inst.params[0], constants, loc)
        return [Operation(OpCode.PUSH, (addr,))] + _ops(*_FIXED[name])

    if name in _FIXED:
        _expect_params(inst, 0)
        return _ops(*_FIXED[name])

    if name == "push":
        if not 1 <= len(inst.params) <= STACK_TOP_SIZE:
            raise AssemblySyntaxError(
                f"'{inst}': push takes between 1 and {STACK_TOP_SIZE} values", loc
            )
        return [Operation(OpCode.PUSH, (parse_value(p, constants, loc),)) for p in inst.params]

    if name in _POSITIONAL:
        opcode, default, lo, hi = _POSITIONAL[name]
        if default is None:
            _expect_params(inst, 1)
        else:
            _expect_params(inst, 0, 1)
        n = _parse_index(inst, lo, hi) if inst.params else default
        return [Operation(opcode, (n,))]

    if name in ("loc_load", "loc_store"):
        _expect_params(inst, 1)
        i = _parse_index(inst, 0, (1 << 16) - 1)
        if i >= num_locals:
            raise LocalsLimitError(
                f"'{inst}': local index {i} out of range for a procedure with {num_locals} locals", loc
            )
        opcode = OpCode.LOCLOAD if name == "loc_load" else OpCode.LOCSTORE
        return [Operation(opcode, (i,))]

    if name in _INVOCATIONS:
        _expect_params(inst, 1)
        target = resolve(name, inst.params[0], loc)
        return [Operation(_INVOCATIONS[name], (target.index,))]

    if name == "procref":
        _expect_params(inst, 1)
        target = resolve(name, inst.params[0], loc)
        # d0 ends on top
        return [
            Operation(OpCode.PUSH, (target.digest.elements[i],))
            for i in reversed(range(DIGEST_SIZE))
        ]

    raise AssemblySyntaxError(f"unknown instruction '{inst}'", loc)
