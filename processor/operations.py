"""Stack transition semantics of field and stack operations.

Each handler applies one operation to the stack and fills the helper registers
with any witness the operation's constraints need. Handlers for locals, memory
and invocation live in the executor since they touch the execution context.
"""

from typing import Callable, Dict

from primitives.field import ONE, TWO, ZERO, canonical, ext2_mul, felt, inv, inv_or_zero, is_binary
from processor.errors import DivisionByZeroError, FailedAssertionError, NotBinaryValueError
from processor.helpers import HelperRegisters
from processor.opcodes import OpCode, Operation
from processor.stack import OperandStack

Handler = Callable[[OperandStack, HelperRegisters, Operation], None]


def _binary(stack: OperandStack, i: int, opcode: OpCode):
    value = stack.get(i)
    if not is_binary(value):
        raise NotBinaryValueError(
            f"{opcode.name} expects a binary operand at position {i}, got {canonical(value)}"
        )
    return value


# --- Field Operations ---

def op_add(stack, helpers, op):
    b = stack.pop()
    a = stack.pop()
    stack.push(a + b)


def op_neg(stack, helpers, op):
    stack.set(0, -stack.get(0))


def op_mul(stack, helpers, op):
    b = stack.pop()
    a = stack.pop()
    stack.push(a * b)


def op_inv(stack, helpers, op):
    a = stack.get(0)
    if canonical(a) == 0:
        raise DivisionByZeroError("cannot invert zero")
    stack.set(0, inv(a))


def op_incr(stack, helpers, op):
    stack.set(0, stack.get(0) + ONE)


def op_not(stack, helpers, op):
    a = _binary(stack, 0, op.opcode)
    stack.set(0, ONE - a)


def op_and(stack, helpers, op):
    _binary(stack, 0, op.opcode)
    _binary(stack, 1, op.opcode)
    b = stack.pop()
    a = stack.pop()
    stack.push(a * b)


def op_or(stack, helpers, op):
    _binary(stack, 0, op.opcode)
    _binary(stack, 1, op.opcode)
    b = stack.pop()
    a = stack.pop()
    stack.push(a + b - a * b)


def op_eq(stack, helpers, op):
    diff = stack.get(0) - stack.get(1)
    # h0 = (a - b)^-1 when a != b; any value satisfies the constraints otherwise
    helpers.set(0, inv_or_zero(diff))
    stack.pop()
    stack.pop()
    stack.push(ONE if canonical(diff) == 0 else ZERO)


def op_eqz(stack, helpers, op):
    a = stack.get(0)
    helpers.set(0, inv_or_zero(a))
    stack.set(0, ONE if canonical(a) == 0 else ZERO)


def op_expacc(stack, helpers, op):
    """One round of exponent accumulation.

    [bit, exp, acc, b, ...] -> [bit, exp^2, acc * exp^bit, 2b + bit, ...]
    """
    bit = _binary(stack, 0, op.opcode)
    exp = stack.get(1)
    acc = stack.get(2)
    b = stack.get(3)
    factor = (exp - ONE) * bit + ONE
    helpers.set(0, factor)
    stack.set(1, exp * exp)
    stack.set(2, acc * factor)
    stack.set(3, TWO * b + bit)


def op_ext2mul(stack, helpers, op):
    """Quadratic extension multiplication.

    [b1, b0, a1, a0, ...] -> [b1, b0, c1, c0, ...] where c = a * b
    """
    b1, b0, a1, a0 = (stack.get(i) for i in range(4))
    c0, c1 = ext2_mul((a0, a1), (b0, b1))
    stack.set(2, c1)
    stack.set(3, c0)


# --- Stack Manipulation ---

def op_push(stack, helpers, op):
    stack.push(felt(op.imm[0]))


def op_pad(stack, helpers, op):
    stack.push(ZERO)


def op_drop(stack, helpers, op):
    stack.pop()


def op_dup(stack, helpers, op):
    stack.push(stack.get(op.imm[0]))


def op_swap(stack, helpers, op):
    n = op.imm[0]
    top = stack.get(0)
    stack.set(0, stack.get(n))
    stack.set(n, top)


def op_movup(stack, helpers, op):
    stack.move_up(op.imm[0])


def op_movdn(stack, helpers, op):
    stack.move_down(op.imm[0])


def op_assert(stack, helpers, op):
    value = stack.get(0)
    if canonical(value) != 1:
        raise FailedAssertionError(f"assertion failed: expected 1, got {canonical(value)}")
    stack.pop()


OPERATION_HANDLERS: Dict[OpCode, Handler] = {
    OpCode.ADD: op_add,
    OpCode.NEG: op_neg,
    OpCode.MUL: op_mul,
    OpCode.INV: op_inv,
    OpCode.INCR: op_incr,
    OpCode.NOT: op_not,
    OpCode.AND: op_and,
    OpCode.OR: op_or,
    OpCode.EQ: op_eq,
    OpCode.EQZ: op_eqz,
    OpCode.EXPACC: op_expacc,
    OpCode.EXT2MUL: op_ext2mul,
    OpCode.PUSH: op_push,
    OpCode.PAD: op_pad,
    OpCode.DROP: op_drop,
    OpCode.DUP: op_dup,
    OpCode.SWAP: op_swap,
    OpCode.MOVUP: op_movup,
    OpCode.MOVDN: op_movdn,
    OpCode.ASSERT: op_assert,
}


def apply_operation(stack: OperandStack, helpers: HelperRegisters, op: Operation) -> None:
    """Apply a field or stack operation. Helpers are reset first."""
    helpers.reset()
    OPERATION_HANDLERS[op.opcode](stack, helpers, op)
