"""Constraints for stack manipulation, locals/memory access and context markers.

Values loaded from locals or memory are witnessed by the memory chiplet, which
is outside this constraint system; here only the movement of the rest of the
window is checked for those operations.
"""

from primitives.field import ONE, ZERO
from processor.stack import STACK_TOP_SIZE
from .base import ConstraintContext, ConstraintModule, no_change, shift_left, shift_right


class PushConstraints(ConstraintModule):
    """[...] -> [v, ...]"""

    labels = ("s0' = imm",)
    degrees = (1,)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.next_stack(0) - ctx.immediate(0)]

    def stack_effect(self, ctx):
        return shift_right(ctx, 0)


class PadConstraints(ConstraintModule):
    """[...] -> [0, ...]"""

    labels = ("s0' = 0",)
    degrees = (1,)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.next_stack(0) - ZERO]

    def stack_effect(self, ctx):
        return shift_right(ctx, 0)


class DropConstraints(ConstraintModule):
    """[a, ...] -> [...]"""

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return []

    def stack_effect(self, ctx):
        return shift_left(ctx, 1)


class AssertConstraints(ConstraintModule):
    """[1, ...] -> [...]"""

    labels = ("s0 = 1",)
    degrees = (1,)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.stack(0) - ONE]

    def stack_effect(self, ctx):
        return shift_left(ctx, 1)


class DupConstraints(ConstraintModule):
    """[..., a_n, ...] -> [a_n, ..., a_n, ...]"""

    degrees = (1,)

    def __init__(self, n: int):
        if not 0 <= n < STACK_TOP_SIZE:
            raise ValueError(f"dup index must be in [0, {STACK_TOP_SIZE}), got {n}")
        self.n = n
        self.labels = (f"s0' = s{n}",)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.next_stack(0) - ctx.stack(self.n)]

    def stack_effect(self, ctx):
        return shift_right(ctx, 0)


class SwapConstraints(ConstraintModule):
    """Exchange positions 0 and n."""

    degrees = (1, 1)

    def __init__(self, n: int):
        if not 1 <= n < STACK_TOP_SIZE:
            raise ValueError(f"swap index must be in [1, {STACK_TOP_SIZE}), got {n}")
        self.n = n
        self.labels = (f"s0' = s{n}", f"s{n}' = s0")

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [
            ctx.next_stack(0) - ctx.stack(self.n),
            ctx.next_stack(self.n) - ctx.stack(0),
        ]

    def stack_effect(self, ctx):
        return [
            (f"s{i}' = s{i}", ctx.next_stack(i) - ctx.stack(i))
            for i in range(1, STACK_TOP_SIZE)
            if i != self.n
        ]


class MovUpConstraints(ConstraintModule):
    """Move position n to the top; positions 0..n-1 move down by one."""

    degrees = (1,)

    def __init__(self, n: int):
        if not 2 <= n < STACK_TOP_SIZE:
            raise ValueError(f"movup index must be in [2, {STACK_TOP_SIZE}), got {n}")
        self.n = n
        self.labels = (f"s0' = s{n}",)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.next_stack(0) - ctx.stack(self.n)]

    def stack_effect(self, ctx):
        moved = [
            (f"s{i + 1}' = s{i}", ctx.next_stack(i + 1) - ctx.stack(i))
            for i in range(self.n)
        ]
        return moved + no_change(ctx, self.n + 1)


class MovDnConstraints(ConstraintModule):
    """Move the top to position n; positions 1..n move up by one."""

    degrees = (1,)

    def __init__(self, n: int):
        if not 2 <= n < STACK_TOP_SIZE:
            raise ValueError(f"movdn index must be in [2, {STACK_TOP_SIZE}), got {n}")
        self.n = n
        self.labels = (f"s{n}' = s0",)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.next_stack(self.n) - ctx.stack(0)]

    def stack_effect(self, ctx):
        moved = [
            (f"s{i}' = s{i + 1}", ctx.next_stack(i) - ctx.stack(i + 1))
            for i in range(self.n)
        ]
        return moved + no_change(ctx, self.n + 1)


class LocLoadConstraints(ConstraintModule):
    """[...] -> [local_i, ...]"""

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return []

    def stack_effect(self, ctx):
        return shift_right(ctx, 0)


class LocStoreConstraints(ConstraintModule):
    """[v, ...] -> [...], v written to local i"""

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return []

    def stack_effect(self, ctx):
        return shift_left(ctx, 1)


class MLoadConstraints(ConstraintModule):
    """[addr, ...] -> [mem[addr], ...]"""

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return []

    def stack_effect(self, ctx):
        return no_change(ctx, 1)


class MStoreConstraints(ConstraintModule):
    """[addr, v, ...] -> [v, ...], v written to mem[addr]"""

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return []

    def stack_effect(self, ctx):
        return shift_left(ctx, 1)


class CallerConstraints(ConstraintModule):
    """Top 4 overwritten with the syscall issuer's digest."""

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return []

    def stack_effect(self, ctx):
        return no_change(ctx, 4)


class ContextMarkerConstraints(ConstraintModule):
    """CALL, SYSCALL, DYNCALL, DYNEXEC and END leave the window untouched.

    Dynamic dispatch reads its digest from s0..s3 without consuming it.
    """

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return []

    def stack_effect(self, ctx):
        return no_change(ctx, 0)
