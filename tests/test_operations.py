"""Tests for field operation semantics and their constraint modules.

Each test executes one operation on a stack, builds the resulting trace row and
checks it against the operation's constraints. Tampered rows must fail.
"""

from dataclasses import replace

import pytest

from constraints import ConstraintEvaluator, get_constraint_module
from primitives.field import GOLDILOCKS_PRIME, canonical
from processor.errors import DivisionByZeroError, FailedAssertionError, NotBinaryValueError
from processor.helpers import HelperRegisters
from processor.opcodes import OpCode, Operation
from processor.operations import apply_operation
from processor.stack import OperandStack
from processor.trace import TraceRow

P = GOLDILOCKS_PRIME


def run_step(opcode: OpCode, values, imm=()) -> TraceRow:
    """Execute one operation on a stack holding values (top first)."""
    op = Operation(opcode, tuple(imm))
    stack = OperandStack(values)
    helpers = HelperRegisters()
    current = tuple(canonical(v) for v in stack.window())
    apply_operation(stack, helpers, op)
    return TraceRow(
        clk=0,
        ctx=0,
        operation=op,
        current=current,
        next=tuple(canonical(v) for v in stack.window()),
        helpers=tuple(helpers.snapshot()),
    )


def failures(row: TraceRow) -> list:
    return [f.constraint for f in ConstraintEvaluator().evaluate_step(row)]


def with_top(row: TraceRow, value: int) -> TraceRow:
    """Row with s0' replaced."""
    return replace(row, next=(value % P,) + row.next[1:])


# --- Arithmetic ---

class TestArithmetic:
    @pytest.mark.parametrize("a,b", [(3, 5), (P - 1, 1), (P - 1, P - 1), (0, 0)])
    def test_add(self, a, b) -> None:
        """ADD leaves a + b on top and shifts the rest left."""
        row = run_step(OpCode.ADD, [a, b, 9, 8])
        assert row.next[:3] == ((a + b) % P, 9, 8)
        assert failures(row) == []
        assert failures(with_top(row, a + b + 1)) == ["s0' = s0 + s1"]

    @pytest.mark.parametrize("a,b", [(3, 5), (P - 1, P - 1), (2**32, 2**32)])
    def test_mul(self, a, b) -> None:
        """MUL leaves a * b on top."""
        row = run_step(OpCode.MUL, [a, b])
        assert row.next[0] == a * b % P
        assert failures(row) == []

    def test_neg(self) -> None:
        """NEG replaces a by -a in place."""
        row = run_step(OpCode.NEG, [5, 7])
        assert row.next[:2] == (P - 5, 7)
        assert failures(row) == []
        assert failures(with_top(row, 5)) == ["s0' = -s0"]

    def test_incr(self) -> None:
        """INCR adds one, wrapping at p."""
        assert run_step(OpCode.INCR, [P - 1]).next[0] == 0
        assert failures(run_step(OpCode.INCR, [41])) == []

    def test_stack_effect_is_checked(self) -> None:
        """Changing an element below the result breaks the shift constraint."""
        row = run_step(OpCode.ADD, [1, 2, 3, 4])
        tampered = replace(row, next=row.next[:1] + (99,) + row.next[2:])
        assert failures(tampered) == ["s1' = s2"]


class TestInverse:
    @pytest.mark.parametrize("a", [1, 2, 12345, P - 1])
    def test_involution(self, a) -> None:
        """INV applied twice restores a."""
        stack = OperandStack([a])
        helpers = HelperRegisters()
        apply_operation(stack, helpers, Operation(OpCode.INV))
        assert canonical(stack.get(0) * a) == 1
        apply_operation(stack, helpers, Operation(OpCode.INV))
        assert canonical(stack.get(0)) == a

    def test_inverse_of_zero_is_fatal(self) -> None:
        """Executing INV on zero raises DivisionByZeroError."""
        with pytest.raises(DivisionByZeroError):
            run_step(OpCode.INV, [0])

    def test_inverse_of_zero_is_unsatisfiable(self) -> None:
        """No claimed result satisfies s0 * s0' = 1 when s0 = 0."""
        row = run_step(OpCode.INV, [5])
        zero_row = replace(row, current=(0,) + row.current[1:])
        for claimed in (0, 1, row.next[0], P - 1):
            assert failures(with_top(zero_row, claimed)) == ["s0 * s0' = 1"]


# --- Boolean ---

class TestBoolean:
    @pytest.mark.parametrize("a,b", [(0, 0), (0, 1), (1, 0), (1, 1)])
    def test_truth_tables(self, a, b) -> None:
        """AND/OR match boolean semantics and satisfy their constraints."""
        and_row = run_step(OpCode.AND, [a, b])
        or_row = run_step(OpCode.OR, [a, b])
        assert and_row.next[0] == (a & b)
        assert or_row.next[0] == (a | b)
        assert failures(and_row) == []
        assert failures(or_row) == []

    @pytest.mark.parametrize("a", [0, 1])
    def test_not(self, a) -> None:
        """NOT maps a to 1 - a."""
        row = run_step(OpCode.NOT, [a])
        assert row.next[0] == 1 - a
        assert failures(row) == []

    @pytest.mark.parametrize("opcode", [OpCode.NOT, OpCode.AND, OpCode.OR])
    def test_non_binary_operand_is_fatal(self, opcode) -> None:
        """Boolean operations refuse non-binary operands when executing."""
        with pytest.raises(NotBinaryValueError):
            run_step(opcode, [2, 1])

    def test_non_binary_operand_fails_binary_check(self) -> None:
        """A row claiming AND over a non-binary operand fails x^2 - x = 0."""
        row = run_step(OpCode.AND, [1, 1])
        tampered = replace(row, current=(2,) + row.current[1:], next=(2,) + row.next[1:])
        assert "s0^2 = s0" in failures(tampered)

    def test_not_non_binary_fails_binary_check(self) -> None:
        """NOT over 3 claiming 1 - 3 still fails the binary check."""
        row = run_step(OpCode.NOT, [1])
        tampered = replace(row, current=(3,) + row.current[1:], next=((1 - 3) % P,) + row.next[1:])
        assert failures(tampered) == ["s0^2 = s0"]


# --- Comparison ---

class TestComparison:
    @pytest.mark.parametrize("a,b", [(5, 5), (5, 6), (0, P - 1), (0, 0)])
    def test_eq(self, a, b) -> None:
        """EQ yields 1 iff a = b, with a satisfying witness."""
        row = run_step(OpCode.EQ, [a, b])
        assert row.next[0] == int(a == b)
        assert failures(row) == []

    @pytest.mark.parametrize("a", [0, 1, P - 1])
    def test_eqz(self, a) -> None:
        """EQZ yields 1 iff a = 0."""
        row = run_step(OpCode.EQZ, [a])
        assert row.next[0] == int(a == 0)
        assert failures(row) == []

    def test_eq_any_witness_when_equal(self) -> None:
        """When a = b any helper value satisfies the constraints."""
        row = run_step(OpCode.EQ, [9, 9])
        assert failures(replace(row, helpers=(123,) + row.helpers[1:])) == []

    def test_eq_wrong_inverse_rejected(self) -> None:
        """A wrong inverse witness fails even though s0' * (s0 - s1) = 0 holds."""
        row = run_step(OpCode.EQ, [5, 3])
        bad = replace(row, helpers=(7,) + row.helpers[1:])
        assert failures(bad) == ["s0' = 1 - (s0 - s1) * h0"]

    def test_eq_false_claim_rejected(self) -> None:
        """Claiming equality of different values fails the first constraint."""
        row = run_step(OpCode.EQ, [5, 3])
        assert "s0' * (s0 - s1) = 0" in failures(with_top(row, 1))

    def test_eqz_wrong_inverse_rejected(self) -> None:
        """EQZ with a bad witness is rejected."""
        row = run_step(OpCode.EQZ, [4])
        bad = replace(row, helpers=(1,) + row.helpers[1:])
        assert failures(bad) == ["s0' = 1 - s0 * h0"]


# --- EXPACC / EXT2MUL ---

class TestExpAcc:
    def test_single_round(self) -> None:
        """One round squares exp, multiplies acc by exp^bit and doubles b."""
        row = run_step(OpCode.EXPACC, [1, 3, 5, 2])
        assert row.next[:4] == (1, 9, 15, 5)
        assert row.helpers[0] == 3
        assert failures(row) == []

    def test_zero_bit_round(self) -> None:
        """A zero bit leaves acc unchanged."""
        row = run_step(OpCode.EXPACC, [0, 3, 5, 2])
        assert row.next[:4] == (0, 9, 5, 4)
        assert failures(row) == []

    @pytest.mark.parametrize("g,e,k", [(3, 13, 4), (7, 0, 3), (2, 255, 8), (P - 2, 1000, 10)])
    def test_exponentiation(self, g, e, k) -> None:
        """k rounds over the LSB-first bits of e compute g^e and reverse the bits."""
        evaluator = ConstraintEvaluator()
        stack = OperandStack([0, g, 1, 0])
        helpers = HelperRegisters()
        for i in range(k):
            stack.set(0, (e >> i) & 1)
            current = tuple(canonical(v) for v in stack.window())
            op = Operation(OpCode.EXPACC)
            apply_operation(stack, helpers, op)
            row = TraceRow(0, 0, op, current, tuple(canonical(v) for v in stack.window()),
                           tuple(helpers.snapshot()))
            assert evaluator.evaluate_step(row) == []
        reversed_bits = int(format(e, f"0{k}b")[::-1], 2)
        assert canonical(stack.get(1)) == pow(g, 2**k, P)
        assert canonical(stack.get(2)) == pow(g, e, P)
        assert canonical(stack.get(3)) == reversed_bits

    def test_non_binary_bit_is_fatal(self) -> None:
        """The bit position must be binary."""
        with pytest.raises(NotBinaryValueError):
            run_step(OpCode.EXPACC, [2, 3, 5, 0])

    def test_helper_must_match(self) -> None:
        """A helper inconsistent with (exp - 1) * bit + 1 is rejected."""
        row = run_step(OpCode.EXPACC, [1, 3, 5, 2])
        bad = replace(row, helpers=(4,) + row.helpers[1:])
        assert "h0 = (s1 - 1) * s0 + 1" in failures(bad)


class TestExt2Mul:
    def test_product(self) -> None:
        """[b1, b0, a1, a0] -> [b1, b0, c1, c0] with c = a * b mod x^2 - x + 2."""
        a0, a1, b0, b1 = 3, 5, 7, 11
        row = run_step(OpCode.EXT2MUL, [b1, b0, a1, a0, 99])
        c0 = (a0 * b0 - 2 * a1 * b1) % P
        c1 = ((a0 + a1) * (b0 + b1) - a0 * b0) % P
        assert row.next[:5] == (b1, b0, c1, c0, 99)
        assert failures(row) == []

    def test_wrong_c0_rejected(self) -> None:
        """A wrong constant coefficient fails the fourth constraint."""
        row = run_step(OpCode.EXT2MUL, [1, 2, 3, 4])
        bad = replace(row, next=row.next[:3] + ((row.next[3] + 1) % P,) + row.next[4:])
        assert failures(bad) == ["s3' = s1 * s3 - 2 * s0 * s2"]


# --- Stack operations ---

class TestStackOperations:
    def test_push_pad_drop(self) -> None:
        """PUSH, PAD and DROP satisfy their constraints."""
        assert run_step(OpCode.PUSH, [1, 2], imm=(77,)).next[:3] == (77, 1, 2)
        assert run_step(OpCode.PAD, [1, 2]).next[:3] == (0, 1, 2)
        assert run_step(OpCode.DROP, [1, 2]).next[:2] == (2, 0)
        for opcode, imm in ((OpCode.PUSH, (77,)), (OpCode.PAD, ()), (OpCode.DROP, ())):
            assert failures(run_step(opcode, [1, 2, 3], imm)) == []

    def test_dup_swap(self) -> None:
        """DUP copies position n; SWAP exchanges s0 and s(n)."""
        values = list(range(10, 26))
        dup = run_step(OpCode.DUP, values, imm=(3,))
        swap = run_step(OpCode.SWAP, values, imm=(5,))
        assert dup.next[:2] == (13, 10)
        assert swap.next[0] == 15 and swap.next[5] == 10
        assert failures(dup) == [] and failures(swap) == []

    def test_movup_movdn(self) -> None:
        """MOVUP and MOVDN rotate the top n + 1 elements."""
        values = list(range(16))
        up = run_step(OpCode.MOVUP, values, imm=(3,))
        down = run_step(OpCode.MOVDN, values, imm=(3,))
        assert up.next[:5] == (3, 0, 1, 2, 4)
        assert down.next[:5] == (1, 2, 3, 0, 4)
        assert failures(up) == [] and failures(down) == []

    def test_assert(self) -> None:
        """ASSERT pops a one and fails on anything else."""
        assert failures(run_step(OpCode.ASSERT, [1, 5])) == []
        with pytest.raises(FailedAssertionError):
            run_step(OpCode.ASSERT, [0])

    @pytest.mark.parametrize("opcode,n", [(OpCode.DUP, 16), (OpCode.SWAP, 0), (OpCode.MOVUP, 1), (OpCode.MOVDN, 16)])
    def test_position_out_of_range(self, opcode, n) -> None:
        """Structural immediates are range checked when building the module."""
        with pytest.raises(ValueError):
            get_constraint_module(Operation(opcode, (n,)))


def test_declared_degrees() -> None:
    """Each module declares one degree per operation constraint."""
    expected = {
        OpCode.ADD: 1, OpCode.MUL: 2, OpCode.INV: 2, OpCode.NOT: 2,
        OpCode.EQ: 2, OpCode.EXPACC: 2, OpCode.EXT2MUL: 2,
    }
    for opcode, degree in expected.items():
        module = get_constraint_module(Operation(opcode))
        assert len(module.degrees) == len(module.labels)
        assert module.max_degree == degree
