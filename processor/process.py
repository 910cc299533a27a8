"""Program executor.

Process drives the stack machine one operation at a time, starting at the
program entry in the root context. Every step that changes (or marks a change
of) the machine state is recorded as a TraceRow:

    field / stack ops      one row each
    LOCLOAD ... CALLER     one row each, touching the current context
    CALL/SYSCALL/DYNCALL   a marker row, the callee's rows, then an END row
    DYNEXEC                a marker row, the block's rows, then an END row
    EXEC                   no row; the callee's body runs inline

Context-changing invocations push a frame on the ContextStack and pop it at
the END row. Any ExecutionError halts execution and is reported with the
step index and opcode it happened at.

Execution is a single loop over an explicit work stack. Each entry is either
a body frame (procedure plus the index of its next operation) or a pending
END step. An invocation pushes its END (if it has one) and then the callee's
body frame, so nesting depth is bounded by max_cycles rather than by the
Python call stack.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Union

from primitives.digest import DIGEST_SIZE, Digest
from primitives.field import canonical, felt
from processor.config import ExecutionOptions
from processor.context import ContextStack, ExecutionContext
from processor.errors import (
    CycleLimitExceededError,
    DynamicTargetNotFoundError,
    ExecutionError,
    PrivilegeError,
)
from processor.helpers import HelperRegisters
from processor.opcodes import OpCode, Operation
from processor.operations import OPERATION_HANDLERS, apply_operation
from processor.stack import STACK_TOP_SIZE
from processor.trace import ExecutionTrace, TraceRow

if TYPE_CHECKING:
    from assembly.module import Procedure, Program
    from constraints.evaluator import ConstraintEvaluator

logger = logging.getLogger(__name__)

_END = Operation(OpCode.END)


@dataclass
class _BodyFrame:
    """Continuation of an invocation: proc resumes at body[pc]."""
    proc: "Procedure"
    pc: int = 0


@dataclass
class ExecutionResult:
    """Outcome of a successful execution.

    Attributes:
        stack: Final stack of the root context, top first
        trace: Recorded steps (empty when record_trace is off)
        cycles: Number of steps executed
    """
    stack: List[int]
    trace: ExecutionTrace
    cycles: int

    @property
    def outputs(self) -> List[int]:
        """Top STACK_TOP_SIZE elements of the final stack."""
        return self.stack[:STACK_TOP_SIZE]


class Process:
    """Executes one program with the given options."""

    def __init__(self, program: "Program", options: Optional[ExecutionOptions] = None) -> None:
        self.program = program
        self.options = options or ExecutionOptions()
        self.helpers = HelperRegisters()
        self.trace = ExecutionTrace()
        self.clk = 0
        self.contexts: Optional[ContextStack] = None
        self._work: List[Union[_BodyFrame, Callable[[], None]]] = []
        self.evaluator: Optional["ConstraintEvaluator"] = None
        if self.options.verify_steps:
            from constraints.evaluator import ConstraintEvaluator
            self.evaluator = ConstraintEvaluator()

    def execute(self, inputs: Iterable = ()) -> ExecutionResult:
        """Run the program entry on a stack initialised with inputs (top first)."""
        inputs = list(inputs)
        if len(inputs) > STACK_TOP_SIZE:
            raise ValueError(f"at most {STACK_TOP_SIZE} inputs can be provided, got {len(inputs)}")
        self.contexts = ContextStack(inputs, root_digest=self.program.digest)
        self.trace = ExecutionTrace()
        self.clk = 0

        logger.debug("executing program %s", self.program.digest)
        self._work = []
        self._enter_body(self.program.entry)
        self._run()
        root = self.contexts.root
        logger.debug("program finished after %d steps", self.clk)
        return ExecutionResult(stack=root.stack.to_list(), trace=self.trace, cycles=self.clk)

    @property
    def ctx(self) -> ExecutionContext:
        return self.contexts.current

    # --- Bodies ---

    def _run(self) -> None:
        work = self._work
        while work:
            top = work[-1]
            if not isinstance(top, _BodyFrame):
                work.pop()
                top()
            elif top.pc == len(top.proc.body):
                work.pop()
                self.ctx.pop_locals()
            else:
                op = top.proc.body[top.pc]
                top.pc += 1
                self._dispatch(op)

    def _enter_body(self, proc: "Procedure") -> None:
        """Schedule proc in the current context with a fresh locals frame."""
        self.ctx.push_locals(proc.num_locals)
        self._work.append(_BodyFrame(proc))

    def _end_context(self) -> None:
        self._step(_END, self.contexts.leave)

    def _end_inline(self) -> None:
        self._step(_END, lambda: None)

    def _dispatch(self, op: Operation) -> None:
        opcode = op.opcode
        if opcode == OpCode.EXEC:
            self._enter_body(self.program.procedure(op.imm[0]))
        elif opcode in (OpCode.CALL, OpCode.SYSCALL):
            self._invoke_in_new_context(op, self.program.procedure(op.imm[0]))
        elif opcode == OpCode.DYNCALL:
            self._invoke_in_new_context(op, None)
        elif opcode == OpCode.DYNEXEC:
            target = self._step(op, self._lookup_dynamic)
            self._work.append(self._end_inline)
            self._enter_body(target)
        elif opcode in OPERATION_HANDLERS:
            self._step(op, lambda: apply_operation(self.ctx.stack, self.helpers, op))
        else:
            self._step(op, lambda: self._context_operation(op))

    def _invoke_in_new_context(self, op: Operation, proc: Optional["Procedure"]) -> None:
        def enter() -> "Procedure":
            target = proc if proc is not None else self._lookup_dynamic()
            if op.opcode == OpCode.SYSCALL:
                kernel = self.program.kernel
                if kernel is None or not kernel.contains(target.digest):
                    raise PrivilegeError(f"syscall target {target.digest} is not a kernel procedure")
            self.contexts.enter(op.opcode, target.digest)
            return target

        target = self._step(op, enter)
        self._work.append(self._end_context)
        self._enter_body(target)

    def _lookup_dynamic(self) -> "Procedure":
        stack = self.ctx.stack
        digest = Digest.from_elements(canonical(stack.get(i)) for i in range(DIGEST_SIZE))
        block = self.program.code_blocks.get(digest)
        if block is None:
            raise DynamicTargetNotFoundError(f"no code block with digest {digest}")
        return block.procedure

    # --- Context operations ---

    def _context_operation(self, op: Operation) -> None:
        ctx = self.ctx
        stack = ctx.stack
        if op.opcode == OpCode.LOCLOAD:
            stack.push(ctx.load_local(op.imm[0]))
        elif op.opcode == OpCode.LOCSTORE:
            ctx.store_local(op.imm[0], stack.pop())
        elif op.opcode == OpCode.MLOAD:
            stack.set(0, ctx.load(canonical(stack.get(0))))
        elif op.opcode == OpCode.MSTORE:
            addr = canonical(stack.pop())
            ctx.store(addr, stack.get(0))
        elif op.opcode == OpCode.CALLER:
            if not ctx.privileged:
                raise PrivilegeError("caller is only available in a syscall context")
            for i, value in enumerate(ctx.caller_digest):
                stack.set(i, felt(value))
        else:
            raise ValueError(f"unsupported operation {op}")

    # --- Steps ---

    def _step(self, op: Operation, apply: Callable):
        """Apply one step, record its row and return whatever apply returns."""
        if self.clk >= self.options.max_cycles:
            raise CycleLimitExceededError(
                f"execution exceeded {self.options.max_cycles} cycles", self.clk, op.opcode.name
            )
        ctx_id = self.ctx.ctx_id
        current = tuple(canonical(v) for v in self.ctx.stack.window())
        self.helpers.reset()
        try:
            result = apply()
        except ExecutionError as e:
            raise e.at(self.clk, op.opcode.name)

        if self.options.record_trace or self.evaluator is not None:
            row = TraceRow(
                clk=self.clk,
                ctx=ctx_id,
                operation=op,
                current=current,
                next=tuple(canonical(v) for v in self.ctx.stack.window()),
                helpers=tuple(self.helpers.snapshot()),
            )
            if self.evaluator is not None:
                self.evaluator.check_step(row)
            if self.options.record_trace:
                self.trace.append(row)
        self.clk += 1
        return result


def execute(program: "Program", inputs: Iterable = (), options: Optional[ExecutionOptions] = None) -> ExecutionResult:
    """Execute a program and return its final stack and trace."""
    return Process(program, options).execute(inputs)
