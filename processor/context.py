"""Execution contexts.

An execution context owns a stack, a memory region and the locals frames of
the procedure invocations running in it. `call` and `dyncall` open a fresh
context with its own memory; `syscall` opens a privileged context that shares
the root memory region (context 0). `exec` and `dynexec` run in the current
context and only push a locals frame.

Contexts form an explicit stack of frame records. A new context receives a
copy of its caller's top STACK_TOP_SIZE elements; the caller's overflow stays
with the caller. On return the callee's stack must be exactly STACK_TOP_SIZE
deep, and its window replaces the caller's window.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from primitives.digest import Digest
from primitives.field import FF, ZERO
from processor.errors import InvalidStackDepthOnReturnError, MemoryAddressError, PrivilegeError
from processor.opcodes import OpCode
from processor.stack import STACK_TOP_SIZE, OperandStack

logger = logging.getLogger(__name__)

ROOT_CONTEXT_ID = 0
MEMORY_ADDRESS_LIMIT = 1 << 32


@dataclass
class ExecutionContext:
    """One frame of the context stack.

    Attributes:
        ctx_id: Unique id, 0 for the root context
        stack: Operand stack owned by this context
        memory: Memory region (shared with the root for privileged contexts)
        fn_digest: Digest of the procedure that opened the context
        privileged: True for contexts opened by syscall
        caller: Context that opened this one, None for the root
        caller_digest: fn_digest of the caller, exposed to kernel code by CALLER
        locals: Locals frames of active invocations, innermost last
    """
    ctx_id: int
    stack: OperandStack
    memory: Dict[int, FF]
    fn_digest: Digest
    privileged: bool = False
    caller: Optional["ExecutionContext"] = None
    caller_digest: Optional[Digest] = None
    locals: List[List[FF]] = field(default_factory=list)

    # --- Locals ---

    def push_locals(self, count: int) -> None:
        self.locals.append([ZERO] * count)

    def pop_locals(self) -> None:
        self.locals.pop()

    def load_local(self, i: int) -> FF:
        return self.locals[-1][i]

    def store_local(self, i: int, value: FF) -> None:
        self.locals[-1][i] = value

    # --- Memory ---

    def load(self, addr: int) -> FF:
        _check_address(addr)
        return self.memory.get(addr, ZERO)

    def store(self, addr: int, value: FF) -> None:
        _check_address(addr)
        self.memory[addr] = value


def _check_address(addr: int) -> None:
    if not 0 <= addr < MEMORY_ADDRESS_LIMIT:
        raise MemoryAddressError(f"memory address {addr} outside [0, 2^32)")


class ContextStack:
    """Explicit stack of execution contexts, root at the bottom."""

    def __init__(self, inputs: Iterable = (), root_digest: Optional[Digest] = None) -> None:
        self._root_memory: Dict[int, FF] = {}
        self._next_id = ROOT_CONTEXT_ID + 1
        root = ExecutionContext(
            ctx_id=ROOT_CONTEXT_ID,
            stack=OperandStack(inputs),
            memory=self._root_memory,
            fn_digest=root_digest or Digest((0, 0, 0, 0)),
        )
        self._frames: List[ExecutionContext] = [root]

    @property
    def current(self) -> ExecutionContext:
        return self._frames[-1]

    @property
    def root(self) -> ExecutionContext:
        return self._frames[0]

    @property
    def depth(self) -> int:
        return len(self._frames)

    def enter(self, kind: OpCode, target: Digest) -> ExecutionContext:
        """Open a new context for a CALL, DYNCALL or SYSCALL of target."""
        caller = self.current
        if kind == OpCode.SYSCALL:
            if caller.privileged:
                raise PrivilegeError("syscall cannot be issued from a privileged context")
            memory = self._root_memory
            privileged = True
        elif kind in (OpCode.CALL, OpCode.DYNCALL):
            memory = {}
            privileged = False
        else:
            raise ValueError(f"{kind.name} does not open an execution context")

        ctx = ExecutionContext(
            ctx_id=self._next_id,
            stack=caller.stack.split_window(),
            memory=memory,
            fn_digest=target,
            privileged=privileged,
            caller=caller,
            caller_digest=caller.fn_digest,
        )
        self._next_id += 1
        self._frames.append(ctx)
        logger.debug("enter ctx %d via %s (depth %d)", ctx.ctx_id, kind.name, self.depth)
        return ctx

    def leave(self) -> ExecutionContext:
        """Close the current context and hand its window back to the caller."""
        if len(self._frames) == 1:
            raise ValueError("cannot leave the root context")
        callee = self.current
        if callee.stack.depth != STACK_TOP_SIZE:
            raise InvalidStackDepthOnReturnError(
                f"context {callee.ctx_id} returned with stack depth {callee.stack.depth}, "
                f"expected {STACK_TOP_SIZE}"
            )
        self._frames.pop()
        caller = self.current
        caller.stack.replace_window(callee.stack.window())
        logger.debug("leave ctx %d back to ctx %d", callee.ctx_id, caller.ctx_id)
        return caller
