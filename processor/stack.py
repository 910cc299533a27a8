"""Operand stack.

The stack always holds at least STACK_TOP_SIZE elements: the top 16 positions
are directly addressable and make up the window that constraints see. Popping
at minimum depth pulls a zero in from below. Elements below the window form
the overflow.
"""

from collections import deque
from typing import Iterable, List, Optional, Sequence

from primitives.field import FF, ZERO, felt

STACK_TOP_SIZE = 16


class OperandStack:
    """Ordered stack of field elements; position 0 is the top."""

    def __init__(self, values: Optional[Iterable] = None) -> None:
        # Right end of the deque is the top of the stack
        self._items: deque = deque()
        initial = [felt(int(v)) for v in values] if values is not None else []
        for v in reversed(initial):
            self._items.append(v)
        while len(self._items) < STACK_TOP_SIZE:
            self._items.appendleft(ZERO)

    # --- Inspection ---

    @property
    def depth(self) -> int:
        return len(self._items)

    def get(self, i: int) -> FF:
        """Element at position i (0 = top)."""
        if not 0 <= i < STACK_TOP_SIZE:
            raise IndexError(f"stack position {i} outside addressable window [0, {STACK_TOP_SIZE})")
        return self._items[-1 - i]

    def window(self) -> List[FF]:
        """Top STACK_TOP_SIZE elements, top first."""
        return [self._items[-1 - i] for i in range(STACK_TOP_SIZE)]

    def to_list(self) -> List[int]:
        """Whole stack as canonical ints, top first."""
        return [int(v) for v in reversed(self._items)]

    # --- Mutation ---

    def push(self, value: FF) -> None:
        self._items.append(value)

    def pop(self) -> FF:
        value = self._items.pop()
        if len(self._items) < STACK_TOP_SIZE:
            self._items.appendleft(ZERO)
        return value

    def set(self, i: int, value: FF) -> None:
        """Overwrite position i in place."""
        if not 0 <= i < STACK_TOP_SIZE:
            raise IndexError(f"stack position {i} outside addressable window [0, {STACK_TOP_SIZE})")
        self._items[-1 - i] = value

    def move_up(self, n: int) -> None:
        """Move the element at position n to the top."""
        value = self.get(n)
        del self._items[-1 - n]
        self._items.append(value)

    def move_down(self, n: int) -> None:
        """Move the top element to position n."""
        value = self._items.pop()
        self._items.insert(len(self._items) - n, value)

    # --- Context boundaries ---

    def split_window(self) -> "OperandStack":
        """New stack holding a copy of this stack's window (for a new context)."""
        return OperandStack(self.window())

    def replace_window(self, values: Sequence[FF]) -> None:
        """Overwrite the window with values (top first), keeping the overflow."""
        if len(values) != STACK_TOP_SIZE:
            raise ValueError(f"window must have {STACK_TOP_SIZE} elements, got {len(values)}")
        for i, v in enumerate(values):
            self.set(i, v)

    def __len__(self) -> int:
        return len(self._items)
