"""Base classes for per-operation constraint evaluation.

ConstraintContext provides a uniform interface to one step's (current frame,
next frame, helper registers). The same constraint code works for a single
step (StepConstraintContext returns scalars) and for every row sharing a
constraint shape at once (BatchConstraintContext returns columns) thanks to
galois broadcasting.

Example:
    def eval_constraint(ctx: ConstraintContext):
        return ctx.next_stack(0) - (ctx.stack(0) + ctx.stack(1))

    # Works for one step (scalar)
    eval_constraint(StepConstraintContext(row))

    # Works for many steps (column)
    eval_constraint(BatchConstraintContext(rows))
"""

from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple, Union

import numpy as np

from primitives.field import FF, ZERO, column, felt
from processor.stack import STACK_TOP_SIZE
from processor.trace import TraceRow

# Type aliases for clarity
FFColumn = FF  # Array of base field elements, one per row
Labelled = List[Tuple[str, Union[FF, FFColumn]]]


class ConstraintContext(ABC):
    """Uniform interface for constraint evaluation - one step or many."""

    @abstractmethod
    def stack(self, i: int) -> Union[FF, FFColumn]:
        """Stack position i in the current frame (s_i)."""
        pass

    @abstractmethod
    def next_stack(self, i: int) -> Union[FF, FFColumn]:
        """Stack position i in the next frame (s_i')."""
        pass

    @abstractmethod
    def helper(self, i: int) -> Union[FF, FFColumn]:
        """Helper register h_i supplied for the step."""
        pass

    @abstractmethod
    def immediate(self, i: int = 0) -> Union[FF, FFColumn]:
        """Immediate value i of the executed operation."""
        pass


class StepConstraintContext(ConstraintContext):
    """Single step - returns scalar field elements."""

    def __init__(self, row: TraceRow):
        self._row = row

    def stack(self, i: int) -> FF:
        return felt(self._row.current[i])

    def next_stack(self, i: int) -> FF:
        return felt(self._row.next[i])

    def helper(self, i: int) -> FF:
        return felt(self._row.helpers[i])

    def immediate(self, i: int = 0) -> FF:
        return felt(self._row.operation.imm[i])


class BatchConstraintContext(ConstraintContext):
    """Many steps of the same constraint shape - returns columns.

    Columns are built on first access and cached, so each stack position is
    converted once per batch.
    """

    def __init__(self, rows: Sequence[TraceRow]):
        if not rows:
            raise ValueError("BatchConstraintContext needs at least one row")
        self._rows = rows
        self._cache: dict = {}

    def _column(self, key: tuple, values) -> FFColumn:
        if key not in self._cache:
            self._cache[key] = column(list(values))
        return self._cache[key]

    def stack(self, i: int) -> FFColumn:
        return self._column(("s", i), (r.current[i] for r in self._rows))

    def next_stack(self, i: int) -> FFColumn:
        return self._column(("s'", i), (r.next[i] for r in self._rows))

    def helper(self, i: int) -> FFColumn:
        return self._column(("h", i), (r.helpers[i] for r in self._rows))

    def immediate(self, i: int = 0) -> FFColumn:
        return self._column(("imm", i), (r.operation.imm[i] for r in self._rows))


# --- Stack Effect Constraints ---

def shift_left(ctx: ConstraintContext, start: int) -> Labelled:
    """Elements at positions >= start move up by one: s'_{i-1} = s_i.

    s'_15 is filled from the overflow and is not constrained by the window.
    """
    return [
        (f"s{i - 1}' = s{i}", ctx.next_stack(i - 1) - ctx.stack(i))
        for i in range(start, STACK_TOP_SIZE)
    ]


def no_change(ctx: ConstraintContext, start: int) -> Labelled:
    """Elements at positions >= start are copied unchanged: s'_i = s_i."""
    return [
        (f"s{i}' = s{i}", ctx.next_stack(i) - ctx.stack(i))
        for i in range(start, STACK_TOP_SIZE)
    ]


def shift_right(ctx: ConstraintContext, start: int) -> Labelled:
    """Elements at positions >= start move down by one: s'_{i+1} = s_i.

    s_15 moves into the overflow and is not constrained by the window.
    """
    return [
        (f"s{i + 1}' = s{i}", ctx.next_stack(i + 1) - ctx.stack(i))
        for i in range(start, STACK_TOP_SIZE - 1)
    ]


def nonzero_mask(value) -> np.ndarray:
    """Boolean mask of positions where a constraint evaluation is not zero."""
    return np.atleast_1d(np.asarray(value != ZERO, dtype=bool))


class ConstraintModule(ABC):
    """Per-operation constraint evaluation. Used for single steps and batches.

    Subclasses list their operation-specific constraints in `labels` with the
    polynomial degree of each in `degrees`, return their evaluations from
    `op_constraints`, and describe how the rest of the window moves in
    `stack_effect`.
    """

    labels: Tuple[str, ...] = ()
    degrees: Tuple[int, ...] = ()

    @abstractmethod
    def op_constraints(self, ctx: ConstraintContext) -> list:
        """Evaluate the operation-specific constraints, aligned with `labels`."""
        pass

    @abstractmethod
    def stack_effect(self, ctx: ConstraintContext) -> Labelled:
        """Evaluate the constraints on stack positions the operation does not compute."""
        pass

    def evaluate(self, ctx: ConstraintContext) -> Labelled:
        """All constraints of the step as (label, evaluation) pairs.

        Every evaluation must be zero for the step to be valid.
        """
        values = self.op_constraints(ctx)
        if len(values) != len(self.labels):
            raise ValueError(
                f"{type(self).__name__} returned {len(values)} constraints, expected {len(self.labels)}"
            )
        return list(zip(self.labels, values)) + self.stack_effect(ctx)

    @property
    def max_degree(self) -> int:
        return max(self.degrees, default=1)
