"""Constraint evaluator for execution traces.

The evaluator is purely a checker. Given a claimed trace it instantiates each
step's constraint polynomials over (current frame, next frame, helpers) and
checks that every one evaluates to zero. It never chooses helper values; those
come from whoever produced the trace.

Verification consists of two checks:
1. Step constraints - each row satisfies its operation's constraint module
2. Continuity - each row's next window is the following row's current window

A row whose operation cannot be constrained (unknown to the registry, or
with a missing or out-of-range immediate) fails with MALFORMED_OPERATION.

Steps can be checked one at a time (scalar contexts) or grouped by constraint
shape and checked column-wise (batch contexts); both report the same failures.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional

from processor.stack import STACK_TOP_SIZE
from processor.trace import ExecutionTrace, TraceRow

from . import check_operation, constraint_key, get_constraint_module
from .base import BatchConstraintContext, ConstraintModule, StepConstraintContext, nonzero_mask
from .errors import MALFORMED_OPERATION, ConstraintFailure, TraceRejectedError

logger = logging.getLogger(__name__)


@dataclass
class TraceVerification:
    """Outcome of checking a trace.

    Attributes:
        steps_checked: Number of rows examined
        failures: Every failing constraint, ordered by step
    """
    steps_checked: int
    failures: List[ConstraintFailure] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.failures

    def raise_if_invalid(self) -> None:
        if self.failures:
            raise TraceRejectedError(self.failures)


class ConstraintEvaluator:
    """Checks trace rows against per-operation constraint modules."""

    def __init__(self) -> None:
        self._modules: Dict[Hashable, ConstraintModule] = {}

    def module_for(self, row: TraceRow) -> Optional[ConstraintModule]:
        """Constraint module for the row, or None if its operation is malformed."""
        try:
            check_operation(row.operation)
            key = constraint_key(row.operation)
            if key not in self._modules:
                self._modules[key] = get_constraint_module(row.operation)
        except (KeyError, ValueError) as e:
            logger.debug("step %d: %s", row.clk, e)
            return None
        return self._modules[key]

    # --- Single Step ---

    def evaluate_step(self, row: TraceRow) -> List[ConstraintFailure]:
        """Return the constraints a single row violates (empty if valid)."""
        module = self.module_for(row)
        if module is None:
            return [ConstraintFailure(row.clk, row.opcode.name, MALFORMED_OPERATION)]
        ctx = StepConstraintContext(row)
        return [
            ConstraintFailure(row.clk, row.opcode.name, label)
            for label, value in module.evaluate(ctx)
            if nonzero_mask(value)[0]
        ]

    def check_step(self, row: TraceRow) -> None:
        """Raise TraceRejectedError if a single row violates its constraints."""
        failures = self.evaluate_step(row)
        if failures:
            raise TraceRejectedError(failures)

    # --- Whole Trace ---

    def verify_trace(self, trace: ExecutionTrace, batched: bool = True) -> TraceVerification:
        """Check every step of a claimed trace and the continuity between steps."""
        rows = list(trace)
        if batched:
            failures = self._evaluate_batched(rows)
        else:
            failures = [f for row in rows for f in self.evaluate_step(row)]
        failures.extend(_continuity_failures(rows))
        failures.sort(key=lambda f: f.clk)

        result = TraceVerification(steps_checked=len(rows), failures=failures)
        if not result.is_valid:
            logger.warning("trace rejected: %d failure(s), first at %s", len(failures), failures[0])
        return result

    def _evaluate_batched(self, rows: List[TraceRow]) -> List[ConstraintFailure]:
        groups: Dict[Hashable, List[TraceRow]] = defaultdict(list)
        failures: List[ConstraintFailure] = []
        for row in rows:
            if self.module_for(row) is None:
                failures.append(ConstraintFailure(row.clk, row.opcode.name, MALFORMED_OPERATION))
            else:
                groups[constraint_key(row.operation)].append(row)

        for group in groups.values():
            module = self.module_for(group[0])
            ctx = BatchConstraintContext(group)
            for label, value in module.evaluate(ctx):
                mask = nonzero_mask(value)
                # A constraint that does not depend on any column stays a scalar
                if mask.shape[0] == 1 and len(group) > 1:
                    mask = mask.repeat(len(group))
                for pos in mask.nonzero()[0]:
                    row = group[int(pos)]
                    failures.append(ConstraintFailure(row.clk, row.opcode.name, label))
        return failures


def _continuity_failures(rows: Iterable[TraceRow]) -> List[ConstraintFailure]:
    failures = []
    prev = None
    for row in rows:
        if prev is not None:
            for i in range(STACK_TOP_SIZE):
                if prev.next[i] != row.current[i]:
                    failures.append(ConstraintFailure(
                        row.clk, row.opcode.name, f"continuity: s{i} = s{i}' of step {prev.clk}"
                    ))
        prev = row
    return failures


def verify_trace(trace: ExecutionTrace, batched: bool = True) -> TraceVerification:
    """Check a claimed trace with a fresh evaluator."""
    return ConstraintEvaluator().verify_trace(trace, batched=batched)
