"""Constraint-verification errors.

These are reported by a checker against a claimed execution record, not by
the live executor.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

# Label reported for a row whose operation has no usable constraint module
MALFORMED_OPERATION = "malformed operation"


@dataclass(frozen=True)
class ConstraintFailure:
    """One constraint that did not evaluate to zero.

    Attributes:
        clk: Step index of the failing row
        opcode: Name of the executed operation
        constraint: Label of the failing constraint (e.g. "s0' = s0 + s1")
    """
    clk: int
    opcode: str
    constraint: str

    def __str__(self) -> str:
        return f"step {self.clk} ({self.opcode}): {self.constraint}"


class TraceRejectedError(Exception):
    """A claimed trace failed verification."""

    code = "trace_rejected"

    def __init__(self, failures: List[ConstraintFailure]) -> None:
        self.failures = list(failures)
        first = self.failures[0] if self.failures else None
        summary = f"{len(self.failures)} constraint failure(s)"
        if first is not None:
            summary += f", first at {first}"
        super().__init__(summary)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "failures": [
                {"clk": f.clk, "opcode": f.opcode, "constraint": f.constraint}
                for f in self.failures
            ],
        }
