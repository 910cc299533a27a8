"""Execution trace: the claimed record a verifier checks.

Each executed step contributes one TraceRow holding the stack window before and
after the operation plus the helper registers the executor supplied. Values
are stored as canonical ints so traces can be serialised and re-checked later
without trusting the executor that produced them.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Union

from primitives.field import GOLDILOCKS_PRIME
from processor.helpers import NUM_HELPER_REGISTERS
from processor.opcodes import OpCode, Operation
from processor.stack import STACK_TOP_SIZE


class TraceFormatError(ValueError):
    """A serialised trace could not be read back into rows."""

    code = "malformed_trace"


@dataclass(frozen=True)
class TraceRow:
    """One instruction step.

    Attributes:
        clk: Step index within the whole execution
        ctx: Id of the execution context the step ran in
        operation: Executed operation
        current: Stack window before the step, top first
        next: Stack window after the step, top first
        helpers: Helper register values supplied for the step
    """
    clk: int
    ctx: int
    operation: Operation
    current: tuple
    next: tuple
    helpers: tuple = field(default=(0,) * NUM_HELPER_REGISTERS)

    def __post_init__(self) -> None:
        if len(self.current) != STACK_TOP_SIZE or len(self.next) != STACK_TOP_SIZE:
            raise ValueError(f"trace row {self.clk}: stack windows must have {STACK_TOP_SIZE} elements")
        if len(self.helpers) != NUM_HELPER_REGISTERS:
            raise ValueError(f"trace row {self.clk}: expected {NUM_HELPER_REGISTERS} helper values")
        for v in (*self.current, *self.next, *self.helpers):
            if not 0 <= v < GOLDILOCKS_PRIME:
                raise ValueError(f"trace row {self.clk}: {v} is not a canonical field element")

    @property
    def opcode(self) -> OpCode:
        return self.operation.opcode

    def to_dict(self) -> Dict:
        return {
            "clk": self.clk,
            "ctx": self.ctx,
            "op": self.operation.opcode.name,
            "imm": [str(v) for v in self.operation.imm],
            "current": [str(v) for v in self.current],
            "next": [str(v) for v in self.next],
            "helpers": [str(v) for v in self.helpers],
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "TraceRow":
        op = Operation(OpCode[d["op"]], tuple(int(v) for v in d.get("imm", [])))
        return cls(
            clk=int(d["clk"]),
            ctx=int(d.get("ctx", 0)),
            operation=op,
            current=tuple(int(v) for v in d["current"]),
            next=tuple(int(v) for v in d["next"]),
            helpers=tuple(int(v) for v in d.get("helpers", [0] * NUM_HELPER_REGISTERS)),
        )


@dataclass
class ExecutionTrace:
    """Ordered list of trace rows produced by one program execution."""
    rows: List[TraceRow] = field(default_factory=list)

    def append(self, row: TraceRow) -> None:
        self.rows.append(row)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[TraceRow]:
        return iter(self.rows)

    def __getitem__(self, i: int) -> TraceRow:
        return self.rows[i]

    # Values are written as decimal strings since they exceed JSON's safe integer range

    def to_json(self) -> str:
        return json.dumps({"rows": [r.to_dict() for r in self.rows]}, indent=1)

    @classmethod
    def from_json(cls, text: str) -> "ExecutionTrace":
        """Parse a trace written by to_json.

        Raises:
            TraceFormatError: If the text is not a well-formed trace
        """
        try:
            j = json.loads(text)
            rows = [TraceRow.from_dict(r) for r in j["rows"]]
        except (KeyError, TypeError, ValueError) as e:
            raise TraceFormatError(f"malformed trace: {e}") from e
        return cls(rows=rows)

    def save(self, path: Union[str, Path]) -> None:
        Path(path).write_text(self.to_json())

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ExecutionTrace":
        return cls.from_json(Path(path).read_text())
