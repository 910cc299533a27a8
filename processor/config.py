"""Execution options."""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Union

DEFAULT_MAX_CYCLES = 1 << 20

# camelCase spellings accepted in JSON option files
_JSON_KEYS = {
    "maxCycles": "max_cycles",
    "recordTrace": "record_trace",
    "verifySteps": "verify_steps",
}


@dataclass(frozen=True)
class ExecutionOptions:
    """Options for one program execution.

    Attributes:
        max_cycles: Maximum number of steps before execution is aborted
        record_trace: Keep a TraceRow for every step
        verify_steps: Check every step against its constraint module as it runs
    """
    max_cycles: int = DEFAULT_MAX_CYCLES
    record_trace: bool = True
    verify_steps: bool = False

    def __post_init__(self) -> None:
        if self.max_cycles <= 0:
            raise ValueError(f"max_cycles must be positive, got {self.max_cycles}")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ExecutionOptions":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in d.items():
            name = _JSON_KEYS.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown execution option: {key}")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "ExecutionOptions":
        """Load options from a JSON file."""
        with open(path) as f:
            return cls.from_dict(json.load(f))
