"""Execution-time errors.

Every execution error is fatal: it halts the running context chain and is
never retried. Errors raised by operation handlers are located (step index and
opcode) by the executor before they propagate.
"""

from typing import Any, Dict, Optional


class ExecutionError(Exception):
    """Fatal fault while executing a program."""

    code = "execution_error"

    def __init__(self, message: str, clk: Optional[int] = None, opcode: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.clk = clk
        self.opcode = opcode

    def at(self, clk: int, opcode: str) -> "ExecutionError":
        """Attach the failing step location if not already set."""
        if self.clk is None:
            self.clk = clk
            self.opcode = opcode
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "clk": self.clk,
            "opcode": self.opcode,
        }

    def __str__(self) -> str:
        if self.clk is None:
            return self.message
        return f"step {self.clk} ({self.opcode}): {self.message}"


class DivisionByZeroError(ExecutionError):
    code = "division_by_zero"


class NotBinaryValueError(ExecutionError):
    code = "not_binary_value"


class DynamicTargetNotFoundError(ExecutionError):
    code = "dynamic_target_not_found"


class FailedAssertionError(ExecutionError):
    code = "failed_assertion"


class InvalidStackDepthOnReturnError(ExecutionError):
    code = "invalid_stack_depth_on_return"


class PrivilegeError(ExecutionError):
    code = "privilege_violation"


class MemoryAddressError(ExecutionError):
    code = "memory_address_out_of_bounds"


class CycleLimitExceededError(ExecutionError):
    code = "cycle_limit_exceeded"


__all__ = [
    "ExecutionError",
    "DivisionByZeroError",
    "NotBinaryValueError",
    "DynamicTargetNotFoundError",
    "FailedAssertionError",
    "InvalidStackDepthOnReturnError",
    "PrivilegeError",
    "MemoryAddressError",
    "CycleLimitExceededError",
]
