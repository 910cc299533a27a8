"""Processor - stack machine, execution contexts and the program executor."""

from processor.config import ExecutionOptions
from processor.errors import (
    CycleLimitExceededError,
    DivisionByZeroError,
    DynamicTargetNotFoundError,
    ExecutionError,
    FailedAssertionError,
    InvalidStackDepthOnReturnError,
    MemoryAddressError,
    NotBinaryValueError,
    PrivilegeError,
)
from processor.helpers import NUM_HELPER_REGISTERS, HelperRegisters
from processor.opcodes import OpCode, Operation
from processor.stack import STACK_TOP_SIZE, OperandStack
from processor.trace import ExecutionTrace, TraceFormatError, TraceRow
from processor.context import ContextStack, ExecutionContext
from processor.process import ExecutionResult, Process, execute

__all__ = [
    # Machine state
    "OpCode",
    "Operation",
    "OperandStack",
    "STACK_TOP_SIZE",
    "HelperRegisters",
    "NUM_HELPER_REGISTERS",
    "ExecutionContext",
    "ContextStack",
    # Execution
    "ExecutionOptions",
    "Process",
    "ExecutionResult",
    "execute",
    "ExecutionTrace",
    "TraceRow",
    "TraceFormatError",
    # Errors
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
