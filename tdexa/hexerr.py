"""Errors tagged with the architectural layer and the kind of failure."""

from __future__ import annotations

import traceback
from enum import IntEnum


class Layer(IntEnum):
    """Architectural layer an error was raised in."""

    INTERFACE = 1
    APPLICATION = 2
    DOMAIN = 3
    INFRASTRUCTURE = 4


class Code(IntEnum):
    """Kind of failure an error describes."""

    ENTITY_NOT_FOUND = 1
    FORBIDDEN = 2
    INVALID_ARGUMENTS = 3
    INTERNAL = 4
    INVALID_REQUEST = 5
    UNIQUE_CONSTRAINT_VIOLATION = 6


class HexagonalError(Exception):
    """An error carrying its layer, code, origin and the stack it was created on."""

    def __init__(
        self,
        layer: Layer,
        code: Code,
        message: str,
        thrown_at_line: str = "",
        stack: list[traceback.FrameSummary] | None = None,
    ) -> None:
        super().__init__(message)
        self.layer = Layer(layer)
        self.code = Code(code)
        self.message = message
        self.thrown_at_line = thrown_at_line
        self.stack = list(stack or [])

    def __str__(self) -> str:
        return self.message

    def details(self) -> str:
        """Return the message with its code, layer and origin."""
        return (
            f"error: {self.message}, code: {int(self.code)}, "
            f"layer: {int(self.layer)}, at: {self.thrown_at_line}"
        )

    def stack_trace(self) -> str:
        """Return the message followed by the stack it was created on."""
        return f"error: {self.message}\n" + "".join(traceback.format_list(self.stack))


def _new(layer: Layer, code: Code, message: str) -> HexagonalError:
    # Drop this helper's frame and the public factory's frame.
    stack = traceback.extract_stack()[:-2]
    caller = stack[-1] if stack else None
    thrown_at = f"{caller.filename}:{caller.lineno}" if caller else ""
    return HexagonalError(layer, code, message, thrown_at, stack)


def interface_layer_error(code: Code, message: str) -> HexagonalError:
    """Create an error raised in the interface layer."""
    return _new(Layer.INTERFACE, code, message)


def application_layer_error(code: Code, message: str) -> HexagonalError:
    """Create an error raised in the application layer."""
    return _new(Layer.APPLICATION, code, message)


def domain_layer_error(code: Code, message: str) -> HexagonalError:
    """Create an error raised in the domain layer."""
    return _new(Layer.DOMAIN, code, message)


def infrastructure_layer_error(code: Code, message: str) -> HexagonalError:
    """Create an error raised in the infrastructure layer."""
    return _new(Layer.INFRASTRUCTURE, code, message)