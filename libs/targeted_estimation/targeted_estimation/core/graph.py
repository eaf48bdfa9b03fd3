"""Deferred computation graph.

A :class:`Node` wraps an operation and the nodes it depends on. Calling a
node evaluates its parents depth-first and memoizes the result, so a value
shared by several downstream computations is only computed once. Functions
decorated with :func:`lazy` accept either realized values or nodes: as soon
as one positional argument is a node the call is deferred and a new node is
returned instead of a value.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any

__all__ = ["Node", "source", "node", "lazy", "is_node"]

_UNSET = object()


class Node:
    """A value that is computed on demand from its parent nodes."""

    def __init__(self, operation: Callable[..., Any], *parents: Node, name: str | None = None):
        for parent in parents:
            if not isinstance(parent, Node):
                raise TypeError(
                    f"Node parents must be nodes, got {type(parent).__name__}"
                )
        self.operation = operation
        self.parents = parents
        self.name = name or getattr(operation, "__name__", "node")
        self._value: Any = _UNSET

    def __call__(self) -> Any:
        if self._value is _UNSET:
            inputs = [parent() for parent in self.parents]
            self._value = self.operation(*inputs)
        return self._value

    @property
    def is_evaluated(self) -> bool:
        return self._value is not _UNSET

    def reset(self) -> None:
        """Forget memoized values of this node and all its ancestors."""
        self._value = _UNSET
        for parent in self.parents:
            parent.reset()

    def __repr__(self) -> str:
        state = "evaluated" if self.is_evaluated else "pending"
        return f"Node({self.name}, parents={len(self.parents)}, {state})"


class Source(Node):
    """A node holding already realized data."""

    def __init__(self, value: Any, name: str = "source"):
        super().__init__(lambda: value, name=name)
        self._data = value
        self._value = value

    def reset(self) -> None:
        self._value = self._data


def source(value: Any, name: str = "source") -> Source:
    """Wrap realized data in a node."""
    return Source(value, name=name)


def node(operation: Callable[..., Any], *parents: Node) -> Node:
    """Build a node applying ``operation`` to the values of ``parents``."""
    return Node(operation, *parents)


def is_node(value: Any) -> bool:
    return isinstance(value, Node)


def lazy(function: Callable[..., Any]) -> Callable[..., Any]:
    """Let ``function`` accept nodes in place of its positional arguments.

    Non-node positional arguments and all keyword arguments are captured as
    constants of the deferred operation.
    """

    @functools.wraps(function)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if not any(isinstance(arg, Node) for arg in args):
            return function(*args, **kwargs)

        node_positions = [i for i, arg in enumerate(args) if isinstance(arg, Node)]

        def operation(*values: Any) -> Any:
            realized = list(args)
            for position, value in zip(node_positions, values):
                realized[position] = value
            return function(*realized, **kwargs)

        return Node(operation, *(args[i] for i in node_positions), name=function.__name__)

    return wrapper
