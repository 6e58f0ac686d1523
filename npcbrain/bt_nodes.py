"""Behaviour-tree status values, tick context and the composite and decorator nodes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .blackboard import Blackboard


class BTError(ValueError):
    """A behaviour tree could not be built or ticked."""


class Status(Enum):
    """Result of ticking a node."""

    SUCCESS = 0
    FAILURE = 1
    RUNNING = 2

    def __str__(self) -> str:
        return self.name.capitalize()


@dataclass
class Context:
    """What every node sees while ticking: the NPC's blackboard and the frame time in seconds."""

    bb: Blackboard
    delta_time: float = 0.0


class Node(ABC):
    """A behaviour-tree node."""

    @abstractmethod
    def tick(self, ctx: Context) -> Status:
        """Run the node once and report its status."""


@dataclass
class Sequence(Node):
    """Ticks children in order; stops at the first that does not succeed."""

    children: list[Node] = field(default_factory=list)

    def tick(self, ctx: Context) -> Status:
        for child in self.children:
            status = child.tick(ctx)
            if status is not Status.SUCCESS:
                return status
        return Status.SUCCESS


@dataclass
class Selector(Node):
    """Ticks children in order; stops at the first that does not fail."""

    children: list[Node] = field(default_factory=list)

    def tick(self, ctx: Context) -> Status:
        for child in self.children:
            status = child.tick(ctx)
            if status is not Status.FAILURE:
                return status
        return Status.FAILURE


class ParallelPolicy(Enum):
    """How a parallel node turns its children's results into one."""

    REQUIRE_ALL = 0
    REQUIRE_ONE = 1


@dataclass
class Parallel(Node):
    """Ticks every child and combines the results according to its policy."""

    children: list[Node] = field(default_factory=list)
    policy: ParallelPolicy = ParallelPolicy.REQUIRE_ALL

    def tick(self, ctx: Context) -> Status:
        results = [child.tick(ctx) for child in self.children]
        successes = results.count(Status.SUCCESS)
        failures = results.count(Status.FAILURE)

        if self.policy is ParallelPolicy.REQUIRE_ALL:
            if failures:
                return Status.FAILURE
            if successes == len(self.children):
                return Status.SUCCESS
            return Status.RUNNING
        if self.policy is ParallelPolicy.REQUIRE_ONE:
            if successes:
                return Status.SUCCESS
            if failures == len(self.children):
                return Status.FAILURE
            return Status.RUNNING
        return Status.FAILURE


@dataclass
class Inverter(Node):
    """Swaps success and failure of its child; running passes through."""

    child: Optional[Node] = None

    def tick(self, ctx: Context) -> Status:
        if self.child is None:
            raise BTError("bt: inverter has no child node")
        status = self.child.tick(ctx)
        if status is Status.SUCCESS:
            return Status.FAILURE
        if status is Status.FAILURE:
            return Status.SUCCESS
        return status