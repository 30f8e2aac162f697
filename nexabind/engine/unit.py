"""
NexaBind Component Units
========================

Data model shared by the rewriter and the runtime emitter.

A ``ComponentUnit`` is one independently compiled sub-tree: the root
document, a loop body, or a named component. The rewriter fills a
``BuildContext`` while it walks the unit's tree and merges it into the
unit with ``ComponentUnit.absorb``; nested units are registered in the
context and become the unit's children.

Lifecycle (compile time only):
    UNPARSED -> REWRITING -> REWRITTEN -> EMITTED
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional

from nexabind.engine.errors import UnitStateError
from nexabind.engine.pyxm_parser import PyxmNode

# Variable name -> event ids to invoke, in registration order
DependencyGraph = Dict[str, List[str]]


class UnitKind(str, Enum):
    """Kinds of compilation unit."""
    ROOT = "root"
    COMPONENT = "component"


class UnitState(str, Enum):
    """Compile-time lifecycle of a unit."""
    UNPARSED = "unparsed"
    REWRITING = "rewriting"
    REWRITTEN = "rewritten"
    EMITTED = "emitted"


_TRANSITIONS = {
    UnitState.UNPARSED: UnitState.REWRITING,
    UnitState.REWRITING: UnitState.REWRITTEN,
    UnitState.REWRITTEN: UnitState.EMITTED,
}


@dataclass
class Variable:
    """A declared variable; ``value`` is None for component parameters."""
    name: str
    value: Optional[str] = None


@dataclass
class Branch:
    """Show ``anchor_id`` when the condition evaluates to ``equals``."""
    equals: bool
    anchor_id: str


@dataclass
class ConditionalEvent:
    """Toggles branch anchors from a test expression."""
    id: str
    expression: str
    branches: List[Branch] = field(default_factory=list)


@dataclass
class BoundValueEvent:
    """
    Recomputes one slot of an anchor.

    ``attr`` is the attribute name, or None for the anchor's content.
    """
    id: str
    expression: str
    attr: Optional[str] = None


@dataclass
class LoopEvent:
    """Re-renders an anchor by mapping ``source`` through a nested unit."""
    id: str
    source: str
    params: List[str]
    component: str


@dataclass
class InvocationEvent:
    """Renders a component call into an anchor."""
    id: str
    component: str
    args: str
    variable_dependent: bool = False


@dataclass
class BuildContext:
    """
    Mutable tables filled during one rewrite pass over one unit.

    Each unit gets its own context; nothing here is shared between units.
    """
    variables: List[Variable] = field(default_factory=list)
    conditionals: List[ConditionalEvent] = field(default_factory=list)
    bound_values: List[BoundValueEvent] = field(default_factory=list)
    loops: List[LoopEvent] = field(default_factory=list)
    invocations: List[InvocationEvent] = field(default_factory=list)
    variable_events: DependencyGraph = field(default_factory=dict)
    components: List["ComponentUnit"] = field(default_factory=list)

    def is_variable(self, name: str) -> bool:
        """Check if ``name`` has been declared so far in this pass."""
        return any(v.name == name for v in self.variables)

    def track(self, expression: str, event_id: str, tokens: List[str]) -> bool:
        """
        Register ``event_id`` under every declared variable in ``tokens``.

        Returns:
            True if at least one token named a variable
        """
        dependent = False
        for token in tokens:
            if self.is_variable(token):
                record_dependency(self.variable_events, token, event_id)
                dependent = True
        return dependent


@dataclass
class ComponentUnit:
    """
    One compilation unit.

    Attributes:
        name: Unit name; nested units are emitted as ``c_<name>``
        kind: ROOT or COMPONENT
        tree: Node sequence rewritten in place
        variables: Declared variables (root) or positional parameters
    """
    name: str
    kind: UnitKind = UnitKind.ROOT
    tree: List[PyxmNode] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)
    conditionals: List[ConditionalEvent] = field(default_factory=list)
    bound_values: List[BoundValueEvent] = field(default_factory=list)
    loops: List[LoopEvent] = field(default_factory=list)
    invocations: List[InvocationEvent] = field(default_factory=list)
    variable_events: DependencyGraph = field(default_factory=dict)
    components: List["ComponentUnit"] = field(default_factory=list)
    state: UnitState = UnitState.UNPARSED

    @classmethod
    def component(cls, name: str, params: List[str], tree: List[PyxmNode]) -> "ComponentUnit":
        """Create a nested unit skeleton whose variables are its parameters."""
        return cls(
            name=name,
            kind=UnitKind.COMPONENT,
            tree=tree,
            variables=[Variable(p) for p in params],
        )

    @property
    def params(self) -> List[str]:
        return [v.name for v in self.variables]

    def advance(self, target: UnitState) -> None:
        """Move to ``target``; only the next state in the lifecycle is allowed."""
        if _TRANSITIONS.get(self.state) != target:
            raise UnitStateError(
                f"Unit '{self.name}' cannot move from {self.state.value} to {target.value}"
            )
        self.state = target

    def new_context(self) -> BuildContext:
        """Start a build context seeded with this unit's known variables."""
        return BuildContext(variables=list(self.variables))

    def absorb(self, context: BuildContext) -> None:
        """Merge a finished build context into this unit."""
        self.variables = context.variables
        self.conditionals = context.conditionals
        self.bound_values = context.bound_values
        self.loops = context.loops
        self.invocations = context.invocations
        self.variable_events = context.variable_events
        self.components = context.components


def record_dependency(graph: DependencyGraph, name: str, event_id: str) -> None:
    """Append ``event_id`` to the events of ``name``; duplicates are kept."""
    graph.setdefault(name, []).append(event_id)


def register_component(context: BuildContext, nested: ComponentUnit) -> None:
    """Register a nested unit in discovery order."""
    context.components.append(nested)


def all_units(unit: ComponentUnit) -> Iterator[ComponentUnit]:
    """Yield ``unit`` and every nested unit, depth first, in discovery order."""
    yield unit
    for nested in unit.components:
        yield from all_units(nested)
