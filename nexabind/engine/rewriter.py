"""
NexaBind Tree Rewriter
======================

Rewrites a parsed template in place so that every dynamic region becomes
an addressable anchor, and records what the runtime must do when a
variable changes.

Compilation is two-phase:

1. ``rewrite`` runs the reactive pass over the root unit. Conditionals,
   loops, component calls and expressions are replaced by anchors;
   element bindings are attached to the element's id. Loop bodies and
   component definitions become nested unit skeletons.
2. ``finalize`` rewrites every nested unit exactly once, parents before
   children, with the component-scope pass. Component definitions are
   lifted out and loop bodies are extracted into their own units; the
   rest stays in place for the render-function generator. No anchors are
   minted inside a component because it renders once per call.

Dependencies are only tracked for variables declared before the
expression that uses them; a forward reference yields a value that is
computed once at startup and never updates.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from nexabind.engine.anchors import IdGenerator, js_name, make_anchor
from nexabind.engine.errors import BindingError
from nexabind.engine.pyxm_parser import NodeType, PyxmNode
from nexabind.engine.scanner import scan_identifiers
from nexabind.engine.unit import (
    BoundValueEvent,
    Branch,
    BuildContext,
    ComponentUnit,
    ConditionalEvent,
    InvocationEvent,
    LoopEvent,
    UnitKind,
    UnitState,
    Variable,
    register_component,
)
from nexabind.utils.logger import get_logger

logger = get_logger("nexabind.rewriter")

DECLARATION_PATTERN = re.compile(r"^let\s+([A-Za-z_$][\w$]*)\s*=\s*(.+)$", re.DOTALL)

# (context, sibling sequence, index, enclosing anchor id) -> next index
Handler = Callable[[BuildContext, List[PyxmNode], int, Optional[str]], int]


def parse_declaration(code: str) -> Optional[Tuple[str, str]]:
    """Split "let NAME = EXPR" into (NAME, EXPR); None for other code."""
    match = DECLARATION_PATTERN.match(code.strip())
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def static_ids(nodes: Iterable[PyxmNode]) -> Set[str]:
    """Literal ``id`` attribute values anywhere in ``nodes``."""
    found: Set[str] = set()
    for node in nodes:
        for descendant in node.walk():
            value = descendant.attributes.get("id")
            if isinstance(value, str):
                found.add(value)
    return found


def loop_component_name(loop_id: str) -> str:
    """Name of the nested unit that renders one loop item."""
    return f"each_{js_name(loop_id)}"


class Rewriter:
    """
    Rewrites component units.

    Example:
        rewriter = Rewriter(CounterIds())
        rewriter.compile(unit)
        unit.variable_events  # {"count": ["nb1", ...]}
    """

    def __init__(self, ids: IdGenerator) -> None:
        self.ids = ids
        # Ids written in the template; minted ids skip them
        self.reserved: Set[str] = set()
        self._handlers: Dict[NodeType, Handler] = {
            NodeType.FOR: self._rewrite_loop,
            NodeType.COMPONENT: self._rewrite_definition,
            NodeType.CALL: self._rewrite_call,
            NodeType.IF: self._rewrite_conditional,
            NodeType.CODE: self._rewrite_code,
            NodeType.ELEMENT: self._rewrite_element,
        }

    def compile(self, unit: ComponentUnit) -> None:
        """Run both phases on ``unit`` and everything nested in it."""
        if unit.kind == UnitKind.ROOT:
            self.rewrite(unit)
        else:
            self.rewrite_component(unit)
        self.finalize(unit)

    def rewrite(self, unit: ComponentUnit) -> None:
        """Phase 1: reactive pass over a root unit."""
        unit.advance(UnitState.REWRITING)
        self.reserved |= static_ids(unit.tree)
        context = unit.new_context()
        self._rewrite_block(context, unit.tree, None)
        unit.absorb(context)
        unit.advance(UnitState.REWRITTEN)

        logger.debug(
            "Rewrote unit",
            unit=unit.name,
            variables=len(unit.variables),
            components=len(unit.components),
        )

    def rewrite_component(self, unit: ComponentUnit) -> None:
        """Component-scope pass over a nested unit."""
        unit.advance(UnitState.REWRITING)
        self.reserved |= static_ids(unit.tree)
        context = unit.new_context()
        self._rewrite_scope(context, unit.tree, list(unit.params))
        unit.absorb(context)
        unit.advance(UnitState.REWRITTEN)

    def _mint(self) -> str:
        """Next generated id that does not clash with a template id."""
        anchor_id = self.ids()
        while anchor_id in self.reserved:
            anchor_id = self.ids()
        return anchor_id

    def finalize(self, unit: ComponentUnit) -> None:
        """Phase 2: rewrite nested units, parents before children."""
        for nested in unit.components:
            self.rewrite_component(nested)
            self.finalize(nested)

    # ------------------------------------------------------------------
    # Reactive pass
    # ------------------------------------------------------------------

    def _rewrite_block(
        self,
        context: BuildContext,
        nodes: List[PyxmNode],
        anchor_id: Optional[str],
    ) -> None:
        # Handlers splice and delete, so the length is re-read every step
        i = 0
        while i < len(nodes):
            handler = self._handlers.get(nodes[i].type)
            if handler is None:
                i += 1
            else:
                i = handler(context, nodes, i, anchor_id)

    def _rewrite_loop(
        self,
        context: BuildContext,
        nodes: List[PyxmNode],
        index: int,
        anchor_id: Optional[str],
    ) -> int:
        node = nodes[index]

        if anchor_id is not None and len(nodes) == 1:
            # Sole child: render straight into the enclosing anchor
            loop_id = anchor_id
            del nodes[index]
            next_index = index
        else:
            loop_id = self._mint()
            nodes[index] = make_anchor(loop_id, [])
            next_index = index + 1

        name = loop_component_name(loop_id)
        context.loops.append(LoopEvent(loop_id, node.source, list(node.params), name))
        context.track(node.source, loop_id, scan_identifiers(node.source))
        register_component(
            context, ComponentUnit.component(name, node.params, node.children)
        )

        logger.debug("Bound loop", id=loop_id, source=node.source, component=name)
        return next_index

    def _rewrite_definition(
        self,
        context: BuildContext,
        nodes: List[PyxmNode],
        index: int,
        anchor_id: Optional[str],
    ) -> int:
        node = nodes[index]
        register_component(
            context, ComponentUnit.component(node.tag, node.params, node.children)
        )
        # Definitions produce no markup where they are written
        del nodes[index]

        logger.debug("Registered component", component=node.tag, params=node.params)
        return index

    def _rewrite_call(
        self,
        context: BuildContext,
        nodes: List[PyxmNode],
        index: int,
        anchor_id: Optional[str],
    ) -> int:
        node = nodes[index]
        call_id = self._mint()
        nodes[index] = make_anchor(call_id, [])

        dependent = context.track(node.args, call_id, scan_identifiers(node.args))
        context.invocations.append(
            InvocationEvent(call_id, node.tag, node.args, variable_dependent=dependent)
        )

        logger.debug("Bound component call", id=call_id, component=node.tag, dependent=dependent)
        return index + 1

    def _rewrite_conditional(
        self,
        context: BuildContext,
        nodes: List[PyxmNode],
        index: int,
        anchor_id: Optional[str],
    ) -> int:
        node = nodes[index]
        has_alternate = node.alternate is not None

        true_id = self._mint()
        false_id = self._mint() if has_alternate else None
        event_id = self._mint()

        branches = [Branch(True, true_id)]
        nodes[index] = make_anchor(true_id, node.children, hidden=True)
        next_index = index + 1

        if has_alternate:
            nodes.insert(index, make_anchor(false_id, node.alternate, hidden=True))
            branches.append(Branch(False, false_id))
            next_index = index + 2

        context.conditionals.append(ConditionalEvent(event_id, node.condition, branches))
        context.track(node.condition, event_id, scan_identifiers(node.condition))

        logger.debug("Bound conditional", id=event_id, test=node.condition)

        # Branch content is visited once here; the anchors are skipped below
        self._rewrite_block(context, node.children, true_id)
        if has_alternate:
            self._rewrite_block(context, node.alternate, false_id)

        return next_index

    def _rewrite_code(
        self,
        context: BuildContext,
        nodes: List[PyxmNode],
        index: int,
        anchor_id: Optional[str],
    ) -> int:
        node = nodes[index]

        declaration = parse_declaration(node.content)
        if declaration is not None:
            name, value = declaration
            context.variables.append(Variable(name, value))
            logger.debug("Declared variable", name=name)
            return index + 1

        bound_id = self._mint()
        nodes[index] = make_anchor(bound_id, [])
        context.bound_values.append(BoundValueEvent(bound_id, node.content))
        context.track(node.content, bound_id, scan_identifiers(node.content))

        logger.debug("Bound expression", id=bound_id, expression=node.content)
        return index + 1

    def _rewrite_element(
        self,
        context: BuildContext,
        nodes: List[PyxmNode],
        index: int,
        anchor_id: Optional[str],
    ) -> int:
        node = nodes[index]

        if node.bindings:
            element_id = self._element_anchor(node)
            for attr, expression in node.bindings.items():
                context.bound_values.append(BoundValueEvent(element_id, expression, attr))
                context.track(expression, element_id, scan_identifiers(expression))
            node.attributes["id"] = element_id

            logger.debug("Bound attributes", id=element_id, attributes=list(node.bindings))

        existing = node.attributes.get("id")
        self._rewrite_block(
            context, node.children, existing if isinstance(existing, str) else None
        )
        return index + 1

    def _element_anchor(self, node: PyxmNode) -> str:
        """Reuse the element's static id, or mint one."""
        if "id" in node.bindings:
            raise BindingError(
                f"<{node.tag}> at line {node.line}: the id attribute cannot be bound"
            )

        existing = node.attributes.get("id")
        if existing is None:
            return self._mint()
        if not isinstance(existing, str) or not existing.strip():
            raise BindingError(
                f"<{node.tag}> at line {node.line}: bound elements need a non-empty id"
            )
        return existing

    # ------------------------------------------------------------------
    # Component-scope pass
    # ------------------------------------------------------------------

    def _rewrite_scope(
        self,
        context: BuildContext,
        nodes: List[PyxmNode],
        scope: List[str],
    ) -> None:
        """
        Lift definitions and extract loop bodies inside a component.

        ``scope`` lists the names visible to generated code at this point:
        parameters plus ``let`` locals. Conditional branches get a copy
        because each branch is its own block in the render function.
        """
        i = 0
        while i < len(nodes):
            node = nodes[i]

            if node.type == NodeType.COMPONENT:
                register_component(
                    context, ComponentUnit.component(node.tag, node.params, node.children)
                )
                del nodes[i]
                continue

            if node.type == NodeType.FOR:
                self._extract_loop_body(context, node, scope)
            elif node.type == NodeType.CODE:
                declaration = parse_declaration(node.content)
                if declaration is not None and declaration[0] not in scope:
                    scope.append(declaration[0])
            elif node.type == NodeType.IF:
                self._rewrite_scope(context, node.children, list(scope))
                if node.alternate is not None:
                    self._rewrite_scope(context, node.alternate, list(scope))
            else:
                for block in node.blocks():
                    self._rewrite_scope(context, block, scope)

            i += 1

    def _extract_loop_body(
        self,
        context: BuildContext,
        node: PyxmNode,
        scope: List[str],
    ) -> None:
        """Move a loop body into its own unit and call it once per item."""
        name = loop_component_name(self._mint())
        params = [n for n in scope if n not in node.params] + list(node.params)

        register_component(context, ComponentUnit.component(name, params, node.children))
        node.children = [
            PyxmNode(
                type=NodeType.CALL,
                tag=name,
                args=", ".join(params),
                line=node.line,
                column=node.column,
            )
        ]
