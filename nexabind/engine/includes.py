"""
NexaBind Template Loading
=========================

Template loaders and include pre-resolution.

Includes are spliced before any rewriting happens, so the compiler only
ever sees one tree. Loaders implement ``get_source(name)`` and return a
``(source, filename)`` pair; ``filename`` is None when the template is
not file backed.

Example:
    loader = FileSystemLoader("templates")
    resolve_includes(ast.nodes, loader)
"""

from __future__ import annotations

from difflib import get_close_matches
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from nexabind.engine.errors import IncludeCycleError, TemplateNotFoundError
from nexabind.engine.pyxm_parser import NodeType, PyxmAST, PyxmNode, parse_template
from nexabind.utils.logger import get_logger

logger = get_logger("nexabind.includes")

TEMPLATE_EXTENSION = ".pyxm"

# (source, name) -> parsed template
ParseSource = Callable[[str, str], PyxmAST]


class FileSystemLoader:
    """
    Template loader with directory-based lookup.

    Directories are searched in order and the first match wins. A name
    without an extension also matches ``<name>.pyxm``.

    Example:
        loader = FileSystemLoader(["templates", "shared"])
        source, filename = loader.get_source("partials/nav")
    """

    def __init__(
        self,
        paths: Union[str, Path, Sequence[Union[str, Path]]],
        encoding: str = "utf-8",
    ) -> None:
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self.paths: List[Path] = [Path(p) for p in paths]
        self.encoding = encoding

    def resolve(self, name: str) -> Optional[Path]:
        """
        Resolve template name to file path.

        Returns:
            Path to the template file, or None if not found
        """
        for base in self.paths:
            full_path = base / name
            if full_path.is_file():
                return full_path

            # Try with .pyxm extension
            if not name.endswith(TEMPLATE_EXTENSION):
                full_path = base / f"{name}{TEMPLATE_EXTENSION}"
                if full_path.is_file():
                    return full_path

        return None

    def get_source(self, name: str) -> Tuple[str, Optional[str]]:
        """Load template source from the filesystem."""
        path = self.resolve(name)
        if path is None:
            raise TemplateNotFoundError(
                f"Template '{name}' not found in: {', '.join(str(p) for p in self.paths)}"
            )
        return path.read_text(self.encoding), str(path)

    def list_templates(self) -> List[str]:
        """List all templates in search paths."""
        templates = set()
        for base in self.paths:
            if base.is_dir():
                for path in base.rglob(f"*{TEMPLATE_EXTENSION}"):
                    templates.add(path.relative_to(base).as_posix())
        return sorted(templates)


class DictLoader:
    """In-memory templates, mostly for tests and embedded snippets."""

    def __init__(self, mapping: Dict[str, str]) -> None:
        self.mapping = mapping

    def get_source(self, name: str) -> Tuple[str, Optional[str]]:
        if name not in self.mapping:
            message = f"Template '{name}' not found"
            matches = get_close_matches(name, sorted(self.mapping), n=1, cutoff=0.6)
            if matches:
                message += f". Did you mean '{matches[0]}'?"
            raise TemplateNotFoundError(message)
        return self.mapping[name], None

    def list_templates(self) -> List[str]:
        return sorted(self.mapping)


def resolve_includes(
    nodes: List[PyxmNode],
    loader,
    parse_source: ParseSource = parse_template,
    stack: Tuple[str, ...] = (),
) -> None:
    """
    Replace every INCLUDE node, at any depth, with the included nodes.

    Included templates are resolved recursively before they are spliced.

    Args:
        nodes: Node sequence modified in place
        loader: Object with ``get_source(name)``; may be None when the
            tree holds no includes
        parse_source: Parser for included sources
        stack: Names currently being included

    Raises:
        TemplateNotFoundError: If no loader is set or the name is unknown
        IncludeCycleError: If a template includes itself, directly or not
    """
    i = 0
    while i < len(nodes):
        node = nodes[i]

        if node.type != NodeType.INCLUDE:
            for block in node.blocks():
                resolve_includes(block, loader, parse_source, stack)
            i += 1
            continue

        name = node.content or ""
        if name in stack:
            chain = " -> ".join(stack + (name,))
            raise IncludeCycleError(f"Include cycle: {chain}")
        if loader is None:
            raise TemplateNotFoundError(
                f"Cannot include '{name}' at line {node.line}: no template loader configured"
            )

        source, filename = loader.get_source(name)
        included = parse_source(source, filename or name).nodes
        resolve_includes(included, loader, parse_source, stack + (name,))

        nodes[i:i + 1] = included
        i += len(included)

        logger.debug("Included template", template=name, nodes=len(included))
