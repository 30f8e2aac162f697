"""
NexaBind CLI Inspect Command
============================

Print what the compiler derived from a template: variables, the
dependency graph, recorded events and nested component units.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import orjson

from nexabind.core.config import Config
from nexabind.engine.compiler import Compiler, template_loader


def inspect_template(source: str, config: Optional[Config] = None) -> int:
    """
    Compile ``source`` and print its unit hierarchy as JSON.

    Returns:
        Exit code
    """
    config = config or Config()
    path = Path(source)

    compiler = Compiler(path.stem, config=config, loader=template_loader(config, path))
    compiler.parse_file(path)

    print(orjson.dumps(compiler.describe(), option=orjson.OPT_INDENT_2).decode("utf-8"))
    return 0
