"""
NexaBind CLI Build Command
==========================

Compile a template into a standalone HTML document.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from nexabind.core.config import Config
from nexabind.engine.compiler import compile_file
from nexabind.utils.logger import get_logger

logger = get_logger("nexabind.cli.build")


def build_document(
    source: str,
    output: str = "index.html",
    overrides: Optional[Dict[str, Any]] = None,
    config: Optional[Config] = None,
) -> int:
    """
    Compile ``source`` and write the document.

    Args:
        source: Template file
        output: Output file; parent directories are created
        overrides: Initial variable values replacing the declared ones
        config: Configuration

    Returns:
        Exit code
    """
    document = compile_file(source, overrides, config=config)

    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(document, encoding="utf-8")

    logger.info("Wrote document", source=source, output=str(output_path), size=len(document))
    print(f"✓ Built {output_path}")
    return 0
