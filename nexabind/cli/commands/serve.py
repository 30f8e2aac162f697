"""
NexaBind CLI Serve Command
==========================

Preview server. Every request recompiles the template, so edits show up
on reload; a compile error is answered with a 500 and the error text.
"""

from __future__ import annotations

import asyncio
from functools import partial
from pathlib import Path
from typing import Any, Callable, Coroutine, Dict, Optional, Union

import uvicorn

from nexabind.core.config import Config
from nexabind.engine.compiler import compile_file
from nexabind.engine.errors import TemplateError
from nexabind.utils.logger import get_logger

logger = get_logger("nexabind.cli.serve")

Receive = Callable[[], Coroutine[Any, Any, Dict[str, Any]]]
Send = Callable[[Dict[str, Any]], Coroutine[Any, Any, None]]


async def _send_response(
    send: Send,
    status: int,
    body: str,
    content_type: str,
    include_body: bool = True,
) -> None:
    payload = body.encode("utf-8")
    await send({
        "type": "http.response.start",
        "status": status,
        "headers": [
            (b"content-type", content_type.encode()),
            (b"content-length", str(len(payload)).encode()),
            (b"cache-control", b"no-store"),
        ],
    })
    await send({
        "type": "http.response.body",
        "body": payload if include_body else b"",
    })


def create_preview_app(
    source: Union[str, Path],
    config: Optional[Config] = None,
) -> Callable[[Dict[str, Any], Receive, Send], Coroutine[Any, Any, None]]:
    """
    Create the ASGI preview application for ``source``.

    GET and HEAD on any path return the compiled document.
    """
    source = Path(source)
    config = config or Config()

    async def app(scope: Dict[str, Any], receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            while True:
                message = await receive()
                if message["type"] == "lifespan.startup":
                    await send({"type": "lifespan.startup.complete"})
                elif message["type"] == "lifespan.shutdown":
                    await send({"type": "lifespan.shutdown.complete"})
                    return

        if scope["type"] != "http":
            raise ValueError(f"Unknown scope type: {scope['type']}")

        method = scope.get("method", "GET")
        if method not in ("GET", "HEAD"):
            await _send_response(send, 405, "Method Not Allowed", "text/plain; charset=utf-8")
            return

        try:
            # Compilation reads files; keep it off the event loop
            document = await asyncio.get_running_loop().run_in_executor(
                None, partial(compile_file, source, config=config)
            )
        except (TemplateError, OSError) as e:
            logger.error("Preview compilation failed", source=str(source), error=str(e))
            await _send_response(
                send, 500, str(e), "text/plain; charset=utf-8", method != "HEAD"
            )
            return

        await _send_response(
            send, 200, document, "text/html; charset=utf-8", method != "HEAD"
        )

    return app


def run_server(
    source: str,
    host: str = "127.0.0.1",
    port: int = 8000,
    config: Optional[Config] = None,
) -> int:
    """
    Run the preview server.

    Returns:
        Exit code
    """
    path = Path(source)
    if not path.is_file():
        logger.error("Template not found", source=source)
        print(f"Error: template not found: {source}")
        return 1

    print("Starting NexaBind preview server...")
    print(f"  Template: {path}")
    print(f"  URL: http://{host}:{port}")
    print()

    server = uvicorn.Server(
        uvicorn.Config(
            create_preview_app(path, config),
            host=host,
            port=port,
            log_level=str((config or Config()).get("log.level", "info")).lower(),
            lifespan="on",
        )
    )

    try:
        server.run()
    except KeyboardInterrupt:
        print("\nShutting down...")

    return 0
