"""Main FastMCP server: mounts all sub-servers."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from . import tracing
from .config import get_config
from .tools.code import code_server

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Startup/shutdown hook: configures and flushes tracing."""
    cfg = get_config()
    tracing.setup()
    logger.info(
        "Sandbox ready (max_operations=%d, entry=%s)",
        cfg.max_operations,
        cfg.entry_component,
    )
    yield {}
    tracing.shutdown()
    logger.info("Lifespan shutdown complete")


app = FastMCP(
    "remotion-sandbox",
    instructions=(
        "Safety gate for model-generated Remotion components: allowlist "
        "validation, JSX lowering, and sandboxed frame rendering."
    ),
    lifespan=_lifespan,
)

app.mount(code_server)


def main() -> None:
    """Entry-point for ``remotion-sandbox-mcp`` console script."""
    app.run()


if __name__ == "__main__":
    main()
