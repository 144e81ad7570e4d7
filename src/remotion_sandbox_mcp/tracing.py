"""Optional MLflow tracing for the sandbox pipeline.

Two layers:

1. **Tool spans**: ``trace()`` wraps MCP tool entrypoints as ``TOOL``
   root spans.
2. **Stage spans**: ``stage()`` opens a child span around validation,
   lowering, execution and frame rendering, tagged with sizes and
   outcome counts. Rejected source text never becomes a span attribute.

``mlflow-tracing`` is an optional extra; without it both layers are no-ops.

Env vars (all optional):
    MLFLOW_TRACKING_URI: Where to store traces. Empty = tracing disabled.
    MLFLOW_EXPERIMENT_NAME: Experiment name (default ``remotion-sandbox-mcp``).
    SANDBOX_TRACING_ENABLED: Set to ``"false"`` to force-disable even with a URI.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)

try:
    import mlflow

    _HAS_MLFLOW = True
except ImportError:
    _HAS_MLFLOW = False


def is_enabled() -> bool:
    """Return True when mlflow-tracing is installed and tracing is configured on."""
    if not _HAS_MLFLOW:
        return False
    from .config import get_config

    return get_config().tracing_enabled


def trace(
    func: Callable | None = None,
    *,
    name: str | None = None,
    span_type: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Callable:
    """``@mlflow.trace`` when tracing is on, otherwise the identity decorator.

    Decided once, at decoration time.
    """
    if not is_enabled():
        return func if func is not None else (lambda f: f)
    return mlflow.trace(func, name=name, span_type=span_type, attributes=attributes)


@contextmanager
def stage(name: str, span_type: str = "CHAIN", **attributes: Any) -> Iterator[Any]:
    """Child span around one pipeline stage. Yields the span, or ``None`` when off.

    Usage::

        with stage("validate", span_type="PARSER", source_chars=len(source)) as span:
            result = validate(source)
            annotate(span, errors=len(result.errors))
    """
    if not is_enabled():
        yield None
        return
    with mlflow.start_span(name=name, span_type=span_type) as span:
        if attributes:
            span.set_attributes(attributes)
        yield span


def annotate(span: Any, **attributes: Any) -> None:
    """Attach outcome attributes to a span from ``stage()``; no-op for ``None``."""
    if span is not None and attributes:
        span.set_attributes(attributes)


def setup() -> None:
    """Point MLflow at the configured tracking server and experiment.

    Called from the server lifespan. Failures are logged and the server
    starts without tracing.
    """
    if not is_enabled():
        return

    from .config import get_config

    cfg = get_config()
    try:
        mlflow.set_tracking_uri(cfg.mlflow_tracking_uri)
        mlflow.set_experiment(cfg.mlflow_experiment_name)
    except Exception:
        logger.warning("MLflow tracing setup failed, continuing without tracing", exc_info=True)
        return
    logger.info(
        "MLflow tracing enabled (uri=%s, experiment=%s)",
        cfg.mlflow_tracking_uri,
        cfg.mlflow_experiment_name,
    )


def shutdown() -> None:
    """Flush traces still queued for async export."""
    if not is_enabled():
        return
    try:
        mlflow.flush_trace_async_logging()
    except Exception:
        logger.warning("MLflow trace flush failed", exc_info=True)
