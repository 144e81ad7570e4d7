"""Tests for the optional MLflow tracing integration."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

import remotion_sandbox_mcp.tracing as mod


def _make_config(**overrides):
    """Build a mock ServerConfig with tracing-enabled defaults."""
    defaults = {
        "tracing_enabled": True,
        "mlflow_tracking_uri": "http://127.0.0.1:5001",
        "mlflow_experiment_name": "remotion-sandbox-mcp",
    }
    defaults.update(overrides)
    cfg = MagicMock()
    for k, v in defaults.items():
        setattr(cfg, k, v)
    return cfg


@pytest.fixture()
def mock_mlflow(monkeypatch):
    """Install a MagicMock in place of the mlflow module and mark it importable."""
    fake = MagicMock()
    monkeypatch.setattr(mod, "_HAS_MLFLOW", True)
    monkeypatch.setattr(mod, "mlflow", fake, raising=False)
    return fake


class TestIsEnabled:
    def test_true_when_installed_and_enabled(self, mock_mlflow):
        with patch("remotion_sandbox_mcp.config.get_config", return_value=_make_config()):
            assert mod.is_enabled() is True

    def test_false_when_not_installed(self, monkeypatch):
        monkeypatch.setattr(mod, "_HAS_MLFLOW", False)
        assert mod.is_enabled() is False

    def test_false_when_config_disabled(self, mock_mlflow):
        cfg = _make_config(tracing_enabled=False)
        with patch("remotion_sandbox_mcp.config.get_config", return_value=cfg):
            assert mod.is_enabled() is False


class TestTraceDecorator:
    def test_identity_when_disabled(self, monkeypatch):
        """GIVEN tracing off THEN the decorated function is returned unchanged."""
        monkeypatch.setattr(mod, "_HAS_MLFLOW", False)

        async def tool():
            return {}

        assert mod.trace(name="code_validate", span_type="TOOL")(tool) is tool
        assert mod.trace(tool) is tool

    def test_delegates_to_mlflow_when_enabled(self, mock_mlflow):
        def tool():
            return {}

        with patch("remotion_sandbox_mcp.config.get_config", return_value=_make_config()):
            mod.trace(tool, name="code_validate", span_type="TOOL")

        mock_mlflow.trace.assert_called_once_with(
            tool, name="code_validate", span_type="TOOL", attributes=None,
        )


class TestSetup:
    def test_configures_tracking(self, mock_mlflow):
        """GIVEN tracing enabled THEN calls set_tracking_uri and set_experiment."""
        cfg = _make_config(mlflow_experiment_name="custom-experiment")
        with patch("remotion_sandbox_mcp.config.get_config", return_value=cfg):
            mod.setup()

        mock_mlflow.set_tracking_uri.assert_called_once_with("http://127.0.0.1:5001")
        mock_mlflow.set_experiment.assert_called_once_with("custom-experiment")

    def test_noop_when_disabled(self, mock_mlflow, monkeypatch):
        monkeypatch.setattr(mod, "_HAS_MLFLOW", False)
        mod.setup()
        mock_mlflow.set_tracking_uri.assert_not_called()

    def test_swallows_exceptions(self, mock_mlflow):
        """GIVEN set_experiment raises THEN setup logs and does not propagate."""
        mock_mlflow.set_experiment.side_effect = Exception("connection refused")
        with patch("remotion_sandbox_mcp.config.get_config", return_value=_make_config()):
            mod.setup()


class TestShutdown:
    def test_flushes(self, mock_mlflow):
        with patch("remotion_sandbox_mcp.config.get_config", return_value=_make_config()):
            mod.shutdown()
        mock_mlflow.flush_trace_async_logging.assert_called_once()

    def test_flush_failure_is_logged(self, mock_mlflow):
        mock_mlflow.flush_trace_async_logging.side_effect = RuntimeError("offline")
        with patch("remotion_sandbox_mcp.config.get_config", return_value=_make_config()):
            mod.shutdown()


class TestStage:
    def test_yields_none_when_disabled(self, monkeypatch):
        monkeypatch.setattr(mod, "_HAS_MLFLOW", False)
        with mod.stage("validate", source_chars=10) as span:
            assert span is None
        mod.annotate(span, errors=0)

    def test_opens_child_span_when_enabled(self, mock_mlflow):
        """GIVEN tracing on WHEN a stage runs THEN a span is opened and tagged."""
        live = MagicMock()
        mock_mlflow.start_span.return_value.__enter__.return_value = live

        with patch("remotion_sandbox_mcp.config.get_config", return_value=_make_config()):
            with mod.stage("validate", span_type="PARSER", source_chars=42) as span:
                mod.annotate(span, errors=2)

        mock_mlflow.start_span.assert_called_once_with(name="validate", span_type="PARSER")
        live.set_attributes.assert_any_call({"source_chars": 42})
        live.set_attributes.assert_any_call({"errors": 2})

    def test_pipeline_stages_traced(self, mock_mlflow):
        from remotion_sandbox_mcp.pipeline import validate_and_lower

        with patch("remotion_sandbox_mcp.config.get_config", return_value=_make_config()):
            validate_and_lower("const a = <div />;")

        names = [c.kwargs["name"] for c in mock_mlflow.start_span.call_args_list]
        assert names == ["validate", "transform"]
