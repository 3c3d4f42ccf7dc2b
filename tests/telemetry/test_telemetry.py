"""Tests for contacts_bench.core.telemetry — OpenTelemetry initialization."""

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider

import contacts_bench.core.telemetry as _telemetry_mod
from contacts_bench.core.telemetry import init_telemetry, shutdown_telemetry

pytestmark = pytest.mark.unit


def _reset_otel_global_state():
    """Fully reset the OpenTelemetry global tracer provider state.

    The OTel SDK uses a ``Once`` guard that prevents ``set_tracer_provider``
    from being called more than once, so tests reset both the guard and the
    cached provider.
    """
    trace._TRACER_PROVIDER_SET_ONCE = trace.Once()
    trace._TRACER_PROVIDER = None
    _telemetry_mod._tracer_provider_installed = False


@pytest.fixture(autouse=True)
def _clean_tracer_provider():
    _reset_otel_global_state()
    yield
    _reset_otel_global_state()


class TestNoopWhenEndpointNotSet:
    def test_returns_tracer_without_installing_provider(self, monkeypatch):
        monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
        tracer = init_telemetry()
        assert tracer is not None
        assert not isinstance(trace.get_tracer_provider(), TracerProvider)
        assert _telemetry_mod._tracer_provider_installed is False

    def test_noop_tracer_creates_spans(self, monkeypatch):
        monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
        tracer = init_telemetry()
        with tracer.start_as_current_span("contacts.migrate") as span:
            span.set_attribute("contacts.count", 0)

    def test_shutdown_without_provider_is_noop(self, monkeypatch):
        monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
        init_telemetry()
        shutdown_telemetry()
        assert _telemetry_mod._tracer_provider_installed is False


class TestOtlpExporter:
    def test_installs_provider_once(self, monkeypatch):
        pytest.importorskip("opentelemetry.exporter.otlp.proto.grpc.trace_exporter")
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")

        init_telemetry("contacts-bench-test")
        provider = trace.get_tracer_provider()
        assert isinstance(provider, TracerProvider)
        assert provider.resource.attributes["service.name"] == "contacts-bench-test"

        init_telemetry("contacts-bench-test")
        assert trace.get_tracer_provider() is provider

        shutdown_telemetry()
        assert _telemetry_mod._tracer_provider_installed is False
