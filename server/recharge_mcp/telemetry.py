from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .config import Settings


def resource_attributes(config: Settings) -> dict:
    return {
        "service.name": config.mcp_server_name,
        "deployment.environment": config.environment,
        "recharge.store_domain": config.recharge_storefront_domain,
        "recharge.mcp_transport": config.mcp_transport,
        "recharge.session_max_attempts": config.session_max_attempts,
    }


def configure_telemetry(config: Settings) -> None:
    provider = TracerProvider(resource=Resource.create(resource_attributes(config)))
    api_key = config.datadog_api_key
    exporter = OTLPSpanExporter(
        endpoint=config.otel_exporter_otlp_endpoint,
        headers={"DD-API-KEY": api_key} if api_key else None,
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    HTTPXClientInstrumentor().instrument()


def get_tracer(name: str) -> trace.Tracer:
    # no-op tracer until configure_telemetry installs a provider
    return trace.get_tracer(name)


def instrument_fastapi(app) -> None:
    FastAPIInstrumentor.instrument_app(app)
