"""Observability configuration for Azure Monitor and OpenTelemetry.

Call configure_observability() at the very start of application
initialization (before importing FastAPI) so HTTP requests and outbound
provider calls are instrumented.

PII and Sensitive Data Guidance:
--------------------------------
- NEVER put screenshots, question text, or model answers in span attributes
- Use correlation IDs to link traces without embedding content
- Prefer the StructuredLogger (core/error_handler.py), which redacts
  sensitive keys such as imageBase64 and api_key
- Safe attributes: sizes, counts, status codes, strategy names, model name

For local development set ENABLE_OBSERVABILITY=false (the default); spans
are then recorded by the OpenTelemetry API's no-op tracer provider.

For production (Azure):
- Set APPLICATIONINSIGHTS_CONNECTION_STRING to your App Insights connection string
- Traces, metrics, and logs will be exported to Azure Monitor
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from opentelemetry import trace


logger = logging.getLogger(__name__)

# Environment variable names
_ENV_ENABLE_OBSERVABILITY = "ENABLE_OBSERVABILITY"
_ENV_APP_INSIGHTS_CONN_STRING = "APPLICATIONINSIGHTS_CONNECTION_STRING"
_ENV_OTEL_SERVICE_NAME = "OTEL_SERVICE_NAME"

_DEFAULT_SERVICE_NAME = "snapsolve-api"

# Paths to exclude from automatic tracing. The observer stream is long-lived
# and would produce one span per console session.
EXCLUDED_URLS = "health,health/,favicon.ico,events"


def _is_observability_enabled() -> bool:
    """Check if observability is enabled via environment variable."""
    value = os.getenv(_ENV_ENABLE_OBSERVABILITY, "false").lower()
    return value in {"true", "1", "yes", "on"}


def _get_connection_string() -> str | None:
    """Get the Application Insights connection string from environment."""
    return os.getenv(_ENV_APP_INSIGHTS_CONN_STRING)


@lru_cache
def configure_observability() -> bool:
    """Configure OpenTelemetry with Azure Monitor for production observability.

    Returns:
        True if observability was configured successfully, False otherwise.

    Environment Variables:
        ENABLE_OBSERVABILITY: Set to "true" to enable (default: "false")
        APPLICATIONINSIGHTS_CONNECTION_STRING: Azure Monitor connection string
        OTEL_SERVICE_NAME: Service name for traces (default: "snapsolve-api")
    """
    if not _is_observability_enabled():
        logger.info(
            "Observability disabled. Set %s=true to enable Azure Monitor.",
            _ENV_ENABLE_OBSERVABILITY,
        )
        return False

    connection_string = _get_connection_string()
    if not connection_string:
        logger.warning(
            "Observability enabled but %s not set. Skipping Azure Monitor setup.",
            _ENV_APP_INSIGHTS_CONN_STRING,
        )
        return False

    try:
        # Import Azure Monitor OpenTelemetry only when needed
        from azure.monitor.opentelemetry import configure_azure_monitor

        service_name = os.getenv(_ENV_OTEL_SERVICE_NAME, _DEFAULT_SERVICE_NAME)
        os.environ.setdefault(_ENV_OTEL_SERVICE_NAME, service_name)
        os.environ.setdefault("OTEL_PYTHON_FASTAPI_EXCLUDED_URLS", EXCLUDED_URLS)

        configure_azure_monitor(connection_string=connection_string)

        logger.info(
            "Azure Monitor observability configured for service '%s'",
            service_name,
        )
        return True

    except ImportError:
        logger.warning(
            "azure-monitor-opentelemetry package not installed. "
            "Install with: pip install 'snapsolve-api[azure]'"
        )
        return False
    except Exception as e:
        logger.exception("Failed to configure Azure Monitor observability: %s", e)
        return False


def get_tracer(name: str) -> trace.Tracer:
    """Get an OpenTelemetry tracer for custom instrumentation.

    Without a configured SDK the API hands back a no-op tracer, so callers
    never need to check whether observability is on.

    Example:
        tracer = get_tracer(__name__)

        with tracer.start_as_current_span("vision_gateway.ask") as span:
            span.set_attribute("image.bytes", len(image))

    WARNING: Never add user content or PII to span attributes!
    """
    return trace.get_tracer(name)
