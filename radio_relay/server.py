from radio_relay.vars import (
    METRICS_PATH,
    RELAY_MODE,
    SERVICE_NAME,
)
from fastapi import FastAPI
import logging

from prometheus_fastapi_instrumentator import Instrumentator
from prometheus_client import Info

from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from radio_relay.edge.route import router as edge_router
from radio_relay.errors import install_error_handlers
from radio_relay.relay.route import router as relay_router
from radio_relay.tracing import configure_tracing

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=SERVICE_NAME)
install_error_handlers(app)

# /metrics is registered before the catch-all relay route so it stays reachable
if METRICS_PATH:
    Instrumentator().instrument(app).expose(app, endpoint=METRICS_PATH)

tracer_provider = configure_tracing()
FastAPIInstrumentor.instrument_app(
    app, tracer_provider=tracer_provider, excluded_urls=METRICS_PATH or ""
)

app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME, "relay_mode": RELAY_MODE})

if RELAY_MODE == "edge":
    app.include_router(edge_router)
    logger.info("Serving one-shot relay")
else:
    app.include_router(relay_router)
    logger.info("Serving redirect-following relay on every path")
