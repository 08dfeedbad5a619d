import logging
from typing import Optional, Dict
from contextlib import contextmanager

from opentelemetry.trace import Tracer

from radio_relay.utils import mask_credentials, mask_url

logger = logging.getLogger("uvicorn.error")


@contextmanager
def traced_relay(
    tracer: Tracer,
    operation: str,
    target_url: Optional[str],
    start_message: str,
    extra_attrs: Optional[Dict] = None,
):
    """Context manager to create a span, set common attributes, and log a start message."""
    with tracer.start_as_current_span(operation) as span:
        if target_url:
            span.set_attribute("relay.target_url", mask_credentials(target_url))
        if extra_attrs:
            for k, v in extra_attrs.items():
                span.set_attribute(k, v)
        logger.info(mask_url(start_message, target_url))
        yield span
