import logging
from contextlib import contextmanager
from typing import Dict, Optional

from opentelemetry.trace import Tracer

logger = logging.getLogger("ocgen")


@contextmanager
def traced_stage(
    tracer: Tracer,
    operation: str,
    sandbox_id: Optional[str],
    component_name: Optional[str],
    start_message: str,
    extra_attrs: Optional[Dict] = None,
):
    """Open a span for one pipeline stage, set common attributes, log the start."""
    with tracer.start_as_current_span(operation) as span:
        if sandbox_id:
            span.set_attribute("sandbox.id", sandbox_id)
        if component_name:
            span.set_attribute("component.name", component_name)
        if extra_attrs:
            for k, v in extra_attrs.items():
                span.set_attribute(k, v)
        logger.info(start_message)
        yield span
