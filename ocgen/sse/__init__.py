"""
SSE (Server-Sent Events) streaming of component pipeline runs.

Example usage with curl:
    curl -N -H "Accept: text/event-stream" \\
         -H "Content-Type: application/json" \\
         -d '{"prompt": "Create a card component"}' \\
         "http://localhost:8000/components/stream"

Example usage with JavaScript:
    const response = await fetch('/components/stream', {method: 'POST', body});
    // each chunk carries lines of the form `data: {...}\\n\\n`
    if (data.type === 'progress') {
        console.log(`Stage ${data.progress}/${data.total}: ${data.message}`);
    } else if (data.type === 'result') {
        console.log('Published at', data.data.component_url);
    }
"""

from .streaming import (
    QueueObserver,
    SSEEvent,
    SSEEventType,
    create_sse_response,
    stream_pipeline_run,
)

__all__ = [
    "QueueObserver",
    "SSEEvent",
    "SSEEventType",
    "create_sse_response",
    "stream_pipeline_run",
]
