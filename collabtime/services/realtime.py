# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Realtime feed adapter.

Turns the upstream server-sent-events stream into RealtimeMessage objects.
Whoever consumes them (EventReconciler.consume) never sees the transport.
Each SSE frame carries a JSON body {"event": ..., "data": ..., "channel": ...};
an "event:" field is used as the event name when the body has none.
"""

import json
from typing import AsyncIterable, AsyncIterator, Iterable, Optional

import httpx

from collabtime.core.logging import get_logger
from collabtime.metrics.prometheus import REALTIME_EVENTS_REJECTED
from collabtime.models.domain import RealtimeMessage

logger = get_logger(__name__)


def _decode_frame(event_name: Optional[str], data_lines: list[str]) -> Optional[RealtimeMessage]:
    try:
        body = json.loads("\n".join(data_lines))
    except ValueError:
        REALTIME_EVENTS_REJECTED.labels(reason="undecodable").inc()
        logger.warning("Dropping undecodable SSE frame")
        return None
    if isinstance(body, dict) and "event" in body:
        return RealtimeMessage(event=body["event"], data=body.get("data"), channel=body.get("channel"))
    if event_name:
        return RealtimeMessage(event=event_name, data=body)
    REALTIME_EVENTS_REJECTED.labels(reason="undecodable").inc()
    logger.warning("Dropping SSE frame without an event name")
    return None


async def parse_sse_lines(lines: AsyncIterable[str]) -> AsyncIterator[RealtimeMessage]:
    """Group SSE lines into frames (blank line terminated) and decode them."""
    event_name: Optional[str] = None
    data_lines: list[str] = []
    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if data_lines:
                message = _decode_frame(event_name, data_lines)
                if message is not None:
                    yield message
            event_name, data_lines = None, []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event_name = value
        elif field == "data":
            data_lines.append(value)
    if data_lines:
        message = _decode_frame(event_name, data_lines)
        if message is not None:
            yield message


async def stream_sse_events(
    client: httpx.AsyncClient,
    url: str,
    channels: Iterable[str],
    events: Iterable[str],
) -> AsyncIterator[RealtimeMessage]:
    """Subscribe to channels/events and yield deliveries until the stream ends."""
    params = [("channel", c) for c in channels] + [("event", e) for e in events]
    async with client.stream("GET", url, params=params, timeout=None) as resp:
        resp.raise_for_status()
        logger.info("Realtime stream opened: url=%s", url)
        async for message in parse_sse_lines(resp.aiter_lines()):
            yield message
    logger.info("Realtime stream closed: url=%s", url)
