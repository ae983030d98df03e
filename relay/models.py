from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional


@dataclass(frozen=True)
class ProxyRequest:
    """
    One inbound /api call.
    Built from the JSON body, never mutated, dropped when the call returns.
    """
    payload: str
    timestamp_millis: Optional[int] = None
    request_id: Optional[str] = None
    mode: Optional[str] = None
    action: str = "fetch"


@dataclass(frozen=True)
class TargetDescriptor:
    """
    Decoded target.
    INVARIANT: url is an absolute http/https URL with a host.
    """
    url: str
    resolved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class FetchResult:
    """Outbound response held in memory for the duration of one request."""
    status_code: int
    headers: Dict[str, str]
    body_text: str
    final_url: str
    content_type: str = ""
    elapsed_ms: int = 0
