"""FastAPI server adapter for freight-delay-monitor.

This module exposes a REST API over the monitor service.

Design intent:
- Keep run orchestration in `freight_delay_monitor.workflow.*` and `freight_delay_monitor.monitor.*`
- Keep server-specific concerns (routing, CORS, observer lifecycle) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from freight_delay_monitor.server.app import create_app
