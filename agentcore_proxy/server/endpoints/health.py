from __future__ import annotations

import time
from typing import TYPE_CHECKING

from starlette.requests import Request
from starlette.responses import JSONResponse

from agentcore_proxy.__version__ import get_version

if TYPE_CHECKING:
    from agentcore_proxy.server.applications import ProxyApplication


async def health_endpoint(app: ProxyApplication, request: Request) -> JSONResponse:
    proxy = app.proxy
    stats = proxy.stats.get_stats()
    return JSONResponse(
        {
            "status": "ok",
            "version": get_version(),
            "uptime_seconds": round(time.monotonic() - app.started_at, 3),
            "target": {
                "runtime_arn": proxy.target.runtime_arn,
                "qualifier": proxy.target.qualifier,
            },
            "relay": stats,
            "health": stats["status"],
        }
    )
