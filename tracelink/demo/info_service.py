"""Service B: answers ``GET /info`` under the caller's trace."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request

from tracelink.context import ExecutionContext
from tracelink.instrumentation import TRACE_CONTEXT_STATE, install_http_middleware
from tracelink.log import with_trace
from tracelink.tracer.tracer import Tracer

SERVICE_NAME = "service-b"
PORT = 8081


async def get_info(tracer: Tracer, context: ExecutionContext, logger: logging.Logger) -> str:
    span, context = tracer.start_span(context, "getInfo", {"service": "b"})
    with span:
        log = with_trace(context, logger, service="InfoService")
        log.info("Processing info request")

        # Simulated work.
        await asyncio.sleep(0.01)

        result = "Service B processed successfully"
        log.info("Processed result: %s", result)
        return result


def create_app(tracer: Tracer, logger: Optional[logging.Logger] = None) -> FastAPI:
    logger = logger or logging.getLogger(SERVICE_NAME)
    app = FastAPI(title=SERVICE_NAME)
    install_http_middleware(app, tracer, server_name=SERVICE_NAME, logger=logger)

    @app.get("/info")
    async def info(request: Request):
        context = getattr(request.state, TRACE_CONTEXT_STATE)
        result = await get_info(tracer, context, logger)
        return {"service": SERVICE_NAME, "info": result}

    return app


def main() -> None:
    import uvicorn

    from tracelink import init
    from tracelink.config import load_config

    config = load_config(overrides={"tracing": {"service_name": SERVICE_NAME}})
    provider = init(config)
    logger = logging.getLogger(SERVICE_NAME)
    app = create_app(provider.get_tracer(SERVICE_NAME), logger)
    logger.info("Service B starting on :%d", PORT)
    try:
        uvicorn.run(app, host="0.0.0.0", port=PORT, log_config=None)
    finally:
        provider.shutdown()


if __name__ == "__main__":
    main()
