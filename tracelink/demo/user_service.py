"""Service A: ``GET /users/{id}`` looks a user up and consults service B."""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from tracelink.context import ExecutionContext
from tracelink.instrumentation import TRACE_CONTEXT_STATE, call_downstream, install_http_middleware
from tracelink.log import with_trace
from tracelink.tracer.tracer import Tracer

SERVICE_NAME = "service-a"
PORT = 8080
DEFAULT_INFO_URL = "http://localhost:8081/info"


def get_user(
    tracer: Tracer,
    context: ExecutionContext,
    user_id: str,
    *,
    info_url: str,
    session: Any = None,
    logger: Optional[logging.Logger] = None,
) -> str:
    span, context = tracer.start_span(context, "getUser", {"id": user_id})
    with span:
        log = with_trace(context, logger, service="UserService")
        log.info("Getting user with id=%s", user_id)

        log.info("Calling service-b: GET %s", info_url)
        result = call_downstream(tracer, context, "GET", info_url, session=session)
        if result.error is not None:
            log.error("Failed to call service-b: %s", result.error)
        else:
            log.info("Service-b response: status=%d, body=%s", result.status_code, result.text)

        name = "otelgin tester" if user_id == "123" else "unknown"
        log.info("Returning user: %s", name)
        return name


def create_app(
    tracer: Tracer,
    *,
    info_url: str = DEFAULT_INFO_URL,
    session: Any = None,
    logger: Optional[logging.Logger] = None,
) -> FastAPI:
    """
    Build service A.

    ``session`` is any ``requests``-compatible client used for the call to
    service B; a fresh ``requests.Session`` per call when omitted.
    """
    logger = logger or logging.getLogger(SERVICE_NAME)
    app = FastAPI(title=SERVICE_NAME)
    install_http_middleware(app, tracer, server_name="my-server", logger=logger)

    @app.get("/users/{user_id}", response_class=PlainTextResponse)
    def user(user_id: str, request: Request):
        context = getattr(request.state, TRACE_CONTEXT_STATE)
        name = get_user(
            tracer, context, user_id, info_url=info_url, session=session, logger=logger
        )
        return f"user {name} (id {user_id})\n"

    return app


def main() -> None:
    import uvicorn

    from tracelink import init
    from tracelink.config import load_config

    config = load_config(overrides={"tracing": {"service_name": SERVICE_NAME}})
    provider = init(config)
    logger = logging.getLogger(SERVICE_NAME)
    app = create_app(
        provider.get_tracer(SERVICE_NAME),
        info_url=os.environ.get("INFO_SERVICE_URL", DEFAULT_INFO_URL),
        logger=logger,
    )
    logger.info("Service A starting on :%d", PORT)
    try:
        uvicorn.run(app, host="0.0.0.0", port=PORT, log_config=None)
    finally:
        provider.shutdown()


if __name__ == "__main__":
    main()
