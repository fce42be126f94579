# Run from project root: uvicorn storeagent.main:app --reload

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storeagent.api.routes import router
from storeagent.core.config import LOG_LEVEL
from storeagent.core.errors import ServiceUnavailableError
from storeagent.mcp.server import mcp_router

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


app = FastAPI(title="Store Assistant Backend")
app.include_router(router)
app.include_router(mcp_router, prefix="/mcp")


@app.exception_handler(ServiceUnavailableError)
def service_unavailable(request: Request, exc: ServiceUnavailableError) -> JSONResponse:
    logger.warning("[main] service unavailable on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=503, content={"detail": exc.message})


if __name__ == "__main__":
    print("Store assistant booting...")
