import os

import uvicorn  # type: ignore

from app.utils import get_logger

log = get_logger(__name__)

if __name__ == "__main__":
    host = os.environ.get("HOST", "127.0.0.1")
    port = int(os.environ.get("PORT", 8000))
    log.info("Running server on %s:%s", host, port)
    uvicorn.run("app.main:app", reload=os.environ.get("RELOAD", "1") == "1", host=host, port=port)
