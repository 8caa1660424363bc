import uvicorn  # type: ignore

from rcaccess.core import config
from rcaccess.utils import get_logger

log = get_logger(__name__)

if __name__ == "__main__":
    log.info("Running RC Access server")
    uvicorn.run("rcaccess.main:app", reload=True, host="127.0.0.1", port=8000, log_level=config.LOG_LEVEL.lower())
