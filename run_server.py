import logging

import uvicorn

from matter_backend.engine import BackendConfig

if __name__ == "__main__":
    config = BackendConfig.from_env()

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info(
        "Starting Matter Tracker API on http://%s:%d", config.host, config.port
    )

    uvicorn.run(
        "matter_backend.api.server:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
