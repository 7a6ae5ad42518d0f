import argparse
import logging

import uvicorn

from nb2prod.settings import get_settings
from nb2prod import logging_setup

logger = logging.getLogger(__name__)

def main(argv=None):
    cfg = get_settings()
    p = argparse.ArgumentParser(description="Serve a trained model over HTTP (/ping, /invocations)")
    p.add_argument("--host", default=cfg.api_host)
    p.add_argument("--port", type=int, default=cfg.api_port)
    p.add_argument("--workers", type=int, default=cfg.api_workers)
    p.add_argument("--reload", action="store_true", default=cfg.api_reload, help="Auto-reload on code changes (dev only)")
    a = p.parse_args(argv)

    logging_setup.setup_logging(cfg.log_level)
    logger.info(f"Starting API server on {a.host}:{a.port} (env={cfg.env})")

    uvicorn.run(
        "api.main:app",
        host=a.host,
        port=a.port,
        reload=a.reload,
        workers=a.workers if not a.reload else 1,  # Workers only work without reload
        log_level=cfg.log_level.lower()
    )
    return 0

if __name__ == "__main__":
    exit(main())
