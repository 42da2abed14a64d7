from __future__ import annotations

import uvicorn

from argus.config import load_config
from argus.logging_config import setup_logging


# PUBLIC_INTERFACE
def main() -> None:
    """Run the Argus API server on the configured port."""
    setup_logging()
    config = load_config()
    sec = config.security
    uvicorn.run(
        "argus.main:app",
        host="0.0.0.0",
        port=config.port,
        log_config=None,
        timeout_keep_alive=int(sec.idle_timeout),
        timeout_graceful_shutdown=int(sec.shutdown_timeout),
        h11_max_incomplete_event_size=sec.max_header_bytes,
    )


if __name__ == "__main__":
    main()
