"""Entry point for running the GenQuota API server."""

import os
import sys

import uvicorn

from genquota.config import get_settings
from genquota.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def main() -> None:
    settings = get_settings()
    configure_logging(settings)

    ssl_options: dict[str, str] = {}
    if settings.should_enable_https:
        cert_file, key_file = settings.https_cert_file, settings.https_key_file
        if cert_file and key_file and os.path.exists(cert_file) and os.path.exists(key_file):
            ssl_options = {"ssl_certfile": cert_file, "ssl_keyfile": key_file}
        else:
            logger.warning("HTTPS requested, but cert or key is missing. Falling back to HTTP.")

    scheme = "https" if ssl_options else "http"
    logger.info(f"Backend listening on {scheme}://{settings.api_host}:{settings.api_port}")

    uvicorn.run(
        "genquota.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        **ssl_options,
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nShutdown requested...")
        sys.exit(0)
