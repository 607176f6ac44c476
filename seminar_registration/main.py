"""
Entry point for running the seminar registration server
"""

import argparse
import logging

from .app import create_app
from .config import AppConfig


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Seminar registration server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    args = parser.parse_args(argv)

    config = AppConfig.from_env(dotenv_path=args.env_file)
    configure_logging(config.log_level)
    logging.getLogger(__name__).info(
        "Starting with storage backend '%s' (gateway configured: %s, photo storage: %s)",
        config.storage_backend, config.gateway_configured, config.photo_storage_configured,
    )

    app = create_app(config)
    app.run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
