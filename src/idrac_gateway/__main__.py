from __future__ import annotations

import sys

import uvicorn

from idrac_gateway.app import create_app
from idrac_gateway.config import load_gateway_config
from idrac_gateway.errors import ConfigError


def main() -> None:
    try:
        config = load_gateway_config()
    except ConfigError as exc:
        print(f"Failed to load configuration: {exc}", file=sys.stderr)
        print(
            "Please ensure IDRAC_HOST, IDRAC_USERNAME, and IDRAC_PASSWORD "
            "environment variables are set",
            file=sys.stderr,
        )
        raise SystemExit(1) from exc

    uvicorn.run(
        create_app(config),
        host=config.network.bind_host,
        port=config.network.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
