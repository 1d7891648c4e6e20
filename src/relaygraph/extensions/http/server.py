"""Console entry point: `relaygraph-server`."""

import uvicorn

from relaygraph.core.config import RelaySettings
from relaygraph.extensions.http.app import create_app

# uvicorn only knows the standard level names
_UVICORN_LEVELS = {"critical", "error", "warning", "info", "debug"}


def main() -> None:
    settings = RelaySettings.from_env()
    app = create_app(settings)
    level = settings.log_level.name.lower()
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=level if level in _UVICORN_LEVELS else "info",
    )


if __name__ == "__main__":
    main()
