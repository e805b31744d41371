import os

import uvicorn

from geodb.logger import build_log_config


def main() -> None:
    """Run the GeoLocation DB service with uvicorn.

    Host, port and auto-reload come from GEODB_HOST, GEODB_PORT and GEODB_RELOAD.
    """
    uvicorn.run(
        "geodb.main:app",
        host=os.getenv("GEODB_HOST", "127.0.0.1"),
        port=int(os.getenv("GEODB_PORT", "8000")),
        reload=os.getenv("GEODB_RELOAD", "true").lower() in ("1", "true", "yes"),
        log_config=build_log_config(),
    )


if __name__ == "__main__":
    main()
