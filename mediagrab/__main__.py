"""Run the API server with uvicorn."""

import uvicorn

from mediagrab.core.config import ConfigService


def main() -> None:
    server = ConfigService().load().server
    uvicorn.run("mediagrab.main:app", host=server.host, port=server.port)


if __name__ == "__main__":
    main()
