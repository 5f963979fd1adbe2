from __future__ import annotations

import uvicorn

from panda.api import create_app
from panda.config import Settings


def run() -> None:
    settings = Settings.from_env()
    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
