# tasktracker/__main__.py
"""Run the task tracker API with uvicorn: ``python -m tasktracker``."""

import logging

import uvicorn

from tasktracker.config import Settings


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("tasktracker.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
