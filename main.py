"""ASGI entrypoint: ``uvicorn main:app``."""

from imagebed.api import create_app

app = create_app()
