"""ASGI entrypoint: ``uvicorn bedbook.api.app:app``."""

from bedbook.api.factory import create_app

app = create_app()
