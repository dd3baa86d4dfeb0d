"""ASGI entrypoint for the modal sessions API."""

from modal_sessions.api.app import create_app
from modal_sessions.containers import build_container

app = create_app(build_container())
