"""ASGI entrypoint for the photo studio API."""

from photo_studio.api.app import create_app
from photo_studio.containers import build_container

app = create_app(build_container())
