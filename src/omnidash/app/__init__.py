"""FastAPI application: component wiring, read routes and the /ws socket."""

from omnidash.app.components import (
    AppComponents,
    build_components,
    start_components,
    stop_components,
)
from omnidash.app.main import create_app

__all__ = [
    "AppComponents",
    "build_components",
    "create_app",
    "start_components",
    "stop_components",
]
