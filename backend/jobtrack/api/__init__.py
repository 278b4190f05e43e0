"""HTTP routers mounted by :func:`jobtrack.main.create_app`."""

from fastapi import Request

from jobtrack.config import AppConfig


def get_app_config(request: Request) -> AppConfig:
    """FastAPI dependency returning the config the app was created with."""
    return request.app.state.config
