"""
land_registry.api.__main__

Entrypoint for running the reference registry via `python -m land_registry.api`.

Responsibilities:
- Load settings and refuse to serve prod with the built-in development secrets.
- Create the app.
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from land_registry.api.app import create_app
from land_registry.settings import Settings, get_settings

_DEV_SECRET_FIELDS = ("jwt_secret", "registry_root_key")


def insecure_prod_fields(settings: Settings) -> list[str]:
    """Secret fields still holding their development defaults while `env == "prod"`."""

    if settings.env != "prod":
        return []
    return [
        name
        for name in _DEV_SECRET_FIELDS
        if getattr(settings, name) == Settings.model_fields[name].default
    ]


def main() -> None:
    settings = get_settings()
    insecure = insecure_prod_fields(settings)
    if insecure:
        raise SystemExit(f"refusing to start in prod with development defaults for: {insecure}")

    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
