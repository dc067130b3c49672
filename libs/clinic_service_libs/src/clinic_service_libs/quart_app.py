"""
Type-safe Quart application class for clinic services.

Declares the infrastructure attributes every service sets in ``create_app``
so routes and lifecycle hooks can use them without getattr/None checks.
"""

from __future__ import annotations

from typing import Any

from dishka import AsyncContainer
from quart import Quart
from sqlalchemy.ext.asyncio import AsyncEngine


class ClinicApp(Quart):
    """Quart application with guaranteed clinic infrastructure.

    GUARANTEED INFRASTRUCTURE (set by every create_app):
        database_engine: SQLAlchemy async engine
        container: Dishka async container
        extensions: Standard Quart extensions dictionary

    OPTIONAL INFRASTRUCTURE (service-specific):
        workers: Background workers and consumers with start()/stop(),
            started in before_serving and stopped in after_serving
    """

    database_engine: AsyncEngine
    container: AsyncContainer
    extensions: dict[str, Any]

    def __init__(self, import_name: str, *args: Any, **kwargs: Any) -> None:
        super().__init__(import_name, *args, **kwargs)
        self.extensions = {}
        self.workers: list[Any] = []

