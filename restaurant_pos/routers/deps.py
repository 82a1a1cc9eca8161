"""
Request dependencies.

Services are built once in ``create_app`` and parked on ``app.state``;
routes pull them from there instead of importing module-level singletons.
"""

from fastapi import Request

from restaurant_pos.core.config import Settings
from restaurant_pos.database import Database
from restaurant_pos.services import ServiceRegistry


def get_services(request: Request) -> ServiceRegistry:
    return request.app.state.services


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
