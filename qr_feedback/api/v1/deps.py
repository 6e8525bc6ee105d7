"""Request-scoped dependencies; override these in tests."""

from typing import Dict

from fastapi import Request

from qr_feedback.bootstrap import Services
from qr_feedback.config import Settings, settings as app_settings
from qr_feedback.infrastructure.persistence import PersistenceAdapter


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_collections(request: Request) -> Dict[str, PersistenceAdapter]:
    return request.app.state.collections


def get_settings() -> Settings:
    return app_settings
