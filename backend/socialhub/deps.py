from __future__ import annotations

from fastapi import Depends, Request

from .registry import ModelRegistry
from .services.connections import ConnectionService
from .services.modules import ModuleService
from .services.notifications import NotificationService


def get_registry(request: Request) -> ModelRegistry:
    return request.app.state.registry


def get_module_service(registry: ModelRegistry = Depends(get_registry)) -> ModuleService:
    return ModuleService(registry)


def get_connection_service(registry: ModelRegistry = Depends(get_registry)) -> ConnectionService:
    return ConnectionService(registry)


def get_notification_service(registry: ModelRegistry = Depends(get_registry)) -> NotificationService:
    return NotificationService(registry)
