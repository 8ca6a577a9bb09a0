"""Routers package initialization"""
from .exports import router as exports_router
from .edit import router as edit_router
from .export_worker import router as export_worker_router

__all__ = ["exports_router", "edit_router", "export_worker_router"]
