from fastapi import APIRouter
import logging


def build_router() -> APIRouter:
    from .feedback import router as feedback_router
    from .health import router as health_router
    from .images import router as images_router

    router = APIRouter()
    log = logging.getLogger("routers")

    router.include_router(images_router)
    router.include_router(feedback_router)
    router.include_router(health_router)
    log.info("Loaded routers: images, feedback, health")
    return router
