from fastapi import Request

from realeyes.config import Settings
from realeyes.services.feedback import FeedbackReconciler
from realeyes.services.ingestion import IngestionPipeline


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline


def get_reconciler(request: Request) -> FeedbackReconciler:
    return request.app.state.reconciler
