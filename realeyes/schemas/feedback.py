from pydantic import BaseModel, ConfigDict
from typing import Any, Optional


class FeedbackIn(BaseModel):
    # Values are checked by the reconciler so bad votes map to the service's own 400s
    model_config = ConfigDict(extra="ignore")

    imageHash: Optional[Any] = None
    feedbackType: Optional[Any] = None
    comment: Optional[Any] = None
    userId: Optional[Any] = None


class FeedbackOut(BaseModel):
    message: str
    imageHash: str
    userId: str
    feedbackType: str
    previousFeedback: Optional[str] = None
