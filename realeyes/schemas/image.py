from pydantic import BaseModel
from typing import List, Optional


class IngestOut(BaseModel):
    # Describes the stored record (the matched one for duplicate/similar);
    # imageOriginUrl is the page URL sent with this request when present.
    message: str
    classification: str
    dataMatch: bool
    imageHash: str
    pHash: str
    s3ObjectUrl: str
    originalFileName: str
    mimeType: str
    fileSize: int
    originWebsites: List[str]
    requestCount: int
    imageOriginUrl: Optional[str] = None
    fileExtension: str
    extensionSource: str
