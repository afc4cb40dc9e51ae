"""
Pydantic schemas for API responses
"""
from pydantic import BaseModel, ConfigDict, Field


class ChunkReceivedResponse(BaseModel):
    """Acknowledgement for a stored chunk"""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    upload_id: str = Field(..., alias="uploadId")
    index: str


class UploadResponse(BaseModel):
    """Public URL of the forwarded (or previously forwarded) file"""
    url: str


class NotFoundResponse(BaseModel):
    """Body returned for unknown routes"""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    error: str = "Not Found"
    status_code: int = Field(404, alias="statusCode")
