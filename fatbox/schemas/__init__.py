"""Schemas module exports"""
from .upload import ChunkReceivedResponse, UploadResponse, NotFoundResponse

__all__ = ["ChunkReceivedResponse", "UploadResponse", "NotFoundResponse"]
