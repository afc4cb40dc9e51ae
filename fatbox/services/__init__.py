"""Services module exports"""
from .storage import TransientStorage, storage, get_storage
from .assembler import assemble_chunks
from .hashing import compute_file_hash
from .destinations import DESTINATIONS, Destination, ForwardOptions, get_destination
from .dedup_cache import CacheRecord, DedupCache
from .multipart import AsyncPipe, MultipartStream
from .forwarder import Forwarder, forwarder, get_forwarder
from .pipeline import PipelineResult, UploadPipeline

__all__ = [
    "TransientStorage",
    "storage",
    "get_storage",
    "assemble_chunks",
    "compute_file_hash",
    "DESTINATIONS",
    "Destination",
    "ForwardOptions",
    "get_destination",
    "CacheRecord",
    "DedupCache",
    "AsyncPipe",
    "MultipartStream",
    "Forwarder",
    "forwarder",
    "get_forwarder",
    "PipelineResult",
    "UploadPipeline",
]
