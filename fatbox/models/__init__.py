"""Models module exports"""
from .database import Base, FileHash

__all__ = ["Base", "FileHash"]
