"""Shared schema primitives."""

from .base import BaseSchema

__all__ = ["BaseSchema"]
