"""Shared foundation layer: data models and the repository layer."""

from letletme_sync.shared import models, repositories

__all__ = ["models", "repositories"]
