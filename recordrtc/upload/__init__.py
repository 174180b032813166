"""Upload of finalized recordings."""

from .pipeline import UploadPipeline

__all__ = ['UploadPipeline']
