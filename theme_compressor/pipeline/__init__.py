"""
Compression pipeline

- `PipelineOrchestrator`: runs a Job through staging, transcoding, artwork
  lookup and tagging, and owns the job's temporary files
- `ScopedTempFile`: a staging file deleted exactly once
"""

from .orchestrator import PipelineOrchestrator, NO_UPLOAD_MESSAGE
from .staging import ScopedTempFile

__all__ = [
    'PipelineOrchestrator',
    'ScopedTempFile',
    'NO_UPLOAD_MESSAGE',
]
