"""Tabular file intake client.

Decodes CSV / XLS / XLSX files into normalized records, uploads them to the
processing backend and tracks the resulting job until every record is done.
"""

from .models import Job, JobSnapshot, RawFile, TabularFormat, TrackerState
from .services.session import IntakeSession
from .services.tracker import JobStatusTracker
from .services.upload import UploadCoordinator
from .tabular.decoder import decode, decode_file, detect_format
from .tabular.normalizer import normalize
from .transport.client import BackendClient

__version__ = "0.1.0"

__all__ = [
    "BackendClient",
    "IntakeSession",
    "Job",
    "JobSnapshot",
    "JobStatusTracker",
    "RawFile",
    "TabularFormat",
    "TrackerState",
    "UploadCoordinator",
    "decode",
    "decode_file",
    "detect_format",
    "normalize",
]
