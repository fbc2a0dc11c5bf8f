"""Domain models for the tabular intake client.

Decoded tables and records produced by ingestion, the Job / snapshot models
used by status tracking, and configuration dataclasses.
"""

from .config_models import BackendConfig, IntakeConfig, PollingConfig, PreviewConfig
from .decoded_table import CellValue, DecodedTable, NormalizedRecord
from .error_record import ErrorRecord
from .job import FieldValue, Job, JobSnapshot, ProcessingRecord, RecordStatus, TrackerState
from .raw_file import RawFile, TabularFormat

__all__ = [
    # Configuration models
    "BackendConfig",
    "IntakeConfig",
    "PollingConfig",
    "PreviewConfig",
    # Ingestion models
    "CellValue",
    "DecodedTable",
    "NormalizedRecord",
    "RawFile",
    "TabularFormat",
    # Tracking models
    "ErrorRecord",
    "FieldValue",
    "Job",
    "JobSnapshot",
    "ProcessingRecord",
    "RecordStatus",
    "TrackerState",
]
