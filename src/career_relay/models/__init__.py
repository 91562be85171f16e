# src/career_relay/models/__init__.py

"""
Data models for the relay and reconciliation pipeline.
"""

from .classification import ReferenceClassification, ReferenceKind
from .crm import CrmRecord
from .fields import FieldName, FileFieldValue
from .files import PermanentFile, RelayResult
from .intake import IntakeResult
from .report import SweepError, SweepReport

__all__ = [
    "CrmRecord",
    "FieldName",
    "FileFieldValue",
    "IntakeResult",
    "PermanentFile",
    "ReferenceClassification",
    "ReferenceKind",
    "RelayResult",
    "SweepError",
    "SweepReport",
]
