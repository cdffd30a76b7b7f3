"""Models package - re-exports for convenience."""

from docsum.models.document import (
    ContinuationState,
    DocumentRecord,
    DocumentStatus,
    SectionDescriptor,
    SectionRecord,
    StatusSnapshot,
)
from docsum.models.summary import RawTextSummary, Summary, WellFormedSummary

__all__ = [
    # Document
    "DocumentStatus",
    "DocumentRecord",
    "SectionDescriptor",
    "SectionRecord",
    "ContinuationState",
    "StatusSnapshot",
    # Summary
    "Summary",
    "WellFormedSummary",
    "RawTextSummary",
]
