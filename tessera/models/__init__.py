"""Domain models for the Tessera document generator.

Placeholders found in templates, records read from workbooks, and the
result objects produced by a generation run.
"""

from .error_record import ErrorRecord
from .placeholder import Placeholder
from .processing_result import GenerationResult, SheetStat, SheetStatus
from .tabular_record import TabularRecord

__all__ = [
    # Template / data models
    "Placeholder",
    "TabularRecord",
    # Run results
    "GenerationResult",
    "SheetStat",
    "SheetStatus",
    "ErrorRecord",
]
