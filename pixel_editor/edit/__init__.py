from .change_detector import ChangeDetector, DetectorState
from .documents import DocumentContext, DocumentRegistry
from .pipeline import FilterPipeline
from .scheduler import ManualScheduler, QtScheduler, Scheduler, ThreadingScheduler

__all__ = [
    "ChangeDetector",
    "DetectorState",
    "DocumentContext",
    "DocumentRegistry",
    "FilterPipeline",
    "ManualScheduler",
    "QtScheduler",
    "Scheduler",
    "ThreadingScheduler",
]
