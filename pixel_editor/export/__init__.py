from .archive import build_zip
from .coordinator import ExportCoordinator, ExportResult
from .ico_compat import IcoCompatibility, SizeValidation
from .naming import (
    bundle_archive_name,
    derived_filename,
    format_extension,
    format_file_size,
    is_valid_filename,
    sanitize_filename,
)
from .tasks import ExportTask, TaskKind, run_task
from .worker_pool import WorkerPool

__all__ = [
    "ExportCoordinator",
    "ExportResult",
    "ExportTask",
    "IcoCompatibility",
    "SizeValidation",
    "TaskKind",
    "WorkerPool",
    "build_zip",
    "bundle_archive_name",
    "derived_filename",
    "format_extension",
    "format_file_size",
    "is_valid_filename",
    "run_task",
    "sanitize_filename",
]
