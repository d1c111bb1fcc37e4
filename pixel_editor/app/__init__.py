"""Qt bridge for the editor core (optional; requires PySide6)."""

from .controller import DocumentController
from .document_state import DocumentState
from .preview import buffer_to_qimage, qimage_to_buffer

__all__ = ["DocumentController", "DocumentState", "buffer_to_qimage", "qimage_to_buffer"]
