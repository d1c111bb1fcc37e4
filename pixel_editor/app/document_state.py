from __future__ import annotations

from PySide6.QtCore import Property, QObject, Signal


class DocumentState(QObject):
    """Bindable view of the active document.

    Python is authoritative; the UI only reads these properties and listens
    for `bufferChanged` to redraw the preview.
    """

    activeIdChanged = Signal(str)
    widthChanged = Signal(int)
    heightChanged = Signal(int)
    dirtyChanged = Signal(bool)
    processingChanged = Signal(bool)
    bufferChanged = Signal(object)  # PixelBuffer

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._active_id = ""
        self._width = 0
        self._height = 0
        self._dirty = False
        self._processing = False

    # ---- read-only properties (mutate via controller) ----
    def _get_active_id(self) -> str:
        return str(self._active_id)

    activeId = Property(str, _get_active_id, notify=activeIdChanged)  # type: ignore[arg-type]

    def _get_width(self) -> int:
        return int(self._width)

    width = Property(int, _get_width, notify=widthChanged)  # type: ignore[arg-type]

    def _get_height(self) -> int:
        return int(self._height)

    height = Property(int, _get_height, notify=heightChanged)  # type: ignore[arg-type]

    def _get_dirty(self) -> bool:
        return bool(self._dirty)

    dirty = Property(bool, _get_dirty, notify=dirtyChanged)  # type: ignore[arg-type]

    def _get_processing(self) -> bool:
        return bool(self._processing)

    processing = Property(bool, _get_processing, notify=processingChanged)  # type: ignore[arg-type]

    # ---- setters ----
    def _set_active_id(self, doc_id: str | None) -> None:
        v = str(doc_id or "")
        if v == self._active_id:
            return
        self._active_id = v
        self.activeIdChanged.emit(v)

    def _set_size(self, width: int, height: int) -> None:
        w = int(width)
        h = int(height)
        if w != self._width:
            self._width = w
            self.widthChanged.emit(w)
        if h != self._height:
            self._height = h
            self.heightChanged.emit(h)

    def _set_dirty(self, dirty: bool) -> None:
        v = bool(dirty)
        if v == self._dirty:
            return
        self._dirty = v
        self.dirtyChanged.emit(v)

    def _set_processing(self, processing: bool) -> None:
        v = bool(processing)
        if v == self._processing:
            return
        self._processing = v
        self.processingChanged.emit(v)
