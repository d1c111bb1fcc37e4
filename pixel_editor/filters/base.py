from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pixel_editor.errors import FilterError
from pixel_editor.image_engine.buffer import PixelBuffer
from pixel_editor.logger import get_logger

_logger = get_logger("filters")


class Filter(ABC):
    """A named, toggleable, parameterized transform from buffer to buffer.

    Subclasses implement `_apply` and the value hooks. `apply` is the public
    entry point: it never mutates its input and turns any internal fault into
    a `FilterError` so a pipeline can recover from it.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""

    def __init__(self) -> None:
        self.enabled = False
        self._value: Any = self.default_value()

    # ---- value handling ----
    @abstractmethod
    def default_value(self) -> Any: ...

    @abstractmethod
    def validate(self, value: Any) -> bool: ...

    def coerce(self, value: Any) -> Any:
        """Value used when `set_value` receives something invalid."""
        return self.default_value()

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, value: Any) -> None:
        self.set_value(value)

    def set_value(self, value: Any) -> Filter:
        if self.validate(value):
            self._value = value
        else:
            fixed = self.coerce(value)
            _logger.warning("invalid value for filter %s: %r (using %r)", self.name, value, fixed)
            self._value = fixed
        return self

    # ---- state ----
    def enable(self) -> Filter:
        self.enabled = True
        return self

    def disable(self) -> Filter:
        self.enabled = False
        return self

    def toggle(self) -> bool:
        self.enabled = not self.enabled
        return self.enabled

    def reset(self) -> Filter:
        self.enabled = False
        self._value = self.default_value()
        return self

    # ---- application ----
    def apply(self, source: PixelBuffer) -> PixelBuffer:
        try:
            result = self._apply(source)
        except FilterError:
            raise
        except Exception as e:
            raise FilterError(self.name, e) from e
        if result is None:
            return source
        if result.width < 1 or result.height < 1:
            raise FilterError(self.name, f"produced an empty {result.width}x{result.height} buffer")
        return result

    @abstractmethod
    def _apply(self, source: PixelBuffer) -> PixelBuffer | None: ...

    # ---- serialization ----
    def fingerprint(self) -> dict[str, Any]:
        """State compared by change detection."""
        return {"enabled": bool(self.enabled), "value": self._value}

    def serialize(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "enabled": bool(self.enabled),
            "value": self._value,
            "description": self.description,
        }

    def load(self, data: dict[str, Any]) -> Filter:
        """Apply serialized state to this instance."""
        self.enabled = bool(data.get("enabled", False))
        if "value" in data and data["value"] is not None:
            self.set_value(data["value"])
        else:
            self._value = self.default_value()
        return self

    @classmethod
    def deserialize(cls, data: dict[str, Any], **kwargs: Any) -> Filter:
        return cls(**kwargs).load(data)

    def info(self) -> dict[str, Any]:
        return {**self.serialize(), "type": type(self).__name__}

    def __repr__(self) -> str:
        state = "on" if self.enabled else "off"
        return f"<{type(self).__name__} {self.name} {state} value={self._value!r}>"
