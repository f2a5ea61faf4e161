"""Device context providers.

The context mapping attached to every payload comes from a provider.
Host applications plug in their own (device model, app version, screen
size); ``DefaultContextProvider`` reports what the Python runtime knows.
"""

from __future__ import annotations

import copy
import locale
import platform
import time
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ContextProvider(Protocol):
    """Supplies the ``context`` mapping for new payloads."""

    def context(self) -> dict[str, Any]:
        ...


class StaticContextProvider:
    """Always returns a copy of the same mapping."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values = dict(values or {})

    def context(self) -> dict[str, Any]:
        return dict(self._values)


class DefaultContextProvider:
    """Library, OS, runtime and locale details of the current process."""

    def __init__(self, extra: dict[str, Any] | None = None) -> None:
        from pulsekit import __version__

        self._base: dict[str, Any] = {
            "library": {"name": "pulsekit", "version": __version__},
            "os": {"name": platform.system(), "version": platform.release()},
            "runtime": {
                "name": platform.python_implementation(),
                "version": platform.python_version(),
            },
        }
        self._extra = dict(extra or {})

    def context(self) -> dict[str, Any]:
        values = copy.deepcopy(self._base)
        language, _ = locale.getlocale()
        if language:
            values["locale"] = language.replace("_", "-")
        values["timezone"] = time.strftime("%Z")
        values.update(self._extra)
        return values
