"""Formatting of errors and exceptions for trace segments."""

from __future__ import annotations

import itertools
import os
import secrets
import sys
import sysconfig
import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import FrameType
from typing import Any, Iterable, Optional

DEFAULT_FRAME_COUNT = 32


@dataclass
class Stack:
    """One frame of a recorded stack."""

    path: str = ""
    line: int = 0
    label: str = ""

    def to_dict(self) -> dict:
        """Return the JSON shape, leaving out empty fields."""
        out: dict = {}
        if self.path:
            out["path"] = self.path
        if self.line:
            out["line"] = self.line
        if self.label:
            out["label"] = self.label
        return out


@dataclass
class ExceptionInfo:
    """An exception as recorded in a segment."""

    id: str = ""
    type: str = ""
    message: str = ""
    stack: list[Stack] = field(default_factory=list)
    remote: bool = False

    def to_dict(self) -> dict:
        """Return the JSON shape, leaving out empty fields."""
        out: dict = {}
        if self.id:
            out["id"] = self.id
        if self.type:
            out["type"] = self.type
        if self.message:
            out["message"] = self.message
        if self.stack:
            out["stack"] = [frame.to_dict() for frame in self.stack]
        if self.remote:
            out["remote"] = True
        return out


class XRayError(Exception):
    """An error carrying a type, a message and the stack it was made at."""

    def __init__(
        self,
        message: str,
        error_type: str = "error",
        stack: Optional[list[traceback.FrameSummary]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.type = error_type
        self.stack = list(stack or [])

    def __str__(self) -> str:
        return self.message

    def stack_trace(self) -> list[traceback.FrameSummary]:
        """Return the recorded frames, innermost first."""
        return self.stack


class MultiError(Exception):
    """Several errors reported together."""

    def __init__(self, errors: Iterable[BaseException] = ()) -> None:
        self.errors = list(errors)
        super().__init__(*self.errors)

    def __str__(self) -> str:
        lines = [f"{len(self.errors)} errors occurred:\n"]
        lines.extend(f"* {err}\n" for err in self.errors)
        return "".join(lines)


class FormattingStrategy(ABC):
    """Turns messages and exceptions into recordable errors."""

    @abstractmethod
    def error(self, message: str) -> XRayError: ...

    @abstractmethod
    def errorf(self, format_string: str, *args: Any) -> XRayError: ...

    @abstractmethod
    def panic(self, message: str) -> XRayError: ...

    @abstractmethod
    def panicf(self, format_string: str, *args: Any) -> XRayError: ...

    @abstractmethod
    def exception_from_error(self, err: BaseException) -> ExceptionInfo: ...


def _capture(frame: Optional[FrameType], limit: int) -> list[traceback.FrameSummary]:
    """Capture up to ``limit`` frames starting at ``frame``, innermost first."""
    walked = itertools.islice(traceback.walk_stack(frame), limit)
    return list(traceback.StackSummary.extract(walked, lookup_lines=False))


def _format(format_string: str, args: tuple) -> str:
    return format_string % args if args else format_string


def _type_name(err: BaseException) -> str:
    cls = type(err)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def _is_remote(err: BaseException) -> bool:
    try:
        request_id = err.request_id  # type: ignore[attr-defined]
    except AttributeError:
        return False
    return bool(request_id)


def _frames_of(err: BaseException) -> Optional[list[traceback.FrameSummary]]:
    try:
        stack_trace = err.stack_trace  # type: ignore[attr-defined]
    except AttributeError:
        return None
    if not callable(stack_trace):
        return None
    return list(stack_trace())


class DefaultFormattingStrategy(FormattingStrategy):
    """Default formatting strategy with a configurable frame count."""

    def __init__(self, frame_count: int = DEFAULT_FRAME_COUNT) -> None:
        if frame_count > 32 or frame_count < 0:
            raise ValueError(
                "frameCount must be a non-negative integer and less than 32"
            )
        self.frame_count = frame_count

    def _build(self, message: str, kind: str, frame: FrameType) -> XRayError:
        return XRayError(message, kind, _capture(frame, self.frame_count))

    def error(self, message: str) -> XRayError:
        return self._build(message, "error", sys._getframe(1))

    def errorf(self, format_string: str, *args: Any) -> XRayError:
        return self._build(_format(format_string, args), "error", sys._getframe(1))

    def panic(self, message: str) -> XRayError:
        return self._build(message, "panic", sys._getframe(1))

    def panicf(self, format_string: str, *args: Any) -> XRayError:
        return self._build(_format(format_string, args), "panic", sys._getframe(1))

    def exception_from_error(self, err: BaseException) -> ExceptionInfo:
        info = ExceptionInfo(
            id=new_exception_id(),
            type=_type_name(err),
            message=str(err),
            remote=_is_remote(err),
        )
        if isinstance(err, XRayError):
            info.type = err.type

        frames = _frames_of(err)
        if frames is None:
            if err.__traceback__ is not None:
                frames = list(reversed(traceback.extract_tb(err.__traceback__)))
            else:
                frames = _capture(sys._getframe(1), self.frame_count)

        info.stack = convert_stack(frames)
        return info


def new_exception_id() -> str:
    """Return a random 16-character hexadecimal exception id."""
    return secrets.token_hex(8)


def _search_roots() -> list[str]:
    roots = {os.getcwd()}
    roots.update(path for path in sysconfig.get_paths().values() if path)
    return [os.path.abspath(root) for root in roots]


def _strip_path(path: str) -> str:
    best = ""
    for root in _search_roots():
        if path.startswith(root + os.sep) and len(root) > len(best):
            best = root
    if not best:
        return path
    return path[len(best) + 1 :].replace(os.sep, "/")


def convert_stack(frames: Iterable[traceback.FrameSummary]) -> list[Stack]:
    """Convert captured frames into recordable stack entries."""
    return [
        Stack(path=_strip_path(frame.filename), line=frame.lineno or 0, label=frame.name)
        for frame in frames
    ]