"""Pre-scrape browser actions sent to the crawl provider.

One dataclass per action kind, each carrying only its own fields. The ``type``
tag selects the class when parsing (``parse_action``) and each class renders
its own provider payload (``to_payload``):

  wait        {type, milliseconds}
  click       {type, selector}
  scroll      {type, direction, amount?}
  screenshot  {type}
  execute     {type: "executeJavascript", script}
  write       {type, text, selector?}
  press       {type, key}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Union

from docstash.errors import InvalidOptions


@dataclass(frozen=True)
class WaitAction:
    milliseconds: int

    kind: ClassVar[str] = "wait"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "milliseconds": self.milliseconds}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WaitAction:
        ms = int(_require(data, "milliseconds"))
        if ms < 0:
            raise InvalidOptions("wait action: milliseconds must be >= 0")
        return cls(milliseconds=ms)


@dataclass(frozen=True)
class ClickAction:
    selector: str

    kind: ClassVar[str] = "click"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "selector": self.selector}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClickAction:
        return cls(selector=str(_require(data, "selector")))


@dataclass(frozen=True)
class ScrollAction:
    direction: str = "down"
    amount: int | None = None

    kind: ClassVar[str] = "scroll"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.kind, "direction": self.direction}
        if self.amount is not None:
            payload["amount"] = self.amount
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScrollAction:
        direction = str(data.get("direction", "down"))
        if direction not in ("up", "down"):
            raise InvalidOptions(f"scroll action: direction must be 'up' or 'down', got {direction!r}")
        amount = data.get("amount")
        return cls(direction=direction, amount=int(amount) if amount is not None else None)


@dataclass(frozen=True)
class ScreenshotAction:
    kind: ClassVar[str] = "screenshot"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScreenshotAction:
        return cls()


@dataclass(frozen=True)
class ExecuteJavascriptAction:
    script: str

    kind: ClassVar[str] = "executeJavascript"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "script": self.script}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecuteJavascriptAction:
        return cls(script=str(_require(data, "script")))


@dataclass(frozen=True)
class WriteAction:
    text: str
    selector: str | None = None

    kind: ClassVar[str] = "write"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.kind, "text": self.text}
        if self.selector:
            payload["selector"] = self.selector
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WriteAction:
        selector = data.get("selector")
        return cls(text=str(_require(data, "text")), selector=str(selector) if selector else None)


@dataclass(frozen=True)
class PressAction:
    key: str

    kind: ClassVar[str] = "press"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "key": self.key}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PressAction:
        return cls(key=str(_require(data, "key")))


Action = Union[
    WaitAction,
    ClickAction,
    ScrollAction,
    ScreenshotAction,
    ExecuteJavascriptAction,
    WriteAction,
    PressAction,
]

_REGISTRY: dict[str, type] = {
    cls.kind: cls
    for cls in (
        WaitAction,
        ClickAction,
        ScrollAction,
        ScreenshotAction,
        ExecuteJavascriptAction,
        WriteAction,
        PressAction,
    )
}
# Short aliases accepted on the command line.
_REGISTRY["execute"] = ExecuteJavascriptAction
_REGISTRY["type"] = WriteAction

# Used by scrape-spa when no actions are given: let client-side rendering
# settle, then trigger lazy-loaded content.
DEFAULT_RENDER_ACTIONS: tuple[Action, ...] = (WaitAction(milliseconds=2000), ScrollAction("down"))


def parse_action(data: dict[str, Any]) -> Action:
    """Build an Action from its ``{"type": ..., ...}`` dict form.

    Raises:
        InvalidOptions: On an unknown type tag or a missing/invalid field.
    """
    if not isinstance(data, dict):
        raise InvalidOptions(f"Action must be an object, got {type(data).__name__}")
    tag = data.get("type")
    cls = _REGISTRY.get(str(tag))
    if cls is None:
        known = ", ".join(sorted(k for k in _REGISTRY if k not in ("execute", "type")))
        raise InvalidOptions(f"Unknown action type {tag!r}. Known types: {known}")
    try:
        return cls.from_dict(data)
    except (TypeError, ValueError) as exc:
        raise InvalidOptions(f"Invalid {tag} action: {exc}") from exc


def parse_actions(raw: str) -> list[Action]:
    """Parse actions from a JSON array string or a path to a JSON file."""
    text = raw
    candidate = Path(raw)
    if not raw.lstrip().startswith("[") and candidate.is_file():
        text = candidate.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidOptions(f"Actions must be a JSON array: {exc}") from exc
    if not isinstance(data, list):
        raise InvalidOptions("Actions must be a JSON array of objects")
    return [parse_action(item) for item in data]


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise InvalidOptions(f"{data.get('type')} action requires '{key}'")
    return data[key]
