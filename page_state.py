from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, Tuple

import selector_defs as selectors
from punch_schedule import PunchType


class PagePhase(Enum):
    NEEDS_LOGIN = "needs_login"
    READY = "ready"
    LOADING = "loading"
    OFF_LANDING = "off_landing"


@dataclass(frozen=True)
class ButtonInfo:
    text: str
    class_name: str = ""
    visible: bool = True
    element: Any = None


@dataclass(frozen=True)
class PageSnapshot:
    url: str
    title: str = ""
    buttons: Tuple[ButtonInfo, ...] = ()

    @property
    def labels(self):
        return [b.text for b in self.buttons]


@dataclass(frozen=True)
class PageState:
    needs_login: bool
    on_landing: bool
    has_punch_in: bool
    has_punch_out: bool

    @property
    def ready(self) -> bool:
        return (self.has_punch_in or self.has_punch_out) and not self.needs_login

    @property
    def phase(self) -> PagePhase:
        if self.needs_login:
            return PagePhase.NEEDS_LOGIN
        if self.ready:
            return PagePhase.READY
        if self.on_landing:
            return PagePhase.LOADING
        return PagePhase.OFF_LANDING

    def as_dict(self) -> dict:
        return {
            "needsLogin": self.needs_login,
            "onWelcomePage": self.on_landing,
            "hasPunchIn": self.has_punch_in,
            "hasPunchOut": self.has_punch_out,
            "readyToPunch": self.ready,
        }


@dataclass(frozen=True)
class ButtonMatch:
    index: int
    label: str
    strategy: str


def take_snapshot(ctx) -> PageSnapshot:
    raw = ctx.driver.execute_script(selectors.SNAPSHOT_SCRIPT) or {}
    buttons = tuple(
        ButtonInfo(
            text=(b.get("text") or "").strip(),
            class_name=b.get("className") or "",
            visible=bool(b.get("visible")),
            element=b.get("element"),
        )
        for b in raw.get("buttons") or []
    )
    return PageSnapshot(url=raw.get("url") or "", title=raw.get("title") or "", buttons=buttons)


def resolve_button(labels: Sequence[str], punch_type: PunchType) -> Optional[ButtonMatch]:
    """Pick the button for ``punch_type``, loosening the match until one hits."""
    texts = [(label or "").strip() for label in labels]
    word = punch_type.word

    for i, text in enumerate(texts):
        if text == punch_type.label:
            return ButtonMatch(i, text, "exact")
    for i, text in enumerate(texts):
        if selectors.PUNCH_WORD in text and word in text:
            return ButtonMatch(i, text, "partial")
    for i, text in enumerate(texts):
        if word.lower() in text.lower():
            return ButtonMatch(i, text, "action")
    return None


class PageAdapter(ABC):
    """Everything that depends on the target page's wording lives behind this interface."""

    @abstractmethod
    def classify(self, snapshot: PageSnapshot) -> PageState:
        ...

    @abstractmethod
    def resolve(self, snapshot: PageSnapshot, punch_type: PunchType) -> Optional[ButtonMatch]:
        ...


class SecurTimeAdapter(PageAdapter):
    def __init__(self, landing_marker: str = selectors.LANDING_PATH_MARKER):
        self.landing_marker = landing_marker

    def classify(self, snapshot: PageSnapshot) -> PageState:
        labels = snapshot.labels
        needs_login = any(selectors.SIGN_IN_LABEL in t for t in labels)
        return PageState(
            needs_login=needs_login,
            on_landing=self.landing_marker in snapshot.url and not needs_login,
            has_punch_in=any(PunchType.IN.label in t for t in labels),
            has_punch_out=any(PunchType.OUT.label in t for t in labels),
        )

    def resolve(self, snapshot: PageSnapshot, punch_type: PunchType) -> Optional[ButtonMatch]:
        return resolve_button(snapshot.labels, punch_type)
