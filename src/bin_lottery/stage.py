from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from .errors import InvalidStage

HEIGHT = "height"
TIME = "time"


@dataclass(frozen=True)
class BlockInfo:
    """The host's reading of the chain: current height (slot) and unix time (seconds)."""

    height: int
    time: int


@dataclass(frozen=True)
class Scheduled:
    """A trigger point: at height >= value, or at time >= value."""

    unit: str
    value: int

    @staticmethod
    def at_height(height: int) -> "Scheduled":
        return Scheduled(HEIGHT, int(height))

    @staticmethod
    def at_time(time_s: int) -> "Scheduled":
        return Scheduled(TIME, int(time_s))

    def is_triggered(self, block: BlockInfo) -> bool:
        if self.unit == HEIGHT:
            return block.height >= self.value
        if self.unit == TIME:
            return block.time >= self.value
        raise InvalidStage(f"Unknown schedule unit: {self.unit!r}")

    def __add__(self, duration: "Duration") -> "Scheduled":
        if not isinstance(duration, Duration):
            return NotImplemented
        if duration.unit != self.unit:
            raise InvalidStage()
        return Scheduled(self.unit, self.value + duration.value)

    def to_dict(self) -> Dict[str, int]:
        return {f"at_{self.unit}": self.value}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Scheduled":
        if "at_height" in d:
            return Scheduled.at_height(d["at_height"])
        if "at_time" in d:
            return Scheduled.at_time(d["at_time"])
        raise InvalidStage(f"Unrecognised schedule: {d!r}")


@dataclass(frozen=True)
class Duration:
    unit: str
    value: int

    @staticmethod
    def height(blocks: int) -> "Duration":
        return Duration(HEIGHT, int(blocks))

    @staticmethod
    def time(seconds: int) -> "Duration":
        return Duration(TIME, int(seconds))

    def to_dict(self) -> Dict[str, int]:
        return {self.unit: self.value}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Duration":
        if HEIGHT in d:
            return Duration.height(d[HEIGHT])
        if TIME in d:
            return Duration.time(d[TIME])
        raise InvalidStage(f"Unrecognised duration: {d!r}")


@dataclass(frozen=True)
class Stage:
    start: Scheduled
    duration: Duration

    def validate(self) -> None:
        if self.start.unit not in (HEIGHT, TIME):
            raise InvalidStage(f"Unknown schedule unit: {self.start.unit!r}")
        if self.start.unit != self.duration.unit:
            raise InvalidStage()
        if self.start.value < 0 or self.duration.value < 0:
            raise InvalidStage("Stage start and duration must be non-negative")

    @property
    def end(self) -> Scheduled:
        return self.start + self.duration

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.to_dict(), "duration": self.duration.to_dict()}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Stage":
        return Stage(
            start=Scheduled.from_dict(d["start"]),
            duration=Duration.from_dict(d["duration"]),
        )


def has_started(stage: Stage, now: BlockInfo) -> bool:
    return stage.start.is_triggered(now)


def has_ended(stage: Stage, now: BlockInfo) -> bool:
    # Inclusive: at exactly `end` the stage is over.
    return stage.end.is_triggered(now)


def is_active(stage: Stage, now: BlockInfo) -> bool:
    return has_started(stage, now) and not has_ended(stage, now)
