from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum, auto
from typing import List, Optional


class HealthLevel(Enum):
    OK = auto()
    ERROR = auto()


class HealthCode(Enum):
    INSECURE_CONTEXT = auto()
    PERMISSION_OR_DEVICE_FAILURE = auto()
    NO_VIDEO_TRACK = auto()
    INVALID_SOURCE = auto()


INSTRUCTIONS = {
    HealthCode.INSECURE_CONTEXT: [
        "Open the page over HTTPS or from localhost",
    ],
    HealthCode.PERMISSION_OR_DEVICE_FAILURE: [
        "Allow camera access when prompted",
        "Check that a camera is connected",
        "Flip the camera to try the other device",
    ],
    HealthCode.NO_VIDEO_TRACK: [
        "Check that the camera is not in use by another application",
        "Flip the camera to try the other device",
    ],
    HealthCode.INVALID_SOURCE: [
        "Select a physical camera instead of a screen or virtual source",
    ],
}


@dataclass(frozen=True)
class HealthStatus:
    level: HealthLevel
    code: Optional[HealthCode] = None
    message: Optional[str] = None
    instructions: List[str] | None = None
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def ok() -> "HealthStatus":
        return HealthStatus(level=HealthLevel.OK)

    @staticmethod
    def error(*, code: HealthCode, message: str) -> "HealthStatus":
        return HealthStatus(
            level=HealthLevel.ERROR,
            code=code,
            message=message,
            instructions=list(INSTRUCTIONS[code]),
        )

    def to_dict(self) -> dict:
        if self.level == HealthLevel.OK:
            return {"level": "OK"}

        return {
            "level": self.level.name,
            "code": self.code.name if self.code else None,
            "message": self.message,
            "instructions": self.instructions,
        }
