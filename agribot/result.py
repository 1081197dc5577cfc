from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(Enum):
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    REJECTED = "rejected"
    CAPABILITY = "capability"


@dataclass(frozen=True)
class Ok:
    value: Any = None

    @property
    def ok(self):
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str = ""

    @property
    def ok(self):
        return False

    def __str__(self):
        return f"{self.kind.value}: {self.message}" if self.message else self.kind.value
