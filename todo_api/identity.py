"""
Caller identity resolved from a verified bearer token. Lives for a single request.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    subject: str

    def __str__(self) -> str:
        return self.subject
