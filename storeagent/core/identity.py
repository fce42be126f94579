"""Caller identity as handed over by the (external) auth layer."""

from dataclasses import dataclass

from storeagent.core.config import PRIVILEGED_ROLE, USER_ROLES


@dataclass(frozen=True)
class Caller:
    id: str
    role: str = "user"
    name: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("caller id is required")
        if self.role not in USER_ROLES:
            raise ValueError(f"unknown role {self.role!r}")

    @property
    def is_privileged(self) -> bool:
        return self.role == PRIVILEGED_ROLE
