"""Explicit actor context threaded into every service call.

Identity is established upstream by the institution's identity gateway;
this service only receives who is acting and in which role.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from src.models.enums import ActorRole

# Forwarded by the identity gateway on every request.
ACTOR_REF_HEADER = "X-Actor-Ref"
ACTOR_ROLE_HEADER = "X-Actor-Role"
ACTOR_DEPARTMENT_HEADER = "X-Actor-Department"


class ActorContext(BaseModel):
    """The account performing an operation."""

    model_config = {"frozen": True}

    actor_ref: str = Field(..., min_length=1, max_length=200)
    role: ActorRole
    department: str | None = None

    @property
    def is_reviewer(self) -> bool:
        return self.role == ActorRole.REVIEWER

    @property
    def is_reporter(self) -> bool:
        return self.role == ActorRole.REPORTER

    @classmethod
    def reporter(cls, actor_ref: str, department: str | None = None) -> ActorContext:
        return cls(actor_ref=actor_ref, role=ActorRole.REPORTER, department=department)

    @classmethod
    def reviewer(cls, actor_ref: str, department: str | None = None) -> ActorContext:
        return cls(actor_ref=actor_ref, role=ActorRole.REVIEWER, department=department)
