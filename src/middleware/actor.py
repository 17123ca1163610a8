"""Actor context from identity-gateway headers.

Authentication happens upstream: the institution's identity gateway
forwards every request with ``X-Actor-Ref``, ``X-Actor-Role`` and
(optionally) ``X-Actor-Department``. This module turns those headers into
an :class:`ActorContext` FastAPI dependency. It does not verify the
identity itself.
"""

from __future__ import annotations

import structlog
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from src.models.actor import (
    ACTOR_DEPARTMENT_HEADER,
    ACTOR_REF_HEADER,
    ACTOR_ROLE_HEADER,
    ActorContext,
)
from src.models.enums import ActorRole, coerce_enum
from src.services.errors import AccessDeniedError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_actor_ref_header = APIKeyHeader(name=ACTOR_REF_HEADER, auto_error=False)
_actor_role_header = APIKeyHeader(name=ACTOR_ROLE_HEADER, auto_error=False)
_actor_department_header = APIKeyHeader(name=ACTOR_DEPARTMENT_HEADER, auto_error=False)


async def get_actor(
    request: Request,
    actor_ref: str | None = Security(_actor_ref_header),
    role: str | None = Security(_actor_role_header),
    department: str | None = Security(_actor_department_header),
) -> ActorContext:
    """FastAPI dependency returning the acting account.

    Raises 401 when the gateway headers are missing and 422 when the role
    is not one of ``reporter`` / ``reviewer``.
    """
    actor_ref = (actor_ref or "").strip()
    if not actor_ref or not role:
        logger.warning(
            "actor.missing_headers",
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=401,
            detail=f"Missing {ACTOR_REF_HEADER} / {ACTOR_ROLE_HEADER} headers.",
        )

    resolved = coerce_enum(ActorRole, role)
    if not isinstance(resolved, ActorRole):
        raise HTTPException(
            status_code=422,
            detail=f"Invalid {ACTOR_ROLE_HEADER} '{role}'; expected reporter or reviewer.",
        )

    actor = ActorContext(
        actor_ref=actor_ref,
        role=resolved,
        department=(department or "").strip() or None,
    )
    structlog.contextvars.bind_contextvars(actor_role=actor.role.value)
    return actor


async def require_reviewer(actor: ActorContext = Depends(get_actor)) -> ActorContext:
    """Dependency for reviewer-only endpoints."""
    if not actor.is_reviewer:
        raise AccessDeniedError("This endpoint is restricted to reviewers")
    return actor

