from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from settlement_engine.core.config import settings


@dataclass(frozen=True)
class Actor:
    """Who is performing a financial operation."""

    actor_type: str = "system"
    actor_id: str | None = None
    role: str | None = None
    ip_address: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is not None and self.role in settings.admin_roles


SYSTEM_ACTOR = Actor(actor_type="system", actor_id="system:scheduler")


def get_current_actor(request: Request) -> Actor:
    """Read the caller identity forwarded by the authenticating gateway.

    Authentication happens upstream; requests without identity headers are
    attributed to an anonymous API caller.
    """
    actor_type = request.headers.get("X-Actor-Type") or "api"
    if actor_type not in ("admin", "provider", "api", "system"):
        raise HTTPException(status_code=400, detail="Invalid X-Actor-Type header")

    return Actor(
        actor_type=actor_type,
        actor_id=request.headers.get("X-Actor-Id"),
        role=request.headers.get("X-Actor-Role"),
        ip_address=request.client.host if request.client else None,
    )


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Only admins may waive or delete settlements."""
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Elevated authorization required")
    return actor
