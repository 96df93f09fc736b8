from dataclasses import dataclass
from uuid import UUID

from fastapi import Header, HTTPException, status


@dataclass(frozen=True)
class Principal:
    tenant_id: str
    user_id: str


def _parse_id(value: str | None, header: str) -> str:
    if not value:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Missing {header} header")
    try:
        return str(UUID(value))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid {header} header") from None


async def get_principal(
    x_tenant_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> Principal:
    # Set by the authenticating gateway in front of this service.
    return Principal(
        tenant_id=_parse_id(x_tenant_id, "X-Tenant-Id"),
        user_id=_parse_id(x_user_id, "X-User-Id"),
    )
