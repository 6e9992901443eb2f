import uuid
from typing import Optional

from fastapi import Header

from ..errors import ValidationError


def get_actor_id(x_actor_id: Optional[str] = Header(None)) -> Optional[uuid.UUID]:
    """Acting user from the X-Actor-Id header; authentication happens upstream."""
    if not x_actor_id:
        return None
    try:
        return uuid.UUID(x_actor_id)
    except ValueError:
        raise ValidationError("X-Actor-Id must be a UUID")
