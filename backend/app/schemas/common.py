"""
Shared request fragments.
"""

from pydantic import BaseModel
from typing import Optional


class ActorRequest(BaseModel):
    """Body for actions that only need to know who performed them."""
    actor_id: Optional[int] = None
