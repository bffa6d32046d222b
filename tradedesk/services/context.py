"""
Request actor - who performs an operation, and from where
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass(frozen=True)
class Actor:
    actor_id: str = "system"
    role: str = "system"  # admin, staff, buyer, system
    buyer_id: Optional[UUID] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def is_buyer(self) -> bool:
        return self.role == "buyer"


SYSTEM_ACTOR = Actor()
