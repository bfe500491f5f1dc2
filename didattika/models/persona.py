"""Chat persona models"""

from enum import Enum
from typing import List

from pydantic import ConfigDict

from .base import CamelModel


class PersonaType(str, Enum):
    TUTOR = "tutor"
    DOCENTE = "docente"
    COACH = "coach"


class PersonaConfig(CamelModel):
    """Immutable persona definition; serialised with camelCase keys."""

    model_config = ConfigDict(frozen=True)

    id: PersonaType
    name: str
    display_name: str
    description: str
    icon: str
    color: str
    prompt: str
    characteristics: List[str]

    def public_view(self) -> dict:
        """Catalog entry without the system prompt."""
        return self.model_dump(mode="json", by_alias=True, exclude={"prompt"})
