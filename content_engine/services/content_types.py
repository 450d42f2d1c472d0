"""
Content type registry.

Drafts may only be created for registered content types.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..core import get_logger

logger = get_logger(__name__)


@dataclass
class ContentTypeDefinition:
    name: str
    plural_name: str = ""
    description: str = ""
    default_values: Dict[str, object] = field(default_factory=dict)

    def __post_init__(self):
        if not self.plural_name:
            self.plural_name = f"{self.name}s"


class ContentTypeRegistry:
    """Registered content types by name"""

    def __init__(self, names: Optional[Iterable[str]] = None):
        self._types: Dict[str, ContentTypeDefinition] = {}
        for name in names or []:
            self.register(ContentTypeDefinition(name=name))

    def register(self, definition: ContentTypeDefinition) -> None:
        self._types[definition.name] = definition
        logger.debug("Registered content type", content_type=definition.name)

    def unregister(self, name: str) -> None:
        self._types.pop(name, None)

    def exists(self, name: str) -> bool:
        return name in self._types

    def get(self, name: str) -> Optional[ContentTypeDefinition]:
        return self._types.get(name)

    def names(self) -> List[str]:
        return sorted(self._types)
