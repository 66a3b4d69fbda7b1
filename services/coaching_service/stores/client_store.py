from services.coaching_service.schemas import Client
from services.coaching_service.stores.base import EntityCollection


class ClientStore(EntityCollection[Client]):
    """The coach's client roster."""

    def needing_attention(self) -> list[Client]:
        return self.filter(lambda client: client.needs_attention)

    def search(self, text: str) -> list[Client]:
        needle = text.strip().lower()
        return self.filter(
            lambda c: needle in c.full_name.lower() or needle in (c.contact or "").lower()
        )
