from __future__ import annotations

from ..errors import ConflictError
from ..models import Module
from ..registry import Collection, ModelRegistry

_UNIQUE_TITLE = ("title",)


class ModuleService:
    def __init__(self, registry: ModelRegistry):
        self._modules: Collection[Module] = registry.get("Module")

    def create(self, *, title: str) -> Module:
        # Validation (empty/missing title) happens in the collection; the
        # title guard makes concurrent creates of one title fail with 409.
        try:
            return self._modules.insert({"title": title}, unique_on=_UNIQUE_TITLE)
        except ConflictError as e:
            raise ConflictError(
                message="module already present with same name",
                collection="Module",
                fields=_UNIQUE_TITLE,
            ) from e

    def search(self, *, title: str | None = None) -> list[Module]:
        """Newest first; ``title`` is a case-insensitive substring match."""
        needle = (title or "").strip().lower()
        items = self._modules.find()
        if needle:
            items = [m for m in items if needle in m.title.lower()]
        return sorted(items, key=lambda m: m.id, reverse=True)

    def get(self, module_id: str) -> Module | None:
        return self._modules.find_by_id(module_id)

    def rename(self, module_id: str, *, title: str) -> Module:
        # The collection moves the title guard; a taken title raises ConflictError.
        return self._modules.update(module_id, {"title": title})

    def delete(self, module_id: str) -> None:
        self._modules.remove(module_id)
