import logging
from typing import Any, Callable, Dict, Optional

from oms.errors import ConcurrentModificationError, NotFoundError
from oms.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

class LifecycleService:
    """
    Shared load / compare-and-set plumbing for the lifecycle services.

    A transition is a pure `decide(document) -> changes` function that
    raises when the document's state forbids it. The write is applied only
    if nobody changed the document since it was read.
    """
    async def _load(self, repo: BaseRepository, key: str, entity: str) -> Any:
        doc = await repo.get(key)
        if doc is None:
            raise NotFoundError(f"{entity} {key} not found", entity=entity, entity_id=key)
        return doc

    async def _transition(self,
                          repo: BaseRepository,
                          entity: str,
                          current: Any,
                          decide: Callable[[Any], Dict[str, Any]],
                          changes: Optional[Dict[str, Any]] = None) -> Any:
        if changes is None:
            changes = decide(current)
        updated = await repo.update_versioned(current, changes)
        if updated is not None:
            return updated

        # Lost the race. Re-read and re-check so the caller sees the state
        # the winner produced (e.g. AlreadyDecidedError), not a blind retry.
        key = getattr(current, repo.key_field)
        latest = await self._load(repo, key, entity)
        decide(latest)
        logger.warning(f"{entity} {key} changed concurrently (read version {current.version}, now {latest.version})")
        raise ConcurrentModificationError(
            f"{entity} {key} was modified concurrently; reload and try again",
            entity=entity,
            entity_id=key,
            current=str(latest.version),
            expected=str(current.version)
        )
