"""
Prompt text loader with per-prompt TTL caching.

Prompts are read from the ``prompts`` collection first (live edits from the
admin UI), then from ``{prompts_dir}/{name}.prompt`` on disk. Every write
path here invalidates the affected prompt's cache.
"""
import asyncio
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from catalog_sync.core.cache import TTLCache
from catalog_sync.data.storage import CatalogRepository
from catalog_sync.utils.logger import get_logger

logger = get_logger("data.prompt_loader")

_PROMPT_NAME_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


def validate_prompt_name(name: str) -> str:
    if not name or not _PROMPT_NAME_RE.match(name):
        raise ValueError(f"Invalid prompt name: {name!r}")
    return name


class PromptLoader:
    def __init__(
        self,
        repository: CatalogRepository,
        prompts_dir: Union[str, Path] = "prompts",
        ttl_seconds: float = 300.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.repository = repository
        self.prompts_dir = Path(prompts_dir)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._caches: Dict[str, TTLCache[str]] = {}

    def _cache_for(self, name: str) -> TTLCache[str]:
        if name not in self._caches:
            self._caches[name] = TTLCache(f"prompt:{name}", self.ttl_seconds, clock=self._clock)
        return self._caches[name]

    def _prompt_path(self, name: str) -> Path:
        return self.prompts_dir / f"{name}.prompt"

    async def _read_file(self, name: str) -> str:
        return await asyncio.to_thread(self._prompt_path(name).read_text, encoding="utf-8")

    async def _load(self, name: str) -> str:
        try:
            content = await self.repository.get_prompt(name)
        except Exception as e:
            logger.warning(f"Stored prompt lookup failed for {name}, falling back to file: {e}")
            content = None

        if content is not None:
            logger.info(f"Prompt loaded from store: {name}")
            return content

        content = await self._read_file(name)
        logger.debug(f"Prompt loaded from file: {name}")
        return content

    async def load_prompt(self, name: str) -> str:
        validate_prompt_name(name)
        return await self._cache_for(name).get_or_load(lambda: self._load(name))

    async def save_prompt(self, name: str, content: str) -> None:
        validate_prompt_name(name)
        await self.repository.save_prompt(name, content)
        self._cache_for(name).invalidate()
        logger.info(f"Prompt saved: {name}")

    async def delete_prompt(self, name: str) -> None:
        validate_prompt_name(name)
        await self.repository.delete_prompt(name)
        self._cache_for(name).invalidate()
        logger.info(f"Prompt deleted: {name}")

    async def sync_file_to_store(self, name: str) -> None:
        """Copy the on-disk prompt into the store (overwriting any live edit)."""
        validate_prompt_name(name)
        content = await self._read_file(name)
        await self.save_prompt(name, content)
        logger.info(f"Synced file to store: {name}")

    async def list_prompts(self) -> List[str]:
        return await self.repository.list_prompts()

    def clear_cache(self) -> None:
        for cache in self._caches.values():
            cache.invalidate()
        self._caches.clear()
        logger.info("Prompt cache cleared")

    def cache_stats(self) -> Dict[str, object]:
        keys = sorted(name for name, cache in self._caches.items() if cache.is_valid())
        return {"size": len(keys), "keys": keys}
