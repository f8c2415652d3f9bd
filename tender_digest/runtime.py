"""Wire the component graph for one event loop and tear it down afterwards."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from .config import AppConfig
from .engine import PaginatedFetcher, SourceClient
from .engine.store import TenderStore, create_store
from .notify import EmailNotifier
from .orchestrator import ExtractionOrchestrator

T = TypeVar("T")


@dataclass
class Runtime:
    config: AppConfig
    client: SourceClient
    fetcher: PaginatedFetcher
    store: TenderStore
    notifier: EmailNotifier
    orchestrator: ExtractionOrchestrator

    async def aclose(self) -> None:
        try:
            if self.store.is_connected:
                await self.store.close()
        finally:
            await self.client.aclose()
            await self.notifier.aclose()


def build_runtime(config: AppConfig, base_dir: Path | None = None) -> Runtime:
    client = SourceClient(config.source)
    fetcher = PaginatedFetcher(client, page_delay=config.source.page_delay_seconds)
    store = create_store(config.database, base_dir)
    notifier = EmailNotifier(config.email, tz=config.scheduler.tzinfo)
    orchestrator = ExtractionOrchestrator(config, fetcher, store, notifier)
    return Runtime(
        config=config,
        client=client,
        fetcher=fetcher,
        store=store,
        notifier=notifier,
        orchestrator=orchestrator,
    )


@asynccontextmanager
async def open_runtime(config: AppConfig, base_dir: Path | None = None) -> AsyncIterator[Runtime]:
    runtime = build_runtime(config, base_dir)
    try:
        yield runtime
    finally:
        await runtime.aclose()


def run_with_runtime(
    config: AppConfig,
    action: Callable[[Runtime], Awaitable[T]],
    base_dir: Path | None = None,
) -> T:
    """Run ``action`` in a fresh event loop with a fresh runtime.

    Each call owns its clients, so scheduler jobs never share a client
    across event loops.
    """

    async def _main() -> T:
        async with open_runtime(config, base_dir) as runtime:
            return await action(runtime)

    return asyncio.run(_main())


__all__ = ["Runtime", "build_runtime", "open_runtime", "run_with_runtime"]
