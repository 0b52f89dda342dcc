import asyncio
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import aiohttp
from aiohttp import ClientTimeout

from .config import PORTRAIT_CONCURRENCY, logger
from .models import Question


def is_remote(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


async def fetch_portrait(
    ref: str,
    session: Optional[aiohttp.ClientSession] = None,
    timeout_s: int = 20,
) -> Optional[bytes]:
    """Return portrait bytes for a URL or local path, or None if unavailable."""
    if not is_remote(ref):
        path = Path(ref)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            logger.warning("[portrait] %s unreadable: %s", ref, exc)
            return None

    if session is None:
        async with aiohttp.ClientSession() as own_session:
            return await fetch_portrait(ref, own_session, timeout_s)

    try:
        async with session.get(ref, timeout=ClientTimeout(timeout_s)) as r:
            if r.status >= 400:
                logger.warning("[portrait] %s: HTTP %s", ref, r.status)
                return None
            data = await r.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.warning("[portrait] %s failed: %s", ref, exc)
        return None
    return data or None


def portraits_needed(questions: Iterable[Question]) -> List[str]:
    seen: Dict[str, None] = {}
    for q in questions:
        if q.shows_portrait and q.portrait:
            seen.setdefault(q.portrait, None)
    return list(seen)


async def prefetch_portraits(
    questions: Iterable[Question],
    concurrency: int = PORTRAIT_CONCURRENCY,
    timeout_s: int = 20,
) -> Dict[str, bytes]:
    refs = portraits_needed(questions)
    if not refs:
        return {}
    results: Dict[str, bytes] = {}

    async with aiohttp.ClientSession() as session:
        q: asyncio.Queue[str] = asyncio.Queue()
        for ref in refs:
            q.put_nowait(ref)

        async def worker(idx: int) -> None:
            while True:
                try:
                    ref = q.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    data = await fetch_portrait(ref, session, timeout_s)
                    if data:
                        results[ref] = data
                except Exception as exc:  # noqa: BLE001
                    logger.error("[Worker-%s] portrait %s failed: %s", idx, ref, exc)
                finally:
                    q.task_done()

        tasks = [asyncio.create_task(worker(i + 1)) for i in range(max(1, concurrency))]
        await q.join()
        await asyncio.gather(*tasks, return_exceptions=True)

    logger.info("[portrait] fetched %s of %s portraits", len(results), len(refs))
    return results
