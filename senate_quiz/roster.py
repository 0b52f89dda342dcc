import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiohttp
from aiohttp import ClientTimeout

from .config import logger
from .models import Entity, Party, Seniority

REQUIRED_FIELDS = ("name", "state", "party", "seniority")


class RosterError(ValueError):
    pass


@dataclass(frozen=True)
class Roster:
    entities: Tuple[Entity, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "entities", tuple(self.entities))

    def __len__(self) -> int:
        return len(self.entities)

    def __iter__(self):
        return iter(self.entities)

    def __bool__(self) -> bool:
        return bool(self.entities)

    def states(self) -> List[str]:
        seen: Dict[str, None] = {}
        for entity in self.entities:
            seen.setdefault(entity.state, None)
        return list(seen)

    def by_state(self) -> Dict[str, List[Entity]]:
        groups: Dict[str, List[Entity]] = {}
        for entity in self.entities:
            groups.setdefault(entity.state, []).append(entity)
        return groups

    def matching(
        self,
        state: Optional[str] = None,
        party: Optional[Party] = None,
        seniority: Optional[Seniority] = None,
    ) -> List[Entity]:
        out = []
        for entity in self.entities:
            if state and entity.state != state:
                continue
            if party and entity.party is not party:
                continue
            if seniority and entity.seniority is not seniority:
                continue
            out.append(entity)
        return out

    def with_portraits(self) -> List[Entity]:
        return [e for e in self.entities if e.portrait]


def resolve_portrait(ref: Optional[str], portrait_base: str = "") -> Optional[str]:
    if not ref:
        return None
    if ref.startswith("http"):
        return ref
    return f"{portrait_base}{ref}"


def parse_entity(record: Dict[str, Any], portrait_base: str = "") -> Optional[Entity]:
    if not isinstance(record, dict):
        return None
    if not all(record.get(key) for key in REQUIRED_FIELDS):
        return None
    portrait = record.get("portrait") or record.get("portrait_image") or None
    return Entity(
        name=str(record["name"]).strip(),
        state=str(record["state"]).strip(),
        party=Party.coerce(record["party"]),
        seniority=Seniority.coerce(record["seniority"]),
        portrait=resolve_portrait(portrait, portrait_base),
    )


def parse_roster(records: Iterable[Any], portrait_base: str = "") -> Roster:
    entities: List[Entity] = []
    dropped = 0
    for record in records:
        entity = parse_entity(record, portrait_base)
        if entity is None:
            dropped += 1
            continue
        entities.append(entity)
    if dropped:
        logger.info("Dropped %s roster record(s) with missing fields", dropped)
    return Roster(tuple(entities))


def _decode(raw: str, source: str) -> List[Any]:
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise RosterError(f"Roster at {source} is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise RosterError(f"Roster at {source} must be a JSON array")
    return data


async def _fetch_text(url: str, timeout_s: int) -> str:
    async with aiohttp.ClientSession() as session:
        async with session.get(url, timeout=ClientTimeout(timeout_s)) as r:
            txt = await r.text()
            if r.status >= 400:
                raise RosterError(f"Roster fetch {url} failed with HTTP {r.status}: {(txt or '<empty>')[:200]}")
            return txt


async def load_roster(source: str, portrait_base: str = "", timeout_s: int = 30) -> Roster:
    """Load senators from a JSON file path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        try:
            raw = await _fetch_text(source, timeout_s)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RosterError(f"Roster fetch {source} failed: {exc}") from exc
    else:
        path = Path(source)
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as exc:
            raise RosterError(f"Could not read roster {source}: {exc}") from exc
    roster = parse_roster(_decode(raw, source), portrait_base)
    logger.info("Loaded %s senators from %s", len(roster), source)
    return roster
