"""Known-kanji resolution and the visually-similar index.

Each stage is split into an I/O step (a paginated fetch) and a pure step that
turns already-fetched records into the result, so the filtering rules can be
tested without a network.
"""
import hashlib
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from .cache import KNOWN_KANJI_TTL_MS, TTLCache
from .errors import MalformedResponse
from .structured import IndexEntry
from .wanikani import WaniKaniClient

logger = logging.getLogger(__name__)

KNOWN_KANJI_CACHE_KEY = "wksimilar_knownkanji_cache"
INDEX_CACHE_PREFIX = "wksimilar_index_"
INDEX_TTL_MS = KNOWN_KANJI_TTL_MS


# ----------------------------------------------------------------------
# Pure stages
# ----------------------------------------------------------------------

def known_ids_from_assignments(records: Iterable[Dict[str, Any]]) -> Set[int]:
    """Project assignment records to their subject ids. Duplicates collapse."""
    ids: Set[int] = set()
    for record in records:
        data = record.get("data") if isinstance(record, dict) else None
        subject_id = data.get("subject_id") if isinstance(data, dict) else None
        if not isinstance(subject_id, int) or isinstance(subject_id, bool):
            raise MalformedResponse(f"Assignment record without a subject_id: {record!r}")
        ids.add(subject_id)
    return ids


def index_from_subjects(records: Iterable[Dict[str, Any]]) -> Dict[int, IndexEntry]:
    """Keep only subjects that have at least one visually similar subject.

    Every entry of the returned index has a non-empty ``similar_ids``.
    """
    index: Dict[int, IndexEntry] = {}
    for record in records:
        try:
            subject_id = int(record["id"])
            data = record["data"]
            similar = [int(i) for i in data.get("visually_similar_subject_ids") or []]
            character = data["characters"]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedResponse(f"Subject record has an unexpected shape: {record!r}") from e
        if not similar:
            continue
        index[subject_id] = IndexEntry(character=character, similar_ids=similar)
    return index


def eligible_ids(known_ids: Iterable[int], index: Dict[int, IndexEntry]) -> List[int]:
    """Known ids that have an index entry, sorted so seeded draws are reproducible."""
    return sorted(set(known_ids) & set(index))


def index_cache_key(known_ids: Iterable[int]) -> str:
    joined = ",".join(str(i) for i in sorted(set(known_ids)))
    return INDEX_CACHE_PREFIX + hashlib.sha256(joined.encode("utf-8")).hexdigest()


# ----------------------------------------------------------------------
# Fetching stages
# ----------------------------------------------------------------------

def resolve_known_ids(client: WaniKaniClient, cache: TTLCache, refresh: bool = False) -> Set[int]:
    """Subject ids of every kanji the learner has started, cached for three days."""
    if not refresh:
        cached = cache.get(KNOWN_KANJI_CACHE_KEY)
        if isinstance(cached, list):
            try:
                return {int(i) for i in cached}
            except (TypeError, ValueError) as e:
                logger.warning("Ignoring unreadable cached known kanji: %s", e)

    records = client.fetch_all(client.assignments_url())
    known = known_ids_from_assignments(records)
    logger.info("Resolved %d known kanji", len(known))
    cache.put(KNOWN_KANJI_CACHE_KEY, sorted(known), KNOWN_KANJI_TTL_MS)
    return known


def build_index(
    known_ids: Iterable[int],
    client: WaniKaniClient,
    cache: Optional[TTLCache] = None,
    refresh: bool = False,
) -> Dict[int, IndexEntry]:
    known = sorted(set(known_ids))
    # an empty ids= filter is not a valid query
    if not known:
        return {}

    key = index_cache_key(known)
    if cache is not None and not refresh:
        cached = cache.get(key)
        if isinstance(cached, dict):
            try:
                return {int(k): IndexEntry.from_json(v) for k, v in cached.items()}
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Ignoring unreadable cached index %s: %s", key, e)

    records = client.fetch_all(client.subjects_url(known))
    index = index_from_subjects(records)
    logger.info("Indexed %d of %d known kanji with similar kanji", len(index), len(known))
    if cache is not None:
        cache.put(key, {str(k): v.to_json() for k, v in index.items()}, INDEX_TTL_MS)
    return index
