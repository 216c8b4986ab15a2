"""Multiple-choice rounds over visually similar kanji.

A round picks one eligible kanji at random, offers it together with all of
its visually similar kanji in a shuffled order, and asks for the one that
matches the target's meanings.
"""
import logging
import random
from typing import Any, Dict, List, Optional, Sequence, Set

from .cache import TTLCache
from .errors import MalformedResponse, NoMoreRounds, RoundNotReady
from .index import build_index, eligible_ids, resolve_known_ids
from .structured import IndexEntry, QuizRound
from .wanikani import WaniKaniClient

logger = logging.getLogger(__name__)

IDLE = "idle"
ROUND_READY = "round_ready"


class QuizEngine:
    def __init__(self, client: WaniKaniClient, rng: Optional[random.Random] = None):
        self.client = client
        self.rng = rng or random.Random()
        self.current: Optional[QuizRound] = None

    @property
    def state(self) -> str:
        return ROUND_READY if self.current is not None else IDLE

    def next_round(self, eligible: Sequence[int], index: Dict[int, IndexEntry]) -> QuizRound:
        """Build a new round, replacing any round still waiting for an answer.

        Raises NoMoreRounds, without touching the network, when `eligible` is empty.
        """
        self.current = None
        if not eligible:
            raise NoMoreRounds("No kanji with visually similar kanji left to quiz")

        target_id = self.rng.choice(list(eligible))
        choice_ids = frozenset(index[target_id].similar_ids) | {target_id}
        records = self.client.fetch_all(self.client.subjects_url(sorted(choice_ids)))

        characters: List[str] = []
        target: Optional[Dict[str, Any]] = None
        for record in records:
            if not isinstance(record, dict):
                raise MalformedResponse(f"Subject record is not an object: {record!r}")
            data = record.get("data")
            if not isinstance(data, dict):
                raise MalformedResponse(f"Subject {record.get('id')!r} has no data object")
            character = data.get("characters")
            if not isinstance(character, str):
                raise MalformedResponse(f"Subject {record.get('id')!r} has no characters")
            characters.append(character)
            if record.get("id") == target_id:
                target = data
        if target is None:
            raise MalformedResponse(f"Target subject {target_id} missing from choices response")

        meanings = [m["meaning"] for m in target.get("meanings") or [] if isinstance(m, dict) and m.get("meaning")]
        # Random.shuffle is a Fisher-Yates permutation
        self.rng.shuffle(characters)

        self.current = QuizRound(
            target_id=target_id,
            choice_ids=choice_ids,
            characters=characters,
            correct_character=target["characters"],
            prompt=", ".join(meanings),
            meanings=meanings,
        )
        logger.debug("Round ready: target=%d choices=%d", target_id, len(characters))
        return self.current

    def answer(self, character: str) -> bool:
        """Score a selection and end the round. Only one selection per round."""
        if self.current is None:
            raise RoundNotReady("No round is waiting for an answer")
        correct = character == self.current.correct_character
        self.current = None
        return correct


class QuizSession:
    """Everything one quiz session needs, owned in one place.

    Built once at session start; the known ids and index are read-only until
    `refresh()` rebuilds them.
    """

    def __init__(self, client: WaniKaniClient, cache: TTLCache, rng: Optional[random.Random] = None):
        self.client = client
        self.cache = cache
        self.engine = QuizEngine(client, rng=rng)
        self.known_ids: Set[int] = set()
        self.index: Dict[int, IndexEntry] = {}
        self.eligible: List[int] = []

    @classmethod
    def start(
        cls,
        client: WaniKaniClient,
        cache: TTLCache,
        rng: Optional[random.Random] = None,
        refresh: bool = False,
    ) -> "QuizSession":
        session = cls(client, cache, rng=rng)
        session.load(refresh=refresh)
        return session

    def load(self, refresh: bool = False) -> None:
        known = resolve_known_ids(self.client, self.cache, refresh=refresh)
        index = build_index(known, self.client, cache=self.cache, refresh=refresh)
        self.known_ids = known
        self.index = index
        self.eligible = eligible_ids(known, index)
        self.engine.current = None
        logger.info("Session ready: %d known, %d eligible", len(self.known_ids), len(self.eligible))

    def refresh(self) -> None:
        self.load(refresh=True)

    @property
    def current(self) -> Optional[QuizRound]:
        return self.engine.current

    def next_round(self) -> QuizRound:
        return self.engine.next_round(self.eligible, self.index)

    def answer(self, character: str) -> bool:
        return self.engine.answer(character)
