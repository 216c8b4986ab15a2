from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List


@dataclass
class IndexEntry:
    character: str
    similar_ids: List[int]

    def to_json(self) -> Dict[str, Any]:
        return {"character": self.character, "similar_ids": list(self.similar_ids)}

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "IndexEntry":
        return cls(character=str(raw["character"]), similar_ids=[int(i) for i in raw["similar_ids"]])


@dataclass
class QuizRound:
    target_id: int
    choice_ids: FrozenSet[int]
    characters: List[str]  # display order, already shuffled
    correct_character: str
    prompt: str
    meanings: List[str] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        # correct_character stays server-side; the client only learns it by answering
        return {
            "target_id": self.target_id,
            "choice_ids": sorted(self.choice_ids),
            "characters": list(self.characters),
            "prompt": self.prompt,
        }
