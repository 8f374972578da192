"""
Fuzzy prompt matching for Reverse-Hangman.
Scores a guess against the secret prompt by exact word overlap plus a small
synonym table and naive suffix stemming.
"""
import re
from dataclasses import dataclass, field

SEMANTIC_EQUIVALENTS = {
    "write": ["create", "compose", "draft", "make", "generate", "produce"],
    "explain": ["describe", "clarify", "elaborate", "detail", "illustrate"],
    "list": ["enumerate", "itemize", "name", "specify", "outline"],
    "design": ["create", "build", "develop", "construct", "architect"],
    "story": ["tale", "narrative", "account", "fiction", "plot"],
    "poem": ["verse", "poetry", "rhyme", "sonnet", "haiku"],
    "simple": ["easy", "basic", "straightforward", "elementary", "uncomplicated"],
    "using": ["with", "through", "via", "employing", "utilizing"],
}

EXACT_WEIGHT = 1.0
SEMANTIC_WEIGHT = 0.7

_PUNCTUATION_RE = re.compile(r"[^\w\s]", re.ASCII)
_SPACE_RE = re.compile(r"\s+")
_SUFFIX_RE = re.compile(r"ing$|ed$|s$|es$")


@dataclass
class MatchDetails:
    word_matches: int
    total_words: int
    matched_words: list[str] = field(default_factory=list)
    matched_word_positions: list[dict] = field(default_factory=list)
    missing_words: list[str] = field(default_factory=list)
    extra_words: list[str] = field(default_factory=list)
    semantic_matches: list[dict] = field(default_factory=list)
    position_template: str = ""


@dataclass
class MatchResult:
    percentage: float
    type: str  # exact | near | partial | semantic | incorrect
    details: MatchDetails


def normalize(text: str) -> str:
    text = _PUNCTUATION_RE.sub("", text.lower())
    return _SPACE_RE.sub(" ", text).strip()


def stem(word: str) -> str:
    return _SUFFIX_RE.sub("", word, count=1)


def semantically_similar(a: str, b: str) -> bool:
    if b in SEMANTIC_EQUIVALENTS.get(a, []) or a in SEMANTIC_EQUIVALENTS.get(b, []):
        return True
    stem_a = stem(a)
    return stem_a == stem(b) and len(stem_a) >= 3


class PromptMatcher:
    """match(guess, target) is not symmetric: the target's length is the yardstick."""

    def match(self, guess: str, target: str) -> MatchResult:
        norm_guess = normalize(guess)
        norm_target = normalize(target)

        if norm_guess == norm_target:
            return self._exact(norm_target)

        guess_words = norm_guess.split(" ")
        target_words = norm_target.split(" ")

        details = self._analyze(guess_words, target_words)
        percentage = self._percentage(details, len(guess_words), len(target_words))
        return MatchResult(percentage, self._band(percentage, details), details)

    def _exact(self, norm_target: str) -> MatchResult:
        words = norm_target.split(" ")
        return MatchResult(100, "exact", MatchDetails(
            word_matches=len(words),
            total_words=len(words),
            matched_words=list(words),
            matched_word_positions=[{"word": w, "position": i} for i, w in enumerate(words)],
            position_template=" ".join(words),
        ))

    def _analyze(self, guess_words: list[str], target_words: list[str]) -> MatchDetails:
        matched, positions, semantic = [], [], []
        used: set[int] = set()

        for word in guess_words:
            for j, target in enumerate(target_words):
                if j not in used and word == target:
                    matched.append(word)
                    positions.append({"word": word, "position": j})
                    used.add(j)
                    break

        for word in guess_words:
            if word in matched:
                continue
            for j, target in enumerate(target_words):
                if j not in used and semantically_similar(word, target):
                    semantic.append({"original": target, "matched": word, "position": j})
                    used.add(j)
                    break

        semantic_words = {s["matched"] for s in semantic}
        return MatchDetails(
            word_matches=len(matched) + len(semantic),
            total_words=len(target_words),
            matched_words=matched,
            matched_word_positions=positions,
            missing_words=[w for j, w in enumerate(target_words) if j not in used],
            extra_words=[w for w in guess_words if w not in matched and w not in semantic_words],
            semantic_matches=semantic,
            position_template=" ".join(w if j in used else "_" for j, w in enumerate(target_words)),
        )

    def _percentage(self, details: MatchDetails, guess_len: int, target_len: int) -> float:
        score = len(details.matched_words) * EXACT_WEIGHT + len(details.semantic_matches) * SEMANTIC_WEIGHT
        base = score / target_len * 100
        penalty = min(abs(guess_len - target_len) * 2, 10)
        return max(0.0, min(100.0, base - penalty))

    def _band(self, percentage: float, details: MatchDetails) -> str:
        if percentage == 100:
            return "exact"
        if percentage >= 90:
            return "near"
        if percentage >= 70:
            return "partial"
        if percentage >= 30 and details.semantic_matches:
            return "semantic"
        return "incorrect"
