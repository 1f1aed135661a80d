"""
Content Pool - Read-only prompts and questions per game kind.

The pool is an external collaborator of the state machine: machines ask it
for a random prompt (or a sample of questions) and store only the prompt id
and text in the session, never the pool itself.

StaticContentPool ships a small built-in catalogue so the engine can run
without a content service.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
import random

from ..engine_core.state import GameKind


@dataclass(frozen=True)
class Prompt:
    """One prompt, card, or question."""
    prompt_id: str
    text: str
    category: str | None = None
    spicy: bool = False
    options: tuple[str, ...] = ()


class ContentPool(ABC):
    """
    Provider of per-game-kind prompts.

    Non-spicy requests never return spicy items; spicy requests draw from
    everything.
    """

    @abstractmethod
    def items(
        self,
        game_kind: GameKind,
        spicy: bool = False,
        category: str | None = None,
    ) -> list[Prompt]:
        """All prompts matching the filters."""

    def get_prompt(
        self,
        game_kind: GameKind,
        spicy: bool = False,
        category: str | None = None,
        rng: random.Random | None = None,
    ) -> Prompt:
        """
        Draw one prompt uniformly at random.

        Raises LookupError if nothing matches.
        """
        pool = self.items(game_kind, spicy=spicy, category=category)
        if not pool:
            raise LookupError(f"No {category or 'any'} prompts for {game_kind.value}")
        return (rng or random).choice(pool)

    def sample(
        self,
        game_kind: GameKind,
        count: int,
        spicy: bool = False,
        rng: random.Random | None = None,
    ) -> list[Prompt]:
        """Draw up to ``count`` distinct prompts."""
        pool = self.items(game_kind, spicy=spicy)
        if not pool:
            raise LookupError(f"No prompts for {game_kind.value}")
        return (rng or random).sample(pool, min(count, len(pool)))

    def lookup(self, game_kind: GameKind, prompt_id: str) -> Prompt | None:
        for prompt in self.items(game_kind, spicy=True):
            if prompt.prompt_id == prompt_id:
                return prompt
        return None


class StaticContentPool(ContentPool):
    """
    In-process content pool.

    Usage:
        pool = StaticContentPool()                  # built-in catalogue
        pool = StaticContentPool({GameKind.QUIZ_GAME: [...]})  # custom
    """

    def __init__(self, catalogue: dict[GameKind, list[Prompt]] | None = None):
        self._catalogue = catalogue if catalogue is not None else default_catalogue()

    def items(
        self,
        game_kind: GameKind,
        spicy: bool = False,
        category: str | None = None,
    ) -> list[Prompt]:
        return [
            p for p in self._catalogue.get(game_kind, [])
            if (spicy or not p.spicy) and (category is None or p.category == category)
        ]


def _prompts(prefix: str, category: str, texts: list[str], spicy: bool = False) -> list[Prompt]:
    return [
        Prompt(prompt_id=f"{prefix}_{i + 1}", text=text, category=category, spicy=spicy)
        for i, text in enumerate(texts)
    ]


def default_catalogue() -> dict[GameKind, list[Prompt]]:
    """Built-in catalogue used when no content service is configured."""
    truths = _prompts("truth", "truth", [
        "What's one thing I do that always makes you smile?",
        "What was your first impression of me?",
        "What's your favorite memory of us together?",
        "What's something you've never told me but always wanted to?",
        "When did you first realize you loved me?",
        "What's one thing you wish we did more often?",
        "What song reminds you of us?",
    ])
    spicy_truths = _prompts("truth_spicy", "truth", [
        "What's a fantasy you've never shared with me?",
        "What's the most attractive thing I do without realizing it?",
    ], spicy=True)
    dares = _prompts("dare", "dare", [
        "Give your partner a 2-minute massage",
        "Write a short love poem for your partner right now",
        "Give your partner three genuine compliments",
        "Slow dance together for one song",
        "Look into each other's eyes for 60 seconds without laughing",
        "Plan a surprise date for next week right now",
        "Send your partner a sweet text message they can read later",
    ])
    spicy_dares = _prompts("dare_spicy", "dare", [
        "Whisper what you want to do to your partner later tonight",
        "Kiss your partner somewhere you never have before",
    ], spicy=True)

    plans = (
        _prompts("plans_romantic", "romantic", [
            "If we were together right now, the first thing I'd do is...",
            "Tonight, I would love to...",
            "The perfect evening with you would include...",
        ])
        + _prompts("plans_intimate", "intimate", [
            "The way I'd greet you at the door would be...",
            "The mood I'd set for us tonight involves...",
        ])
        + _prompts("plans_playful", "playful", [
            "Tonight's dress code for you would be...",
            "The soundtrack to our evening would be...",
        ])
        + _prompts("plans_spicy", "spicy", [
            "The thing I've been wanting to try with you is...",
            "I'd whisper in your ear that...",
        ], spicy=True)
    )

    this_or_that = [
        Prompt(prompt_id=f"tot_{i + 1}", text=f"{a} or {b}?", category=category, options=(a, b))
        for i, (a, b, category) in enumerate([
            ("Morning person", "Night owl", "lifestyle"),
            ("Netflix at home", "Night out dancing", "lifestyle"),
            ("Beach vacation", "Mountain getaway", "lifestyle"),
            ("Surprise date", "Planned romantic evening", "romance"),
            ("Love letters", "Voice messages", "romance"),
            ("Breakfast in bed", "Candlelit dinner", "romance"),
            ("Sweet treats", "Savory snacks", "food"),
            ("Cook together", "Order takeout", "food"),
            ("Road trip", "Flight to somewhere new", "adventure"),
            ("Skydiving", "Scuba diving", "adventure"),
        ])
    ]

    quiz = [
        Prompt(prompt_id=f"quiz_{i + 1}", text=text, category=category, options=tuple(options))
        for i, (text, options, category) in enumerate([
            ("What's their favorite way to relax?",
             ["Reading/Netflix", "Outdoors/Exercise", "Gaming/Hobbies", "Sleeping/Napping"], "preferences"),
            ("What's their biggest pet peeve?",
             ["Being late", "Messiness", "Loud noises", "Interruptions"], "about_them"),
            ("How do they prefer to receive love?",
             ["Words of affirmation", "Physical touch", "Quality time", "Acts of service"], "about_them"),
            ("What's their dream vacation?",
             ["Beach resort", "Mountain adventure", "City exploration", "Road trip"], "dreams"),
            ("How do they handle conflict?",
             ["Talk it out", "Need space first", "Avoid it", "Write it down"], "about_them"),
        ])
    ]

    return {
        GameKind.TRUTH_OR_DARE: truths + spicy_truths + dares + spicy_dares,
        GameKind.TONIGHTS_PLANS: plans,
        GameKind.THIS_OR_THAT: this_or_that,
        GameKind.QUIZ_GAME: quiz,
        GameKind.TWO_TRUTHS_ONE_LIE: [],
    }
