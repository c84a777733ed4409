from __future__ import annotations

import logging
import random
from typing import Protocol

logger = logging.getLogger(__name__)

FALLBACK_PROMPT = "Create something delicious and creative"

DEFAULT_PROMPTS_EN = [
    "A dish that tastes like nostalgia",
    "Something that feels like a rainy Tuesday afternoon",
    "A meal that reminds you of childhood",
    "A dish that represents your favorite season",
    "Something that tastes like home",
    "A meal inspired by your favorite book",
    "A dish that feels like a warm hug",
    "A meal that represents your cultural heritage",
    "Something that tastes like a thunderstorm",
    "A dish that feels like a snow day",
    "A meal inspired by golden hour",
    "Something that reminds you of summer vacation",
    "A dish that's as vibrant as a sunset",
    "Something that looks like edible art",
    "A meal that's monochromatic but delicious",
    "A dish inspired by the colors of the ocean",
    "Something with the perfect crunch",
    "A dish that melts in your mouth",
    "A meal that's both hot and cold",
    "A dish with layers of texture",
    "A dish that makes you feel sophisticated",
    "Something playful and fun",
    "A meal that's mysterious and intriguing",
    "Something rustic and hearty",
    "A meal fit for a fairy tale character",
    "Something a superhero would eat for breakfast",
    "A dish inspired by your favorite movie",
    "A meal that's like a plot twist",
    "Something made with only one pot",
    "A meal that's deceptively simple",
    "Something beautifully plated",
    "A dish that's unexpectedly sweet",
    "Something perfectly spicy",
    "A meal for a first date",
    "Something perfect for a picnic",
    "A dish for a midnight snack",
    "A meal from a country you've never visited",
    "Something inspired by a street food stall",
    "A dish using an ingredient you've never cooked with",
    "Something that looks like a garden",
]


class ContentGenerator(Protocol):
    def generate(self, context: dict) -> str: ...


def pick_prompt(prompts: list[str], previous: list[str] | None = None, rng: random.Random | None = None) -> str:
    """Random prompt, skipping ones the room has already seen while any are left."""
    r = rng or random
    seen = set(previous or [])
    fresh = [p for p in prompts if p not in seen]
    pool = fresh or prompts
    if not pool:
        return FALLBACK_PROMPT
    return r.choice(pool)


class TemplatePromptGenerator:
    def __init__(self, prompts: list[str] | None = None, rng: random.Random | None = None):
        self.prompts = list(prompts or DEFAULT_PROMPTS_EN)
        self._rng = rng

    def generate(self, context: dict) -> str:
        prompt = pick_prompt(self.prompts, context.get("previousPrompts"), self._rng)
        logger.info(
            "Generated prompt %r (room=%s, players=%s)",
            prompt,
            context.get("roomCode"),
            context.get("playerCount"),
        )
        return prompt
