"""Display-name generation for new connections.

Names look like ``SwiftFox42``: one adjective, one noun and a number below
``suffix_limit``. Uniqueness is not enforced; with 10 x 10 x 1000 combinations
collisions among a handful of live users are rare and tolerated.
"""
import random
from typing import Optional, Sequence

ADJECTIVES = (
    "Swift", "Bright", "Cool", "Wild", "Smart", "Quick", "Bold", "Calm", "Wise", "Pure"
)

NOUNS = (
    "Fox", "Eagle", "Tiger", "Wolf", "Bear", "Lion", "Hawk", "Owl", "Deer", "Cat"
)

DEFAULT_SUFFIX_LIMIT = 1000


class IdentityAllocator:
    """Draws random display names.

    Args:
        rng: Random source. Pass a seeded ``random.Random`` for reproducible names.
        suffix_limit: Exclusive upper bound of the numeric suffix.
        adjectives: Word list for the first part.
        nouns: Word list for the second part.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        suffix_limit: int = DEFAULT_SUFFIX_LIMIT,
        adjectives: Sequence[str] = ADJECTIVES,
        nouns: Sequence[str] = NOUNS,
    ) -> None:
        self._rng = rng or random.Random()
        self._suffix_limit = suffix_limit
        self._adjectives = tuple(adjectives)
        self._nouns = tuple(nouns)

    def allocate(self) -> str:
        """Return a fresh display name."""
        adjective = self._rng.choice(self._adjectives)
        noun = self._rng.choice(self._nouns)
        number = self._rng.randrange(self._suffix_limit)
        return f"{adjective}{noun}{number}"
