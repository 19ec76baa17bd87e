"""Matching engine - random derangement for the draw.

Shuffles the participant list (Fisher-Yates via ``random.Random.shuffle``)
and rejects any shuffle with a fixed point, reshuffling from scratch. Every
derangement is equally likely; patching a fixed point locally would bias
the result. Roughly 1 in e shuffles has no fixed point, so the expected
number of shuffles is about 2.7 and the retry cap is only reached with a
broken random source.

The engine is stateless. Whether a game may be drawn at all (the ``drawn``
flag) is the caller's concern.
"""

import logging
import random
from collections.abc import Hashable, Sequence
from typing import TypeVar

from santa.core.errors import InsufficientParticipantsError, InternalInvariantError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)

MIN_PARTICIPANTS = 2
MAX_SHUFFLE_ATTEMPTS = 1000


class MatchingEngine:
    """Produces uniformly random derangements.

    Args:
        rng: Random source. Production passes ``random.SystemRandom()``;
            tests pass a seeded ``random.Random``.
        max_attempts: Shuffles tried before giving up.
    """

    def __init__(
        self,
        rng: random.Random,
        *,
        max_attempts: int = MAX_SHUFFLE_ATTEMPTS,
    ) -> None:
        self._rng = rng
        self._max_attempts = max_attempts

    def draw(self, participants: Sequence[T]) -> dict[T, T]:
        """Assign every participant a recipient other than themselves.

        Args:
            participants: Distinct participant identifiers.

        Returns:
            Mapping giver -> recipient. A permutation of the input with
            no fixed points.

        Raises:
            InsufficientParticipantsError: Fewer than two participants.
            ValueError: Duplicate identifiers in the input.
            InternalInvariantError: No derangement after max_attempts
                shuffles (random source is broken).
        """
        givers = list(participants)
        if len(givers) < MIN_PARTICIPANTS:
            raise InsufficientParticipantsError(len(givers), MIN_PARTICIPANTS)
        if len(set(givers)) != len(givers):
            msg = "Participant identifiers must be unique"
            raise ValueError(msg)

        for attempt in range(1, self._max_attempts + 1):
            recipients = givers.copy()
            self._rng.shuffle(recipients)
            if all(giver != recipient for giver, recipient in zip(givers, recipients)):
                logger.debug(
                    "Derangement of %d participants found after %d shuffle(s)",
                    len(givers),
                    attempt,
                )
                return dict(zip(givers, recipients))

        logger.error(
            "No derangement of %d participants after %d shuffles; "
            "random source is not behaving randomly",
            len(givers),
            self._max_attempts,
        )
        raise InternalInvariantError()


def draw(participants: Sequence[T], rng: random.Random | None = None) -> dict[T, T]:
    """Run a single draw with a fresh engine.

    Args:
        participants: Distinct participant identifiers.
        rng: Random source. Defaults to the OS CSPRNG.

    Returns:
        Mapping giver -> recipient with no fixed points.
    """
    return MatchingEngine(rng or random.SystemRandom()).draw(participants)
