"""
Proof photo reader.

WHAT: Confidence score for the photo backing a posted price
WHY: Price entries verify themselves when the proof is convincing enough
HOW: Protocol for readers; SimulatedProofReader stands in for a real OCR
     service and never looks at the image
"""

import random
from typing import Optional, Protocol

from ..models.entities import ProofCheck
from ..utils.logger import get_logger

logger = get_logger(__name__)

MIN_CONFIDENCE = 0.7
MAX_CONFIDENCE = 0.95
MATCH_BONUS = 0.1
PARTIAL_MATCH_CAP = 0.8
PRICE_MISREAD_RATE = 0.25


class ProofReadError(Exception):
    """The reader could not process the proof photo."""
    pass


class ProofReader(Protocol):
    """Anything that can score a proof photo against the posted item and price."""

    async def read(self, photo_url: str, item: str, price: float) -> ProofCheck:
        """
        Raises:
            ProofReadError: Photo could not be processed
        """
        ...


class SimulatedProofReader:
    """
    Fabricated readings in the 0.70-0.95 confidence band.

    The item always "matches"; the price is misread now and then, which caps
    confidence at 0.8.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    async def read(self, photo_url: str, item: str, price: float) -> ProofCheck:
        base = self._rng.uniform(MIN_CONFIDENCE, MAX_CONFIDENCE)
        price_match = self._rng.random() >= PRICE_MISREAD_RATE

        if price_match:
            confidence = min(base + MATCH_BONUS, MAX_CONFIDENCE)
        else:
            confidence = min(base, PARTIAL_MATCH_CAP)

        logger.debug(f"Simulated proof reading for {photo_url}: {confidence:.2f}")
        return ProofCheck(
            confidence=round(confidence, 2),
            extracted_text=f"MANDI PRICE LIST\n{item}: Rs {price}/kg",
            item_match=True,
            price_match=price_match,
        )
