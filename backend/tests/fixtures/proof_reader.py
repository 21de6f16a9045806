"""
Proof reader fakes.

WHAT: Readers with a fixed confidence, or one that always fails
WHY: Auto-verification depends on the confidence; tests must choose it
HOW: Implements the ProofReader protocol and records every call
"""

from marketplace.models.entities import ProofCheck
from marketplace.services.proof_reader import ProofReadError


class FixedProofReader:
    """Returns the same reading for every photo."""

    def __init__(self, confidence: float = 0.9, fail: bool = False):
        self.confidence = confidence
        self.fail = fail
        self.calls = []

    async def read(self, photo_url: str, item: str, price: float) -> ProofCheck:
        self.calls.append((photo_url, item, price))
        if self.fail:
            raise ProofReadError("image could not be decoded")
        return ProofCheck(
            confidence=self.confidence,
            extracted_text=f"{item}: {price}",
            item_match=True,
            price_match=True,
        )
