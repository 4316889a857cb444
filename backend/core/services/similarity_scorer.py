"""
Similarity Scorer Service

Compares normalized live landmarks against a reference and reports the
fraction of reference landmarks that are within tolerance.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class SimilarityResult:
    """
    Outcome of one comparison.

    Attributes:
        score: matched / total, 0.0 to 1.0 (the pass/fail metric)
        matched: Reference landmarks within tolerance
        total: Reference landmark count (the denominator)
        mean_distance: Mean distance over landmarks present in both sets,
                       diagnostic only; None if none could be compared
    """
    score: float
    matched: int
    total: int
    mean_distance: Optional[float] = None


class SimilarityScorer:
    """
    Fraction-of-landmarks-matched similarity.

    A landmark matches when the Euclidean distance between its live and
    reference positions is <= tolerance. Landmarks absent from the live set
    count as unmatched; the denominator is always the reference's size.

    The score is a step function (it has plateaus); mean_distance gives a
    continuous view for debugging.

    All methods are static - no state needed.
    """

    @staticmethod
    def evaluate(
        live: Mapping[int, np.ndarray],
        reference: Mapping[int, np.ndarray],
        tolerance: float,
    ) -> SimilarityResult:
        total = len(reference)
        if total == 0 or len(live) != total:
            return SimilarityResult(score=0.0, matched=0, total=total)

        matched = 0
        distances = []
        for index, ref_position in reference.items():
            if index not in live:
                continue

            distance = float(np.linalg.norm(np.asarray(live[index]) - np.asarray(ref_position)))
            distances.append(distance)
            if distance <= tolerance:
                matched += 1

        mean_distance = sum(distances) / len(distances) if distances else None
        result = SimilarityResult(
            score=matched / total,
            matched=matched,
            total=total,
            mean_distance=mean_distance,
        )

        logger.debug(
            f"Similarity: matched={matched}/{total}, fraction={result.score:.3f}, "
            f"avgDist={mean_distance if mean_distance is not None else float('nan'):.3f}, "
            f"tolerance={tolerance:.3f}"
        )
        return result

    @staticmethod
    def score(
        live: Mapping[int, np.ndarray],
        reference: Mapping[int, np.ndarray],
        tolerance: float,
    ) -> float:
        """Fraction of reference landmarks matched, 0.0 to 1.0."""
        return SimilarityScorer.evaluate(live, reference, tolerance).score
