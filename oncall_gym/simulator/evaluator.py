"""Scoring of a finished run against a scenario's ground truth.

The score is a weighted sum of three components, each in [0, 1]:

- mitigation: did the agent propose the correct fix (or an acceptable one)?
- evidence: did its significant observations cover the key evidence?
- efficiency: how few steps did it need?

``evaluate_run`` is a pure function; it reads the run and never changes it.
"""

import re
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from oncall_gym.workflows.run import DEFAULT_MAX_STEPS, ResolutionType, RunStatus


DEFAULT_WEIGHTS = {
    "mitigation": 0.5,
    "evidence": 0.3,
    "efficiency": 0.2,
}

KEYWORD_MATCH_RATIO = 0.75
EVIDENCE_MATCH_RATIO = 0.5

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9._-]*")

_STOPWORDS = frozenset({
    "a", "an", "and", "as", "at", "by", "for", "from", "in", "into", "is",
    "it", "of", "on", "or", "the", "this", "that", "to", "was", "were", "with",
})


class ScoreBreakdown(BaseModel):
    mitigation_score: float = Field(ge=0.0, le=1.0)
    evidence_score: float = Field(ge=0.0, le=1.0)
    efficiency_score: float = Field(ge=0.0, le=1.0)


class EvaluationResult(BaseModel):
    """Outcome of scoring one run."""

    success: bool
    score: float = Field(ge=0.0, le=1.0)
    breakdown: ScoreBreakdown
    matched_evidence: List[str] = Field(default_factory=list)
    missing_identifications: List[str] = Field(
        default_factory=list,
        description="must_identify items absent from the evidence (not scored)"
    )


def keywords(text: Optional[str]) -> FrozenSet[str]:
    """Lowercased content words of ``text``."""
    if not text:
        return frozenset()
    tokens = (t.rstrip("._-") for t in _TOKEN_RE.findall(text.lower()))
    return frozenset(t for t in tokens if t and t not in _STOPWORDS)


def mitigation_matches(proposed: str, expected: str) -> bool:
    """
    Fuzzy match of a proposed mitigation against an expected one.

    Matches when the proposal contains the expected text (case-insensitive)
    or when at least 75% of the expected mitigation's keywords appear in the
    proposal. A fragment of the expected text is not enough on its own.
    """
    proposed_text = proposed.strip().lower()
    expected_text = expected.strip().lower()
    if not proposed_text or not expected_text:
        return False
    if expected_text in proposed_text:
        return True

    expected_words = keywords(expected_text)
    if not expected_words:
        return False
    overlap = len(expected_words & keywords(proposed_text))
    return overlap / len(expected_words) >= KEYWORD_MATCH_RATIO


def _found_in(item: str, texts: Iterable[str]) -> bool:
    """True if one text holds at least half of ``item``'s keywords."""
    item_words = keywords(item)
    if not item_words:
        return False
    for text in texts:
        overlap = len(item_words & keywords(text))
        if overlap / len(item_words) >= EVIDENCE_MATCH_RATIO:
            return True
    return False


def _get(source: Any, key: str, default: Any = None) -> Any:
    if source is None:
        return default
    if isinstance(source, Mapping):
        return source.get(key, default)
    return getattr(source, key, default)


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def score_mitigation(
    resolution: Optional[Mapping[str, Any]],
    correct_mitigation: Optional[str],
    acceptable_mitigations: Iterable[str],
    partial_credit: float = 0.5,
) -> float:
    if not resolution:
        return 0.0
    if _enum_value(resolution.get("type")) != ResolutionType.MITIGATION_PROPOSED.value:
        return 0.0

    proposed = str(resolution.get("description") or "")
    if correct_mitigation and mitigation_matches(proposed, correct_mitigation):
        return 1.0
    if any(mitigation_matches(proposed, m) for m in acceptable_mitigations):
        return partial_credit
    return 0.0


def score_evidence(key_evidence: List[str], significant_summaries: List[str]) -> Dict[str, Any]:
    if not significant_summaries:
        return {"score": 0.0, "matched": []}
    if not key_evidence:
        return {"score": 1.0, "matched": []}

    matched = [item for item in key_evidence if _found_in(item, significant_summaries)]
    return {"score": len(matched) / len(key_evidence), "matched": matched}


def score_efficiency(step_count: int, max_steps: int) -> float:
    if max_steps <= 0:
        return 0.0
    return max(0.0, min(1.0, 1.0 - (step_count - 1) / max_steps))


def evaluate_run(
    run: Any,
    ground_truth: Any,
    success_criteria: Any = None,
    weights: Optional[Mapping[str, float]] = None,
    success_threshold: float = 0.5,
    partial_credit: float = 0.5,
) -> EvaluationResult:
    """
    Score a finished run.

    Args:
        run: A Run, or any object with the same status, step_count,
            resolution, observations and current_hypothesis attributes.
        ground_truth: GroundTruth model or mapping.
        success_criteria: SuccessCriteria model or mapping.
        weights: Component weights keyed mitigation/evidence/efficiency.
        success_threshold: Score the run must exceed to count as a success.
        partial_credit: Mitigation score for an acceptable, non-optimal fix.

    Returns:
        EvaluationResult with per-component breakdown.
    """
    weights = dict(weights or DEFAULT_WEIGHTS)

    resolution = run.resolution
    significant = [
        o.summary for o in (run.observations or ())
        if getattr(o, "significant", False)
    ]

    mitigation_score = score_mitigation(
        resolution,
        _get(ground_truth, "correct_mitigation"),
        _get(success_criteria, "acceptable_mitigations") or [],
        partial_credit=partial_credit,
    )

    evidence = score_evidence(list(_get(ground_truth, "key_evidence") or []), significant)

    max_steps = _get(success_criteria, "max_steps") or getattr(run, "max_steps", None) or DEFAULT_MAX_STEPS
    efficiency_score = score_efficiency(run.step_count, max_steps)

    score = (
        weights["mitigation"] * mitigation_score
        + weights["evidence"] * evidence["score"]
        + weights["efficiency"] * efficiency_score
    )
    score = round(min(1.0, max(0.0, score)), 4)

    resolved = (
        _enum_value(run.status) == RunStatus.COMPLETED.value
        and resolution is not None
        and _enum_value(resolution.get("type")) == ResolutionType.MITIGATION_PROPOSED.value
    )

    identification_texts = list(significant)
    hypothesis_description = _get(run.current_hypothesis, "description")
    if hypothesis_description:
        identification_texts.append(hypothesis_description)
    missing = [
        item for item in (_get(success_criteria, "must_identify") or [])
        if not _found_in(item, identification_texts)
    ]

    return EvaluationResult(
        success=resolved and score > success_threshold,
        score=score,
        breakdown=ScoreBreakdown(
            mitigation_score=mitigation_score,
            evidence_score=evidence["score"],
            efficiency_score=efficiency_score,
        ),
        matched_evidence=evidence["matched"],
        missing_identifications=missing,
    )
