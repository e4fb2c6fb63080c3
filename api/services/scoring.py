"""Application quality scoring."""

import re

from core.domain import ApplicationStatus, ScoringDetails
from core.rules import DEFAULT_SCORE_WEIGHTS, ScoreWeights

_WORD = re.compile(r"[A-Za-z]{4,}")


def calculate_score(
    resume_present: bool,
    cover_letter_length: int,
    status: ApplicationStatus,
    interview_count: int,
    weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
) -> ScoringDetails:
    """
    Compute the score breakdown from the application's signals.

    Every component is non-negative and each positive signal only ever adds
    points, so the total is monotone in resume presence, cover letter length
    and interview count.

    Args:
        resume_present: Whether a resume is on file
        cover_letter_length: Length of the typed cover letter
        status: Current status; only membership in ``weights.bonus_statuses`` matters
        interview_count: Number of interviews recorded
        weights: Score weights

    Returns:
        Score components
    """
    return ScoringDetails(
        base_score=weights.base,
        resume_score=weights.resume if resume_present else 0,
        cover_letter_score=(
            weights.cover_letter
            if cover_letter_length > weights.cover_letter_min_length
            else 0
        ),
        interview_score=weights.per_interview * max(interview_count, 0),
        bonus_points=weights.status_bonus if status in weights.bonus_statuses else 0,
    )


def clamp_score(details: ScoringDetails, weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS) -> int:
    return max(weights.min_score, min(weights.max_score, details.total))


def score(
    resume_present: bool,
    cover_letter_length: int,
    status: ApplicationStatus,
    interview_count: int,
    weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
) -> int:
    """Score in ``[min_score, max_score]`` for the given signals."""
    details = calculate_score(resume_present, cover_letter_length, status, interview_count, weights)
    return clamp_score(details, weights)


def analyze_cover_letter(text: str | None) -> dict:
    """
    Lightweight signals recorded with the submission.

    Returns:
        Length, a 0-100 length score and up to five distinct keywords
    """
    text = text or ""
    keywords: list[str] = []
    for word in _WORD.findall(text):
        word = word.lower()
        if word not in keywords:
            keywords.append(word)
        if len(keywords) == 5:
            break

    return {
        "length": len(text),
        "score": min(100, len(text) // 5),
        "keywords": keywords,
    }
