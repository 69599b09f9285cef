"""Keeps the generated narrative and the numeric score from contradicting each other.

Two passes, always in this order:

1. ``narrative_floor`` reads severity cues out of the raw narrative and the
   score is raised to at least that floor.
2. ``reconcile`` replaces the narrative when its tone disagrees with the tier
   of the *final* score.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..models.results import SeverityTier
from .scoring import final_score, severity_tier

HIGH_FLOOR = 70
MEDIUM_FLOOR = 40

HIGH_CUES = (
    "avoid",
    "do not visit",
    "malware",
    "virus",
    "phishing",
    "ransomware",
    "dangerous",
    "harmful",
    "deceptive",
    "unsafe",
    "pirated",
    "cracked",
    "unofficial software",
)

MEDIUM_CUES = (
    "suspicious",
    "be cautious",
    "use caution",
    "unknown trust",
    "unverified",
    "potentially risky",
    "could be risky",
)

REASSURING_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (r"seems safe", r"safe to use", r"appears safe", r"likely safe", r"not flagged")
]
ALARMING_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (r"dangerous", r"high risk", r"malware", r"phishing")]

HIGH_DISCLAIMER = (
    "This site shows high-risk indicators from security checks. Avoid interacting or entering any credentials."
)
LOW_REASSURANCE = "No major issues detected from security checks. It appears safe, but use normal caution online."


@dataclass(frozen=True)
class Enforced:
    narrative: str
    score: int
    tier: SeverityTier
    floor: int


def narrative_floor(text: str) -> int:
    lowered = (text or "").lower()
    if any(cue in lowered for cue in HIGH_CUES):
        return HIGH_FLOOR
    if any(cue in lowered for cue in MEDIUM_CUES):
        return MEDIUM_FLOOR
    return 0


def reconcile(text: str, tier: SeverityTier) -> str:
    stripped = (text or "").strip()
    if not stripped:
        return stripped
    if tier == SeverityTier.high and any(p.search(stripped) for p in REASSURING_PATTERNS):
        return HIGH_DISCLAIMER
    if tier == SeverityTier.low and any(p.search(stripped) for p in ALARMING_PATTERNS):
        return LOW_REASSURANCE
    return stripped


def enforce(narrative: str, computed_score: int) -> Enforced:
    floor = narrative_floor(narrative)
    score = final_score(computed_score, floor)
    tier = severity_tier(score)
    return Enforced(narrative=reconcile(narrative, tier), score=score, tier=tier, floor=floor)
