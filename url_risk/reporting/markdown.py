from __future__ import annotations

from datetime import datetime, timezone

from ..modules.scoring import severity_tier


def _provider_status(details: object) -> str:
    if not isinstance(details, dict):
        return "ok"
    if "error" in details:
        return f"failed ({details['error']})"
    if details.get("unavailable"):
        reason = details.get("reason")
        return f"unavailable ({reason})" if reason else "unavailable"
    if details.get("pending"):
        return "pending"
    return "ok"


def build_summary(wire: dict) -> str:
    score = wire.get("risk_score")
    tier = severity_tier(score).value if isinstance(score, int) else "n/a"
    technical = wire.get("technical_details") or {}

    lines = ["# URL Risk Summary", "", f"Generated: {datetime.now(timezone.utc).isoformat()}", ""]
    if wire.get("url"):
        lines.append(f"URL: {wire['url']}")
        lines.append("")

    lines.append("## Score")
    lines.append(f"- Risk score: {score if score is not None else 'n/a'}")
    lines.append(f"- Severity: {tier}")
    lines.append("")

    lines.append("## Summary")
    lines.append(wire.get("ai_summary") or "No summary available.")
    lines.append("")

    lines.append("## Providers")
    if not technical:
        lines.append("- No provider results.")
    for name, details in technical.items():
        lines.append(f"- {name}: {_provider_status(details)}")

    heuristics = wire.get("heuristics")
    if isinstance(heuristics, dict) and heuristics.get("reasons"):
        lines.append("")
        lines.append("## Lexical Heuristics")
        for reason in heuristics["reasons"]:
            lines.append(f"- {reason}")

    return "\n".join(lines)
