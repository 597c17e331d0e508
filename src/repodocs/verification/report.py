"""Markdown rendering of verification results."""

from repodocs.models.verification import VerificationSummary


def generate_verification_report(summary: VerificationSummary) -> str:
    """Render a human-readable Markdown report."""
    lines = [
        "# Documentation Verification Report",
        "",
        "## Summary",
        "",
        f"- **Overall Score**: {summary.overall_score}%",
        f"- **Total Pages**: {summary.total_pages}",
        f"- **Fully Verified**: {summary.fully_verified}",
        f"- **Needs Review**: {summary.needs_review}",
        f"- **Evidence Verified**: {summary.verified_evidence}/{summary.total_evidence}",
        "",
    ]

    flagged = [p for p in summary.pages if p.needs_review]
    if flagged:
        lines += ["## Pages Needing Review", ""]
        for page in flagged:
            lines.append(f"### {page.title} (`{page.slug}`)")
            lines.append("")
            lines.append(
                f"Score: {page.verification_score}% "
                f"({page.verified_count}/{page.total_evidence} evidence verified)"
            )
            lines.append("")
            for issue in page.issues:
                lines.append(f"- **{issue.severity}** ({issue.type}): {issue.message}")
            lines.append("")

    verified = [p for p in summary.pages if not p.needs_review]
    if verified:
        lines += ["## Verified Pages", ""]
        for page in verified:
            lines.append(f"- {page.title} (`{page.slug}`): {page.verification_score}%")
        lines.append("")

    return "\n".join(lines)
