"""
Report builder: structured, console and file output for outcome groups.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .grouper import OutcomeGroup
from .utils import ensure_dir, safe_filename, setup_logging

logger = setup_logging("report")

SEPARATOR = "*" * 50


def describe_request(target, proxy: Optional[str] = None) -> Dict[str, Any]:
    """Consumer-facing description of a contributing target."""
    data = {
        "method": target.method,
        "url": target.url,
        "body": target.body,
        "cookies": list(target.cookies),
        "headers": list(target.headers),
        "redirects": target.redirects,
    }
    if proxy:
        data["proxy"] = proxy
    return data


def build_report(groups: List[OutcomeGroup], proxy: Optional[str] = None) -> List[Dict[str, Any]]:
    """Convert outcome groups into an ordered list of plain dicts."""
    report = []
    for group in groups:
        report.append(
            {
                "response": group.exemplar.to_dict(),
                "count": group.count,
                "similar": group.similar,
                "requests": [describe_request(t, proxy) for t in group.targets],
            }
        )
    return report


def dumps_report(report: Any, indent: Optional[int] = None) -> str:
    """
    Serialize a report to JSON.

    Bodies are often full HTML pages, so markup and non-ASCII characters are
    written as-is rather than escaped.
    """
    return json.dumps(report, ensure_ascii=False, indent=indent)


def render_text(groups: List[OutcomeGroup], proxy: Optional[str] = None) -> str:
    """Render outcome groups as the sequential console dump."""
    lines = ["Unique Responses:", ""]

    for group in groups:
        response = group.exemplar
        lines.append(SEPARATOR)
        lines.append("RESPONSE:")
        lines.append(f"[Status Code] {response.status_code}")
        lines.append(f"[Protocol] {response.protocol}")
        if response.headers:
            lines.append("[Headers]")
            for name, values in response.headers.items():
                lines.append(f"\t{name}: {values}")
        lines.append(f"[Location] {response.location}")
        lines.append("[Body]")
        lines.append(response.body_text)
        lines.append(f"Similar: {group.similar}")
        lines.append("REQUESTS:")
        for target in group.targets:
            lines.append(f"\tURL: {target.url}")
            lines.append(f"\tMethod: {target.method}")
            lines.append(f"\tBody: {target.body}")
            lines.append(f"\tCookies: {list(target.cookies)}")
            if proxy:
                lines.append(f"\tProxy: {proxy}")
            lines.append(f"\tRedirects: {str(target.redirects).lower()}")
            lines.append("")

    return "\n".join(lines)


class ResultManager:
    """
    Saves race test results as JSON and Markdown.

    Usage:
        manager = ResultManager(output_dir="results/")
        paths = manager.save(result, "race_example.com")
    """

    def __init__(self, output_dir: str = "results"):
        self.output_dir = Path(output_dir)
        ensure_dir(self.output_dir)

    def save(
        self,
        result,
        filename: Optional[str] = None,
        include_markdown: bool = True,
    ) -> Dict[str, str]:
        """
        Save a RaceTestResult to JSON and Markdown files.

        Returns dict with paths to saved files.
        """
        filename = safe_filename(filename or f"race_{result.started_at}")

        json_path = self.output_dir / f"{filename}.json"
        md_path = self.output_dir / f"{filename}.md"

        with open(json_path, "w", encoding="utf-8") as f:
            f.write(dumps_report(result.to_dict(), indent=2))
        logger.info(f"Saved JSON: {json_path}")

        paths = {"json": str(json_path)}

        if include_markdown:
            with open(md_path, "w", encoding="utf-8") as f:
                f.write(self._generate_markdown(result))
            logger.info(f"Saved Markdown: {md_path}")
            paths["markdown"] = str(md_path)

        return paths

    def _generate_markdown(self, result) -> str:
        """Generate Markdown summary from a race test result."""
        lines = []

        lines.append("# Race Test Results")
        lines.append("")
        lines.append(f"**Started:** {result.started_at}")
        lines.append(f"**Duration:** {result.duration:.2f}s")
        lines.append(f"**Requests:** {result.total_requests}")
        lines.append(f"**Responses:** {result.responses_received}")
        lines.append("")

        if len(result.groups) > 1:
            lines.append(f"## Status: {len(result.groups)} DISTINCT OUTCOMES")
        elif result.groups:
            lines.append("## Status: SINGLE OUTCOME")
        else:
            lines.append("## Status: NO RESPONSES")
        lines.append("")

        if result.groups:
            lines.append("| # | Status | Length | Count | Requests |")
            lines.append("|---|--------|--------|-------|----------|")
            for i, group in enumerate(result.groups, 1):
                length = "-" if group.exemplar.content_length is None else group.exemplar.content_length
                requests = ", ".join(f"{t.method} {t.url}" for t in group.targets)
                lines.append(
                    f"| {i} | {group.exemplar.status_code} | {length} | {group.count} | {requests} |"
                )
            lines.append("")

            for i, group in enumerate(result.groups, 1):
                lines.append(f"### {i}. HTTP {group.exemplar.status_code} x {group.count}")
                lines.append("")
                if group.exemplar.location:
                    lines.append(f"- **Location:** `{group.exemplar.location}`")
                body = group.exemplar.body_text
                lines.append("```")
                lines.append(body[:500])
                if len(body) > 500:
                    lines.append("... (truncated)")
                lines.append("```")
                lines.append("")

        if result.errors:
            lines.append("## Errors")
            lines.append("")
            for error in result.errors:
                lines.append(f"- {error}")
            lines.append("")

        return "\n".join(lines)
