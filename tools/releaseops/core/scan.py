"""Vulnerability scan of the built image and findings delivery.

The image is built under the reserved ``<image>:scan`` tag, scanned with
Trivy, filtered to MEDIUM and above, rendered as SARIF and optionally
uploaded to GitHub code scanning.
"""

from __future__ import annotations

import base64
import enum
import gzip
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

import requests

from tools.releaseops.core.errors import FindingsUploadError
from tools.releaseops.core.runner import CommandRunner, RunnerError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"


class Severity(enum.IntEnum):
    UNKNOWN = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def parse(cls, raw: Any) -> "Severity":
        try:
            return cls[str(raw or "").strip().upper()]
        except KeyError:
            return cls.UNKNOWN


_SARIF_LEVELS = {
    Severity.CRITICAL: "error",
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "note",
    Severity.UNKNOWN: "note",
}


@dataclass(frozen=True)
class Finding:
    vulnerability_id: str
    package: str
    installed: str
    fixed: str
    severity: Severity
    title: str = ""
    target: str = ""


def trivy_command(image_ref: str) -> list[str]:
    return ["trivy", "image", "--format", "json", "--quiet", "--no-progress", image_ref]


def run_trivy(runner: CommandRunner, image_ref: str) -> list[Finding]:
    if not runner.dry_run:
        runner.require_command("trivy")
    result = runner.run(trivy_command(image_ref), capture_output=True)
    if result.stdout.strip() == "":
        return []
    try:
        payload = json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise RunnerError(f"trivy produced invalid JSON: {exc}") from exc
    return parse_trivy_report(payload)


def parse_trivy_report(payload: Mapping[str, Any]) -> list[Finding]:
    findings: list[Finding] = []
    for result in payload.get("Results") or []:
        target = str(result.get("Target", ""))
        for vuln in result.get("Vulnerabilities") or []:
            findings.append(
                Finding(
                    vulnerability_id=str(vuln.get("VulnerabilityID", "")),
                    package=str(vuln.get("PkgName", "")),
                    installed=str(vuln.get("InstalledVersion", "")),
                    fixed=str(vuln.get("FixedVersion", "")),
                    severity=Severity.parse(vuln.get("Severity")),
                    title=str(vuln.get("Title", "")),
                    target=target,
                )
            )
    return findings


def filter_findings(
    findings: Iterable[Finding],
    threshold: Severity = Severity.MEDIUM,
) -> list[Finding]:
    return [finding for finding in findings if finding.severity >= threshold]


def count_by_severity(findings: Iterable[Finding]) -> dict[str, int]:
    counts = {severity.name: 0 for severity in sorted(Severity, reverse=True)}
    for finding in findings:
        counts[finding.severity.name] += 1
    return counts


def to_sarif(findings: Iterable[Finding], *, image_ref: str) -> dict[str, Any]:
    rules: dict[str, dict[str, Any]] = {}
    results: list[dict[str, Any]] = []
    for finding in findings:
        rules.setdefault(
            finding.vulnerability_id,
            {
                "id": finding.vulnerability_id,
                "shortDescription": {"text": finding.title or finding.vulnerability_id},
                "properties": {"tags": ["vulnerability", finding.severity.name]},
            },
        )
        fixed = finding.fixed or "no fix available"
        results.append(
            {
                "ruleId": finding.vulnerability_id,
                "level": _SARIF_LEVELS[finding.severity],
                "message": {
                    "text": (
                        f"{finding.package} {finding.installed} "
                        f"({finding.severity.name}), fixed in: {fixed}"
                    )
                },
                "locations": [
                    {
                        "physicalLocation": {
                            "artifactLocation": {"uri": finding.target or image_ref}
                        }
                    }
                ],
            }
        )
    return {
        "$schema": SARIF_SCHEMA,
        "version": "2.1.0",
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": "Trivy",
                        "informationUri": "https://github.com/aquasecurity/trivy",
                        "rules": list(rules.values()),
                    }
                },
                "results": results,
            }
        ],
    }


def write_sarif(document: Mapping[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
    return path


def upload_sarif(
    document: Mapping[str, Any],
    *,
    repository: str,
    commit_sha: str,
    ref: str,
    token: str,
    api_url: str = GITHUB_API_URL,
    session: requests.Session | None = None,
    timeout: float = 30.0,
) -> str:
    """Upload SARIF to GitHub code scanning; returns the upload id."""

    if not (repository and commit_sha and ref and token):
        raise FindingsUploadError(
            "code-scanning",
            repository or "<unknown>",
            "GITHUB_REPOSITORY, GITHUB_SHA, GITHUB_REF and GITHUB_TOKEN are required",
        )

    encoded = base64.b64encode(gzip.compress(json.dumps(document).encode("utf-8")))
    payload = {"commit_sha": commit_sha, "ref": ref, "sarif": encoded.decode("ascii")}
    headers = {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    url = f"{api_url.rstrip('/')}/repos/{repository}/code-scanning/sarifs"

    if session is None:
        with requests.Session() as http:
            upload_id = _post_sarif(http, url, payload, headers, repository, timeout)
    else:
        upload_id = _post_sarif(session, url, payload, headers, repository, timeout)
    logger.info("uploaded SARIF to %s (id=%s)", repository, upload_id)
    return upload_id


def _post_sarif(
    http: requests.Session,
    url: str,
    payload: Mapping[str, str],
    headers: Mapping[str, str],
    repository: str,
    timeout: float,
) -> str:
    try:
        response = http.post(url, json=payload, headers=headers, timeout=timeout)
        response.raise_for_status()
        body = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise FindingsUploadError("code-scanning", repository, str(exc)) from exc
    if not isinstance(body, dict):
        raise FindingsUploadError("code-scanning", repository, f"unexpected response: {body!r}")
    return str(body.get("id", ""))
