from __future__ import annotations

import re
from pathlib import Path

import yaml

REPO_ROOT = Path(__file__).resolve().parents[3]
PUBLISH_WORKFLOW = REPO_ROOT / ".github" / "workflows" / "docker-publish.yml"


def _publish_job() -> dict:
    return yaml.safe_load(PUBLISH_WORKFLOW.read_text(encoding="utf-8"))["jobs"]["publish"]


def test_step_conditions_only_read_job_level_env() -> None:
    job = _publish_job()
    job_env = set(job.get("env") or {})

    for step in job["steps"]:
        condition = step.get("if", "")
        for name in re.findall(r"env\.([A-Za-z_][A-Za-z0-9_]*)", condition):
            assert name in job_env, f"{step.get('name')}: env.{name} is not visible to if:"


def test_publish_step_receives_registry_credentials() -> None:
    job = _publish_job()
    publish = next(step for step in job["steps"] if step.get("name") == "Build and publish")
    visible = set(job.get("env") or {}) | set(publish.get("env") or {})

    assert {"GITHUB_TOKEN", "DOCKERHUB_USERNAME", "DOCKERHUB_TOKEN"} <= visible
