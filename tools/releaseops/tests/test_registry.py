from __future__ import annotations

from tools.releaseops.core.registry import (
    DEFAULT_TARGETS,
    RegistryTarget,
    evaluate_target,
    evaluate_targets,
)


def test_target_without_requirements_is_always_enabled() -> None:
    target = RegistryTarget("local", "registry.example.com/keygen-ui")

    status = evaluate_target(target, {})

    assert target.always_available
    assert status.enabled
    assert status.repository == "registry.example.com/keygen-ui"


def test_missing_secret_disables_target() -> None:
    target = RegistryTarget("hub", "docker.io/acme/keygen-ui", ("USER", "TOKEN"))

    status = evaluate_target(target, {"USER": "acme", "TOKEN": ""})

    assert not status.enabled
    assert "TOKEN" in status.reason


def test_placeholders_are_expanded_and_lowercased() -> None:
    statuses = evaluate_targets(
        DEFAULT_TARGETS,
        {
            "GITHUB_REPOSITORY": "Acme/Keygen-UI",
            "GITHUB_TOKEN": "ghs_token",
            "DOCKERHUB_USERNAME": "acme",
            "DOCKERHUB_TOKEN": "secret",
        },
    )

    assert [status.enabled for status in statuses] == [True, True]
    assert statuses[0].repository == "ghcr.io/acme/keygen-ui"
    assert statuses[1].repository == "docker.io/acme/keygen-ui"


def test_unset_placeholder_disables_target() -> None:
    statuses = evaluate_targets(DEFAULT_TARGETS, {})

    assert not any(status.enabled for status in statuses)
    assert "GITHUB_REPOSITORY" in statuses[0].reason


def test_ghcr_requires_a_token_even_with_a_repository() -> None:
    status = evaluate_targets(DEFAULT_TARGETS, {"GITHUB_REPOSITORY": "acme/keygen-ui"})[0]

    assert status.name == "ghcr"
    assert not status.enabled
    assert status.reason == "missing GITHUB_TOKEN"
