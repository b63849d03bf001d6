"""Shared pytest fixtures for imagequalify test suite."""

from __future__ import annotations

import pathlib
from collections.abc import Callable
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client import V1Container, V1ObjectMeta, V1Pod, V1PodSpec

from imagequalify.models import RuleSet
from imagequalify.rules import build_rule_set


@pytest.fixture()
def mock_k8s_client() -> MagicMock:
    """Patch kubernetes.client API classes and return a mock bundle.

    Returns:
        A ``MagicMock`` with ``core_v1`` and ``api_client`` attributes
        representing the patched Kubernetes API clients.
    """
    with (
        patch("imagequalify.kubernetes_controller.kubernetes.client.CoreV1Api") as mock_core,
        patch("imagequalify.kubernetes_controller.kubernetes.client.ApiClient") as mock_api_client,
        patch("imagequalify.kubernetes_controller.kubernetes.client.Configuration") as mock_configuration,
        patch("imagequalify.kubernetes_controller.kubernetes.config.load_kube_config") as mock_load_kube_config,
        patch("imagequalify.kubernetes_controller.kubernetes.config.load_incluster_config") as mock_incluster,
    ):
        mock_configuration.get_default_copy.return_value = MagicMock()
        bundle = MagicMock()
        bundle.core_v1 = mock_core.return_value
        bundle.api_client = mock_api_client.return_value
        bundle.load_kube_config = mock_load_kube_config
        bundle.load_incluster_config = mock_incluster
        yield bundle


@pytest.fixture()
def sample_rules() -> dict[str, str]:
    """Return an overlapping rule mapping exercising every specificity tier.

    Returns:
        Dict mapping patterns to domains.
    """
    return {
        "repo/busybox": "production.io",
        "repo/busybox:v1*": "v1.io",
        "repo/busybox:*": "next.io",
        "*/*": "repo.io",
        "*": "default.io",
    }


@pytest.fixture()
def sample_rule_set(sample_rules: dict[str, str]) -> RuleSet:
    """Return ``sample_rules`` validated and prioritized."""
    return build_rule_set(sample_rules)


@pytest.fixture()
def rules_file(tmp_path: pathlib.Path) -> pathlib.Path:
    """Write a small rule-definition file and return its path."""
    path = tmp_path / "rules.txt"
    path.write_text(
        "# qualification rules\n"
        "\n"
        "repo/busybox      production.io\n"
        "repo/busybox:v1*  v1.io\n"
        "*/*               repo.io\n"
        "*                 default.io\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def make_pod() -> Callable[..., V1Pod]:
    """Return a factory building a ``V1Pod`` from container images.

    The factory takes ``images`` (app containers), optional ``init_images``
    and an optional pod ``name``.  Containers are named ``app-<i>`` and
    ``init-<i>``.
    """

    def _make_pod(
        images: list[str],
        init_images: list[str] | None = None,
        name: str = "web-7d9f8",
    ) -> V1Pod:
        return V1Pod(
            metadata=V1ObjectMeta(name=name, namespace="default"),
            spec=V1PodSpec(
                containers=[V1Container(name=f"app-{i}", image=image) for i, image in enumerate(images)],
                init_containers=[
                    V1Container(name=f"init-{i}", image=image) for i, image in enumerate(init_images or [])
                ]
                or None,
            ),
        )

    return _make_pod
