"""Unit tests for the CLI argument parsing and commands in imagequalify.cli."""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
from collections.abc import Callable
from unittest.mock import MagicMock, mock_open, patch

import pytest
from kubernetes.client import V1Pod

from imagequalify.cli import (
    _get_current_namespace,
    _setup_logging,
    main,
    parse_args,
    run_audit,
    run_qualify,
    run_rules,
)
from imagequalify.kubernetes_controller import KubernetesControllerException

# ---------------------------------------------------------------------------
# Argument parsing tests
# ---------------------------------------------------------------------------


class TestParseArgs:
    """Tests for CLI argument parsing via ``parse_args``."""

    def test_parse_args_qualify(self) -> None:
        """Verify the qualify command collects the rule file and images."""
        args = parse_args(["qualify", "rules.txt", "nginx", "repo/app:v1"])

        assert args.command == "qualify"
        assert args.rules == "rules.txt"
        assert args.images == ["nginx", "repo/app:v1"]
        assert args.json is False
        assert args.verbose is False
        assert args.handler is run_qualify

    def test_parse_args_qualify_json_and_verbose(self) -> None:
        """Verify global and command flags are parsed."""
        args = parse_args(["--verbose", "qualify", "--json", "rules.txt", "nginx"])

        assert args.verbose is True
        assert args.json is True

    def test_parse_args_qualify_requires_image(self) -> None:
        """Verify at least one image is required."""
        with pytest.raises(SystemExit):
            parse_args(["qualify", "rules.txt"])

    def test_parse_args_rules(self) -> None:
        """Verify the rules command takes just the rule file."""
        args = parse_args(["rules", "rules.yaml"])

        assert args.rules == "rules.yaml"
        assert args.handler is run_rules

    def test_parse_args_audit_defaults(self) -> None:
        """Verify audit defaults: namespace from the environment, no context, TLS verified."""
        with patch("imagequalify.cli._get_current_namespace", return_value="team-ns"):
            args = parse_args(["audit", "rules.txt"])

        assert args.namespace == "team-ns"
        assert args.context is None
        assert args.insecure is False
        assert args.handler is run_audit

    def test_parse_args_audit_explicit(self) -> None:
        """Verify explicit audit options override the defaults."""
        args = parse_args(["audit", "rules.txt", "--context", "kind-dev", "--namespace", "apps", "--insecure"])

        assert args.context == "kind-dev"
        assert args.namespace == "apps"
        assert args.insecure is True

    def test_parse_args_command_required(self) -> None:
        """Verify a command must be given."""
        with pytest.raises(SystemExit):
            parse_args([])

    def test_parse_args_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Verify ``--version`` prints the package version and exits."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "0.1.0" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Namespace resolution tests
# ---------------------------------------------------------------------------


class TestGetCurrentNamespace:
    """Tests for ``_get_current_namespace`` resolution logic."""

    def test_get_current_namespace_from_kubeconfig(self) -> None:
        """Verify namespace is read from kubeconfig active context."""
        mock_active_context = {
            "context": {"namespace": "production"},
        }
        with patch("kubernetes.config.list_kube_config_contexts", return_value=([], mock_active_context)):
            result = _get_current_namespace()

        assert result == "production"

    def test_get_current_namespace_in_cluster(self) -> None:
        """Verify namespace is read from in-cluster service account file."""
        with (
            patch("kubernetes.config.list_kube_config_contexts", side_effect=Exception("no kubeconfig")),
            patch("builtins.open", mock_open(read_data="kube-system\n")),
        ):
            result = _get_current_namespace()

        assert result == "kube-system"

    def test_get_current_namespace_fallback(self) -> None:
        """Verify fallback to 'default' when both kubeconfig and in-cluster fail."""
        with (
            patch("kubernetes.config.list_kube_config_contexts", side_effect=Exception("no kubeconfig")),
            patch("builtins.open", side_effect=FileNotFoundError),
        ):
            result = _get_current_namespace()

        assert result == "default"


# ---------------------------------------------------------------------------
# Logging setup tests
# ---------------------------------------------------------------------------


class TestSetupLogging:
    """Tests for ``_setup_logging`` configuration."""

    def test_setup_logging(self) -> None:
        """Verify _setup_logging configures root logger with basicConfig."""
        with patch("logging.basicConfig") as mock_basic_config:
            _setup_logging()

        mock_basic_config.assert_called_once()
        call_kwargs = mock_basic_config.call_args[1]
        assert call_kwargs["level"] == logging.INFO

    def test_setup_logging_verbose(self) -> None:
        """Verify verbose mode enables DEBUG level."""
        with patch("logging.basicConfig") as mock_basic_config:
            _setup_logging(verbose=True)

        assert mock_basic_config.call_args[1]["level"] == logging.DEBUG


# ---------------------------------------------------------------------------
# qualify command tests
# ---------------------------------------------------------------------------


class TestRunQualify:
    """Tests for ``run_qualify``."""

    def test_prints_qualified_images(self, rules_file: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Verify matched images are qualified and unmatched images echoed unchanged."""
        args = argparse.Namespace(
            rules=str(rules_file), images=["repo/busybox:v1.2", "nginx", "org/team/app"], json=False
        )

        exit_code = run_qualify(args)

        assert exit_code == 0
        assert capsys.readouterr().out.splitlines() == [
            "v1.io/repo/busybox:v1.2",
            "default.io/nginx",
            "org/team/app",
        ]

    def test_prints_json(self, rules_file: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Verify ``--json`` prints one object per image."""
        args = argparse.Namespace(rules=str(rules_file), images=["repo/app", "a/b/c"], json=True)

        exit_code = run_qualify(args)

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) == [
            {"image": "repo/app", "domain": "repo.io", "qualified": "repo.io/repo/app"},
            {"image": "a/b/c", "domain": "", "qualified": ""},
        ]

    def test_invalid_image_sets_exit_code(
        self, rules_file: pathlib.Path, capsys: pytest.CaptureFixture[str], caplog: pytest.LogCaptureFixture
    ) -> None:
        """Verify invalid or already-qualified images are logged and fail the run."""
        args = argparse.Namespace(
            rules=str(rules_file), images=["Nginx", "docker.io/library/nginx", "nginx"], json=False
        )

        exit_code = run_qualify(args)

        assert exit_code == 1
        assert capsys.readouterr().out.splitlines() == ["default.io/nginx"]
        assert "Invalid image 'Nginx': repository name must be lowercase" in caplog.text
        assert "Invalid image 'docker.io/library/nginx': image already has a domain component" in caplog.text

    def test_bad_rules_file(self, tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture) -> None:
        """Verify a rule file with an invalid line is reported and fails the run."""
        path = tmp_path / "rules.txt"
        path.write_text("a b c\n", encoding="utf-8")
        args = argparse.Namespace(rules=str(path), images=["nginx"], json=False)

        assert run_qualify(args) == 1
        assert f"{path}:1: 'a b c': invalid field count 3" in caplog.text

    def test_missing_rules_file(self, tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture) -> None:
        """Verify an unreadable rule file is reported and fails the run."""
        args = argparse.Namespace(rules=str(tmp_path / "missing.txt"), images=["nginx"], json=False)

        assert run_qualify(args) == 1
        assert "Failed to read rules from" in caplog.text


# ---------------------------------------------------------------------------
# rules command tests
# ---------------------------------------------------------------------------


class TestRunRules:
    """Tests for ``run_rules``."""

    def test_prints_rules_in_priority_order(
        self, rules_file: pathlib.Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Verify rules are printed in the order they are tried."""
        exit_code = run_rules(argparse.Namespace(rules=str(rules_file)))

        assert exit_code == 0
        assert capsys.readouterr().out.splitlines() == [
            "repo/busybox\tproduction.io",
            "repo/busybox:v1*\tv1.io",
            "*/*\trepo.io",
            "*\tdefault.io",
        ]

    def test_structured_config(self, tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Verify YAML configs are accepted by suffix."""
        path = tmp_path / "rules.yaml"
        path.write_text("'*': default.io\n'repo/*': repo.io\n", encoding="utf-8")

        assert run_rules(argparse.Namespace(rules=str(path))) == 0
        assert capsys.readouterr().out.splitlines() == ["repo/*\trepo.io", "*\tdefault.io"]


# ---------------------------------------------------------------------------
# audit command tests
# ---------------------------------------------------------------------------


class TestRunAudit:
    """Tests for ``run_audit``."""

    @staticmethod
    def _args(rules_file: pathlib.Path) -> argparse.Namespace:
        return argparse.Namespace(rules=str(rules_file), context=None, namespace="apps", insecure=False)

    def test_audit_passes(
        self,
        rules_file: pathlib.Path,
        make_pod: Callable[..., V1Pod],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Verify a namespace whose bare images all match passes and prints a JSON report."""
        with patch("imagequalify.cli.KubernetesController") as mock_controller:
            mock_controller.return_value.list_pods.return_value = [make_pod(["nginx", "registry.io/app"])]
            exit_code = run_audit(self._args(rules_file))

        assert exit_code == 0
        mock_controller.assert_called_once_with(context=None, insecure=False)
        mock_controller.return_value.list_pods.assert_called_once_with(namespace="apps")
        report = json.loads(capsys.readouterr().out)
        assert report["status"] == "PASS"
        assert report["context"] == "in-cluster"
        assert report["namespace"] == "apps"
        assert report["summary"]["rewritable_containers"] == 1

    def test_audit_fails_on_unmatched(
        self,
        rules_file: pathlib.Path,
        make_pod: Callable[..., V1Pod],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Verify an unmatched bare image fails the audit."""
        with patch("imagequalify.cli.KubernetesController") as mock_controller:
            mock_controller.return_value.list_pods.return_value = [make_pod(["org/team/app"])]
            exit_code = run_audit(self._args(rules_file))

        assert exit_code == 1
        assert json.loads(capsys.readouterr().out)["status"] == "FAIL"

    def test_cluster_error(self, rules_file: pathlib.Path, caplog: pytest.LogCaptureFixture) -> None:
        """Verify cluster access failures return exit code 2."""
        with patch(
            "imagequalify.cli.KubernetesController",
            side_effect=KubernetesControllerException("no cluster"),
        ):
            exit_code = run_audit(self._args(rules_file))

        assert exit_code == 2
        assert "Cluster access failed: no cluster" in caplog.text

    def test_incomplete_listing_is_an_error(
        self,
        rules_file: pathlib.Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Verify a pod listing that cannot finish yields exit code 2 and no report."""
        with patch("imagequalify.cli.KubernetesController") as mock_controller:
            mock_controller.return_value.list_pods.side_effect = KubernetesControllerException(
                "Pod listing in apps did not complete within 30s"
            )
            exit_code = run_audit(self._args(rules_file))

        assert exit_code == 2
        assert capsys.readouterr().out == ""


# ---------------------------------------------------------------------------
# Entry point tests
# ---------------------------------------------------------------------------


class TestMain:
    """Tests for ``main``."""

    def test_main_exits_with_handler_code(
        self, rules_file: pathlib.Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Verify main runs the selected command and exits with its code."""
        with (
            patch("sys.argv", ["imagequalify", "qualify", str(rules_file), "nginx"]),
            patch("logging.basicConfig"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main()

        assert exc_info.value.code == 0
        assert capsys.readouterr().out == "default.io/nginx\n"

    def test_main_reports_unexpected_errors(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Verify unexpected exceptions are printed to stderr with exit code 1."""
        handler = MagicMock(side_effect=RuntimeError("boom"))
        with (
            patch("imagequalify.cli.parse_args", return_value=argparse.Namespace(verbose=False, handler=handler)),
            patch("logging.basicConfig"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main()

        assert exc_info.value.code == 1
        assert "Error: boom" in capsys.readouterr().err
