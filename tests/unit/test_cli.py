"""Unit tests for the command line."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from capi_bootstrap.config import ENV_VARS
from capi_bootstrap.errors import (
    ExternalToolError,
    OperationCancelled,
    PhaseError,
)
from capi_bootstrap.main import EXIT_CANCELLED, cli


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def manifest_file(tmp_path, manifest):
    path = tmp_path / "guppy.yaml"
    path.write_text(manifest)
    return path


@pytest.fixture
def cluster_args(manifest_file):
    return ["--cluster-name", "guppy", "--cluster-namespace", "org-test", "-f", str(manifest_file)]


def phase_failure() -> PhaseError:
    try:
        try:
            raise ExternalToolError(["clusterctl", "move"], 1, stderr="no Cluster found")
        except ExternalToolError as e:
            raise PhaseError("move-to-permanent") from e
    except PhaseError as e:
        return e


class TestCreateCommand:
    """Tests for `capi-bootstrap create`."""

    def test_success(self, runner, cluster_args, manifest):
        with patch("capi_bootstrap.main.Bootstrapper") as bootstrapper:
            result = runner.invoke(cli, ["create", *cluster_args])

        assert result.exit_code == 0, result.output
        descriptor = bootstrapper.call_args.args[0]
        assert descriptor.cluster_name == "guppy"
        assert descriptor.manifest == manifest
        bootstrapper.return_value.create.assert_called_once_with()
        assert "created" in result.output

    def test_failure_prints_cause_chain(self, runner, cluster_args):
        """Test that a phase failure exits 1 with the whole error chain."""
        with patch("capi_bootstrap.main.Bootstrapper") as bootstrapper:
            bootstrapper.return_value.create.side_effect = phase_failure()
            result = runner.invoke(cli, ["create", *cluster_args])

        assert result.exit_code == 1
        assert "phase move-to-permanent failed" in result.output
        assert "no Cluster found" in result.output

    def test_cancelled(self, runner, cluster_args):
        with patch("capi_bootstrap.main.Bootstrapper") as bootstrapper:
            bootstrapper.return_value.create.side_effect = OperationCancelled("cancelled")
            result = runner.invoke(cli, ["create", *cluster_args])

        assert result.exit_code == EXIT_CANCELLED

    def test_missing_configuration(self, runner):
        """Test that missing required values exit 1 without running anything."""
        with patch("capi_bootstrap.main.Bootstrapper") as bootstrapper:
            result = runner.invoke(cli, ["create", "--cluster-name", "guppy"])

        assert result.exit_code == 1
        assert "--cluster-namespace" in result.output
        bootstrapper.assert_not_called()

    def test_environment(self, runner, manifest_file, monkeypatch):
        monkeypatch.setenv("CAPI_BOOTSTRAP_CLUSTER_NAME", "guppy")
        monkeypatch.setenv("CAPI_BOOTSTRAP_CLUSTER_NAMESPACE", "org-test")
        monkeypatch.setenv("CAPI_BOOTSTRAP_FILE", str(manifest_file))

        with patch("capi_bootstrap.main.Bootstrapper") as bootstrapper:
            result = runner.invoke(cli, ["create"])

        assert result.exit_code == 0, result.output
        assert bootstrapper.call_args.args[0].get_source("cluster_name") == "environment"


class TestDeleteCommand:
    """Tests for `capi-bootstrap delete`."""

    def test_success(self, runner, cluster_args):
        with patch("capi_bootstrap.main.Bootstrapper") as bootstrapper:
            result = runner.invoke(cli, ["delete", *cluster_args, "--team-name", "Team Rocket"])

        assert result.exit_code == 0, result.output
        assert bootstrapper.call_args.args[0].team_name == "Team Rocket"
        bootstrapper.return_value.delete.assert_called_once_with()


class TestPivotCommand:
    """Tests for `capi-bootstrap pivot`."""

    def test_kubeconfig_to_in_cluster(self, runner, cluster_args, tmp_path):
        source_kubeconfig = tmp_path / "source.kubeconfig"
        source_kubeconfig.write_text("apiVersion: v1\n")

        with patch("capi_bootstrap.main.Bootstrapper") as bootstrapper, patch(
            "capi_bootstrap.main.open_scope"
        ) as open_scope:
            result = runner.invoke(
                cli,
                ["pivot", *cluster_args, "--from-kubeconfig", str(source_kubeconfig), "--to-in-cluster"],
            )

        assert result.exit_code == 0, result.output
        assert [c.args for c in open_scope.call_args_list] == [
            ("source", str(source_kubeconfig)),
            ("target", ""),
        ]
        bootstrapper.return_value.pivot.assert_called_once()

    def test_requires_one_source(self, runner, cluster_args, tmp_path):
        kubeconfig = tmp_path / "kubeconfig"
        kubeconfig.write_text("apiVersion: v1\n")

        result = runner.invoke(
            cli,
            [
                "pivot",
                *cluster_args,
                "--from-kubeconfig",
                str(kubeconfig),
                "--from-in-cluster",
                "--to-kubeconfig",
                str(kubeconfig),
            ],
        )

        assert result.exit_code == 2
        assert "exactly one of --from-kubeconfig and --from-in-cluster" in result.output

    def test_both_in_cluster(self, runner, cluster_args):
        result = runner.invoke(cli, ["pivot", *cluster_args, "--from-in-cluster", "--to-in-cluster"])

        assert result.exit_code == 2


class TestConfigShow:
    """Tests for `capi-bootstrap config show`."""

    def test_shows_values_and_sources(self, runner, monkeypatch):
        monkeypatch.setenv("CAPI_BOOTSTRAP_CLUSTER_NAMESPACE", "org-test")

        result = runner.invoke(cli, ["config", "show", "--cluster-name", "guppy"])

        assert result.exit_code == 0, result.output
        assert "guppy_auto_branch" in result.output
        assert "environment" in result.output
        assert "flag" in result.output
        assert "not set" in result.output

    def test_missing_required(self, runner):
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 1
        assert "--cluster-name" in result.output
