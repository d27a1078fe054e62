"""Unit tests for the error taxonomy."""

from __future__ import annotations

from capi_bootstrap.errors import (
    BootstrapError,
    ExternalToolError,
    PhaseError,
    ReadinessTimeoutError,
    ResourceError,
    format_error_chain,
)


class TestErrorMessages:
    """Tests for error rendering."""

    def test_readiness_timeout(self):
        error = ReadinessTimeoutError("App org-test/guppy-cilium", "be deployed", 300)

        assert str(error) == (
            "timeout waiting for App org-test/guppy-cilium to be deployed (gave up after 300 attempts)"
        )

    def test_external_tool_not_installed(self):
        assert str(ExternalToolError(["kind", "get", "clusters"])) == "kind not found. Is kind installed?"

    def test_external_tool_combined_output(self):
        error = ExternalToolError(["helm", "repo", "update"], 1, stdout="partial\n", stderr="failed\n")

        assert str(error) == "helm repo update exited with status 1: partial\nfailed"

    def test_errors_are_hashable(self):
        """Test that dataclass errors can still be used where exceptions are hashed."""
        assert hash(PhaseError("create-cluster")) != 0


class TestFormatErrorChain:
    """Tests for format_error_chain."""

    def test_follows_causes(self):
        """Test that the whole cause chain is rendered outermost first."""
        try:
            try:
                try:
                    raise ReadinessTimeoutError("App org-test/guppy-cilium", "be deployed", 5)
                except ReadinessTimeoutError as e:
                    raise ResourceError("waiting for", "cluster org-test/guppy") from e
            except BootstrapError as e:
                raise PhaseError("create-cluster") from e
        except PhaseError as e:
            message = format_error_chain(e)

        assert message == (
            "phase create-cluster failed: waiting for cluster org-test/guppy: "
            "timeout waiting for App org-test/guppy-cilium to be deployed (gave up after 5 attempts)"
        )

    def test_implicit_context(self):
        try:
            try:
                raise KeyError("value")
            except KeyError:
                raise BootstrapError("reading secret")
        except BootstrapError as e:
            message = format_error_chain(e)

        assert message == "reading secret: 'value'"

    def test_suppressed_context(self):
        try:
            try:
                raise KeyError("value")
            except KeyError:
                raise BootstrapError("reading secret") from None
        except BootstrapError as e:
            assert format_error_chain(e) == "reading secret"

    def test_empty_message_uses_type_name(self):
        assert format_error_chain(RuntimeError()) == "RuntimeError"
