"""Unit tests for the error taxonomy."""

from kubeone_e2e.errors import (
    ClusterClientError,
    E2EError,
    OperationError,
    ValidationError,
    operation_failed,
    stderr_tail,
)


class TestE2EError:
    """Tests for E2EError rendering."""

    def test_str_without_data(self):
        assert str(E2EError(message="boom")) == "boom"

    def test_str_with_data(self):
        error = E2EError(message="boom", data={"version": "1.0", "returncode": 2})
        assert str(error) == "boom (version=1.0, returncode=2)"

    def test_subclass_defaults(self):
        error = ValidationError()
        assert error.message == "Validation failed"
        assert error.data == {}
        assert isinstance(error, E2EError)
        assert isinstance(error, Exception)

    def test_cluster_client_error_transient_flag(self):
        assert ClusterClientError().transient is False
        assert ClusterClientError(message="eof", transient=True).transient is True


class TestOperationFailed:
    """Tests for operation_failed helper."""

    def test_carries_context(self):
        error = operation_failed("apply", "1.27.5", 1, "line1\nline2\n")

        assert isinstance(error, OperationError)
        assert error.message == "kubeone apply failed for version 1.27.5"
        assert error.data == {
            "operation": "apply",
            "version": "1.27.5",
            "returncode": 1,
            "stderr": "line1\nline2",
        }

    def test_stderr_tail_keeps_last_lines(self):
        stderr = "\n".join(f"line {i}" for i in range(50))
        tail = stderr_tail(stderr, lines=3)
        assert tail == "line 47\nline 48\nline 49"

    def test_stderr_tail_empty(self):
        assert stderr_tail(None) == ""
        assert stderr_tail("") == ""
