"""
Unit tests for src/exceptions.py: Custom exception hierarchy.

Tests cover:
- Exception inheritance chain
- Constructor arguments and attributes
- get_display_message() formatting
"""

import pytest
from exceptions import (
    DispatchError,
    GatewayError,
    GatewayTimeoutError,
    GatewayRejectedError,
    ConfigError,
)


# ============================================================================
# Inheritance chain
# ============================================================================

class TestInheritance:
    """Verify the documented exception hierarchy."""

    def test_dispatch_error_is_exception(self):
        assert issubclass(DispatchError, Exception)

    def test_gateway_error_inherits_dispatch_error(self):
        assert issubclass(GatewayError, DispatchError)

    def test_timeout_inherits_gateway_error(self):
        assert issubclass(GatewayTimeoutError, GatewayError)

    def test_rejected_inherits_gateway_error(self):
        assert issubclass(GatewayRejectedError, GatewayError)

    def test_config_error_is_not_a_gateway_error(self):
        assert issubclass(ConfigError, DispatchError)
        assert not issubclass(ConfigError, GatewayError)

    def test_not_builtin_value_error(self):
        assert not issubclass(DispatchError, ValueError)

    def test_catch_all_with_base_class(self):
        """All custom exceptions can be caught with DispatchError."""
        for exc in [GatewayError("x"), GatewayTimeoutError(), GatewayRejectedError("x"), ConfigError("x")]:
            with pytest.raises(DispatchError):
                raise exc


# ============================================================================
# GatewayError
# ============================================================================

class TestGatewayError:

    def test_attributes(self):
        exc = GatewayError("Internal error", endpoint="/api/get-picklists", status_code=500)

        assert str(exc) == "Internal error"
        assert exc.endpoint == "/api/get-picklists"
        assert exc.status_code == 500

    def test_display_message_with_status(self):
        exc = GatewayError("No record found", status_code=404)
        assert exc.get_display_message() == "HTTP 404: No record found"

    def test_display_message_without_status(self):
        exc = GatewayError("Cannot reach http://localhost:4000")
        assert exc.get_display_message() == "Cannot reach http://localhost:4000"


# ============================================================================
# GatewayTimeoutError
# ============================================================================

class TestGatewayTimeoutError:

    def test_message_includes_timeout(self):
        exc = GatewayTimeoutError(endpoint="/print", timeout=15.0)

        assert str(exc) == "Request timed out after 15s"
        assert exc.timeout == 15.0
        assert exc.endpoint == "/print"
        assert exc.status_code is None

    def test_message_without_timeout(self):
        assert str(GatewayTimeoutError()) == "Request timed out"


# ============================================================================
# GatewayRejectedError
# ============================================================================

class TestGatewayRejectedError:

    def test_payload_is_kept(self):
        payload = {"success": False, "error": "No PDF URL found for this shipment"}
        exc = GatewayRejectedError(payload["error"], endpoint="/print", status_code=200, payload=payload)

        assert exc.payload == payload
        assert exc.status_code == 200

    def test_display_message_hides_2xx_status(self):
        exc = GatewayRejectedError("Deadlock victim", status_code=200)
        assert exc.get_display_message() == "Deadlock victim"

    def test_payload_defaults_to_empty_dict(self):
        assert GatewayRejectedError("x").payload == {}


class TestDispatchError:

    def test_base_display_message_is_text(self):
        assert ConfigError("bad timeout").get_display_message() == "bad timeout"
