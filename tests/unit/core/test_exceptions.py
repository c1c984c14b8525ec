"""Unit tests for genproxy.core.exceptions module.

Tests the exception hierarchy:
- GenProxyError (base)
- ConfigurationError
- ValidationError
"""

import pytest


class TestGenProxyError:
    """Tests for the base GenProxyError exception."""

    def test_inherits_from_exception(self):
        """GenProxyError should inherit from Exception."""
        from genproxy.core.exceptions import GenProxyError

        assert issubclass(GenProxyError, Exception)

    def test_has_meaningful_default_message(self):
        """GenProxyError has a meaningful message when raised without args."""
        from genproxy.core.exceptions import GenProxyError

        error = GenProxyError()
        assert "error" in str(error).lower()

    def test_accepts_custom_message(self):
        from genproxy.core.exceptions import GenProxyError

        error = GenProxyError("Custom message")
        assert str(error) == "Custom message"
        assert error.message == "Custom message"
        assert error.context == {}

    def test_repr(self):
        from genproxy.core.exceptions import GenProxyError

        assert repr(GenProxyError("boom")) == "GenProxyError('boom')"


class TestConfigurationError:
    """Tests for ConfigurationError exception."""

    def test_inherits_from_genproxy_error(self):
        from genproxy.core.exceptions import ConfigurationError, GenProxyError

        assert issubclass(ConfigurationError, GenProxyError)

    def test_default_message_names_path_and_key(self):
        """ConfigurationError builds a message from path and key."""
        from genproxy.core.exceptions import ConfigurationError

        error = ConfigurationError(config_path="/etc/genproxy.yaml", key="retry")
        assert "/etc/genproxy.yaml" in str(error)
        assert "retry" in str(error)

    def test_custom_message_wins(self):
        from genproxy.core.exceptions import ConfigurationError

        error = ConfigurationError(config_path="<env>", message="API key missing")
        assert str(error) == "API key missing"

    def test_context_for_logging(self):
        from genproxy.core.exceptions import ConfigurationError

        error = ConfigurationError(config_path="config.yaml", key="upstream.api_key")
        assert error.context == {"config_path": "config.yaml", "key": "upstream.api_key"}

    def test_repr_includes_attributes(self):
        from genproxy.core.exceptions import ConfigurationError

        error = ConfigurationError(config_path="config.yaml")
        assert "config_path='config.yaml'" in repr(error)


class TestValidationError:
    """Tests for ValidationError exception."""

    def test_can_be_caught_as_genproxy_error(self):
        from genproxy.core.exceptions import GenProxyError, ValidationError

        with pytest.raises(GenProxyError):
            raise ValidationError("missing prompt", field="prompt")

    def test_has_field_attribute(self):
        from genproxy.core.exceptions import ValidationError

        error = ValidationError("missing prompt", field="prompt")
        assert error.field == "prompt"
        assert error.message == "missing prompt"
        assert error.context == {"field": "prompt"}

    def test_field_is_optional(self):
        from genproxy.core.exceptions import ValidationError

        error = ValidationError("bad request")
        assert error.field is None
        assert "field=None" in repr(error)


class TestExports:
    """Exceptions are importable from the core package."""

    def test_core_reexports(self):
        from genproxy.core import ConfigurationError, GenProxyError, ValidationError

        assert ConfigurationError.__module__ == "genproxy.core.exceptions"
        assert GenProxyError.__module__ == "genproxy.core.exceptions"
        assert ValidationError.__module__ == "genproxy.core.exceptions"
