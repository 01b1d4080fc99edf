"""Unit tests for branded value constructors."""

import pytest

from topoforge.errors import InvalidValueError
from topoforge.topology import brands


class TestHosts:
    """Tests for fqdn() and host()."""

    def test_fqdn_accepts_dotted_name(self) -> None:
        """A name with a dot is a valid FQDN."""
        assert brands.fqdn("example.com") == "example.com"

    @pytest.mark.parametrize("value", ["localhost", "", " example.com", "example.com "])
    def test_fqdn_rejects_invalid(self, value: str) -> None:
        """Names without a dot or with surrounding whitespace are rejected."""
        with pytest.raises(InvalidValueError):
            brands.fqdn(value)

    def test_host_rejects_single_label(self) -> None:
        """Hosts follow the same rule as FQDNs."""
        with pytest.raises(InvalidValueError, match="must contain a dot"):
            brands.host("api")

    def test_invalid_value_error_is_value_error(self) -> None:
        """Brand errors are ValueErrors so pydantic reports them as validation errors."""
        with pytest.raises(ValueError):
            brands.host("api")


class TestPathsAndPorts:
    """Tests for url_path() and port()."""

    def test_url_path_requires_leading_slash(self) -> None:
        """Paths must start with '/'."""
        assert brands.url_path("/api") == "/api"
        with pytest.raises(InvalidValueError):
            brands.url_path("api")

    @pytest.mark.parametrize("value", [1, 80, 65535])
    def test_port_accepts_range(self, value: int) -> None:
        """Ports 1-65535 are valid."""
        assert brands.port(value) == value

    @pytest.mark.parametrize("value", [0, 65536, -1, True, "80", 80.0])
    def test_port_rejects_invalid(self, value: object) -> None:
        """Out-of-range, boolean and non-integer ports are rejected."""
        with pytest.raises(InvalidValueError):
            brands.port(value)  # type: ignore[arg-type]


class TestReferences:
    """Tests for secret and config map reference strings."""

    def test_secret_ref_format(self) -> None:
        """secret_ref builds the canonical secret:// string."""
        assert brands.secret_ref("db", "password") == "secret://db/password"

    def test_config_map_ref_format(self) -> None:
        """config_map_ref builds the canonical configmap:// string."""
        assert brands.config_map_ref("settings", "LOG_LEVEL") == "configmap://settings/LOG_LEVEL"

    @pytest.mark.parametrize("name,key", [("", "key"), ("db", ""), ("db/x", "key"), ("db", "a/b")])
    def test_reference_parts_must_be_plain(self, name: str, key: str) -> None:
        """Empty parts and parts containing '/' are rejected."""
        with pytest.raises(InvalidValueError):
            brands.secret_ref(name, key)

    def test_parse_ref_splits_parts(self) -> None:
        """parse_ref returns (scheme, name, key)."""
        assert brands.parse_ref("secret://db/password") == ("secret", "db", "password")
        assert brands.parse_ref("configmap://settings/LOG") == ("configmap", "settings", "LOG")

    def test_parse_ref_requires_key(self) -> None:
        """A reference without a key is rejected."""
        with pytest.raises(InvalidValueError, match="<name>/<key>"):
            brands.parse_ref("secret://db")

    def test_parse_ref_rejects_other_schemes(self) -> None:
        """Only secret:// and configmap:// are references."""
        with pytest.raises(InvalidValueError):
            brands.parse_ref("https://example.com/x")

    def test_is_ref_string(self) -> None:
        """Only strings with a reference scheme are detected."""
        assert brands.is_ref_string("secret://db/password")
        assert brands.is_ref_string("configmap://settings/LOG")
        assert not brands.is_ref_string("plain value")
        assert not brands.is_ref_string(42)

    def test_url_includes_path(self) -> None:
        """url() joins scheme, host and a validated path."""
        assert brands.url("https", "api.example.com", "/v1") == "https://api.example.com/v1"
        with pytest.raises(InvalidValueError):
            brands.url("https", "api.example.com", "v1")
