"""Tests for svclogin.hostname -- canonical forms, ports, IDNA and rejection."""

from __future__ import annotations

import pytest

from svclogin.exceptions import InvalidHostname
from svclogin.hostname import for_comparison, normalize, same_host
from svclogin.models import DEFAULT_HOST


class TestCanonicalForms:
    def test_lowercases(self) -> None:
        host = normalize("Example.COM")
        assert host.comparison == "example.com"
        assert host.display == "example.com"
        assert host.raw == "Example.COM"

    def test_case_and_default_port_are_equivalent(self) -> None:
        assert normalize("example.com").comparison == normalize("EXAMPLE.com:443").comparison

    def test_non_default_port_is_kept(self) -> None:
        host = normalize("Example.com:8443")
        assert host.comparison == "example.com:8443"
        assert host.display == "example.com:8443"

    def test_distinct_ports_are_distinct_hosts(self) -> None:
        assert normalize("example.com:8443").comparison != normalize("example.com").comparison

    def test_surrounding_whitespace_is_ignored(self) -> None:
        assert normalize("  example.com\n").comparison == "example.com"

    def test_single_trailing_dot_is_dropped(self) -> None:
        assert normalize("example.com.").comparison == "example.com"

    def test_str_is_display_form(self) -> None:
        assert str(normalize("example.com:8443")) == "example.com:8443"


class TestInternationalised:
    def test_unicode_to_punycode(self) -> None:
        host = normalize("Bücher.Example")
        assert host.comparison == "xn--bcher-kva.example"
        assert host.display == "bücher.example"

    def test_punycode_input_displays_unicode(self) -> None:
        host = normalize("xn--bcher-kva.example")
        assert host.comparison == "xn--bcher-kva.example"
        assert host.display == "bücher.example"

    def test_unicode_and_punycode_forms_compare_equal(self) -> None:
        assert same_host("bücher.example", "XN--BCHER-KVA.example:443")

    def test_port_survives_idna(self) -> None:
        assert normalize("bücher.example:8443").comparison == "xn--bcher-kva.example:8443"


class TestDefaultHost:
    def test_empty_selects_default(self) -> None:
        assert normalize("").comparison == DEFAULT_HOST

    def test_whitespace_selects_default(self) -> None:
        assert normalize("   ").comparison == DEFAULT_HOST

    def test_custom_default(self) -> None:
        assert normalize("", default_host="tfe.example.com").comparison == "tfe.example.com"

    def test_no_default_rejects_empty(self) -> None:
        with pytest.raises(InvalidHostname):
            normalize("", default_host="")

    def test_for_comparison_does_not_substitute(self) -> None:
        with pytest.raises(InvalidHostname):
            for_comparison("")


class TestInvalid:
    @pytest.mark.parametrize(
        "raw",
        [
            "foo..bar",
            "foo bar.example",
            "under_score.example",
            "-leading.example",
            "trailing-.example",
            "a" * 64 + ".example",
            "example.com:",
            "example.com:0",
            "example.com:65536",
            "example.com:http",
            "[::1]",
            "[::1]:8443",
            "xn--.example",
            "example.com/path",
            ".",
        ],
    )
    def test_rejected(self, raw: str) -> None:
        with pytest.raises(InvalidHostname) as exc_info:
            normalize(raw)
        assert exc_info.value.raw == raw
        assert repr(raw) in str(exc_info.value)

    def test_error_quotes_input_as_typed(self) -> None:
        with pytest.raises(InvalidHostname) as exc_info:
            normalize("  example..com  ")
        assert exc_info.value.raw == "  example..com  "
        assert "'  example..com  '" in str(exc_info.value)

    def test_invalid_default_host_is_quoted(self) -> None:
        with pytest.raises(InvalidHostname) as exc_info:
            normalize("", default_host="bad..default")
        assert exc_info.value.raw == "bad..default"

    def test_overall_length_limit(self) -> None:
        raw = ".".join(["a" * 60] * 5)
        with pytest.raises(InvalidHostname):
            normalize(raw)

    def test_error_names_reason(self) -> None:
        with pytest.raises(InvalidHostname) as exc_info:
            normalize("example.com:99999")
        assert "out of range" in exc_info.value.reason


class TestSameHost:
    def test_invalid_strings_only_match_themselves(self) -> None:
        assert same_host("foo..bar", "foo..bar")
        assert not same_host("foo..bar", "foo.bar")

    def test_different_hosts(self) -> None:
        assert not same_host("a.example", "b.example")
