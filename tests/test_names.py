"""
Brief: Tests for ubwrap.names.fqdn canonicalization.

Inputs:
  - None

Outputs:
  - None
"""

import pytest

from ubwrap.names import fqdn, is_fqdn


@pytest.mark.parametrize(
    "name,expected",
    [
        ("", "."),
        (".", "."),
        ("example.com", "example.com."),
        ("example.com.", "example.com."),
        # Escaped trailing dot: odd backslash count, the dot is literal.
        ("foo\\.", "foo\\.."),
        # Escaped backslash then a real dot: even count.
        ("foo\\\\.", "foo\\\\."),
        ("foo\\\\\\.", "foo\\\\\\.."),
        ("a\\.b.example", "a\\.b.example."),
        ("a\\.b.example.", "a\\.b.example."),
    ],
)
def test_fqdn(name, expected):
    assert fqdn(name) == expected


@pytest.mark.parametrize("name", ["", "www.ietf.org", "foo\\.", "foo\\\\.", "x\\."])
def test_fqdn_is_idempotent(name):
    once = fqdn(name)
    assert fqdn(once) == once
    assert is_fqdn(once)


def test_fqdn_passes_non_str_through():
    sentinel = object()
    assert fqdn(sentinel) is sentinel
    assert fqdn(None) is None
    assert fqdn(5) == 5


def test_is_fqdn():
    assert is_fqdn("example.")
    assert not is_fqdn("example")
    assert not is_fqdn("")
    assert not is_fqdn("example\\.")
