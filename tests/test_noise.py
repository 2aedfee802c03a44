"""
tests/test_noise.py

Noise classification of blocked-uri values.
"""
from __future__ import annotations

import pytest

from csp_collector.services.noise import is_extension_noise, is_ignorable, is_noise


@pytest.mark.parametrize("uri", [
    "chrome-extension://abcdef/content.js",
    "moz-extension://1234-5678/inject.js",
    "safari-extension://com.example.ext/script.js",
    "edge-extension://xyz/a.js",
    "CHROME-EXTENSION://abcdef/content.js",
    "Moz-Extension://1234/inject.js",
])
def test_extension_schemes_are_noise(uri: str):
    assert is_extension_noise(uri)
    assert is_noise(uri)


@pytest.mark.parametrize("uri", [None, "", "https://evil.test/x.js", "inline", "eval", "chrome://settings"])
def test_non_extension_values_are_not_extension_noise(uri):
    assert not is_extension_noise(uri)


@pytest.mark.parametrize("uri", ["about:blank", "about:srcdoc", "data:image/png;base64,AAAA", "DATA:text/html,x", "About:blank"])
def test_pseudo_schemes_are_ignorable(uri: str):
    assert is_ignorable(uri)
    assert is_noise(uri)


def test_blob_is_kept():
    uri = "blob:https://example.com/0b6b3e1c-5c7d-4a7b-9d59-8e4c3e0f1a2b"
    assert not is_ignorable(uri)
    assert not is_extension_noise(uri)
    assert not is_noise(uri)


@pytest.mark.parametrize("uri", [None, ""])
def test_empty_values_are_not_ignorable(uri):
    assert not is_ignorable(uri)
    assert not is_noise(uri)


def test_scheme_must_be_a_prefix():
    assert not is_ignorable("https://example.com/about:blank")
    assert not is_extension_noise("https://example.com/?chrome-extension:")
