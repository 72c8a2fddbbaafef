import pytest

from awserver.config import AWConfig
from awserver.cors import CorsPolicy, cors_policy


def _release():
    return cors_policy(AWConfig(port=5600, testing=False))


def _testing():
    return cors_policy(AWConfig(port=5666, testing=True))


@pytest.mark.parametrize("origin", ["http://127.0.0.1:5600", "http://localhost:5600"])
def test_root_urls_allowed(origin):
    assert _release().allows(origin) is True


def test_other_port_denied():
    assert _release().allows("http://127.0.0.1:5666") is False


def test_unknown_origin_denied():
    assert _release().allows("http://example.com") is False


def test_missing_origin_denied():
    assert _release().allows(None) is False


def test_known_chrome_extension_allowed():
    assert _release().allows("chrome-extension://nglaklhklhcoonedhgnpgddginnjdadi")


def test_any_moz_extension_allowed():
    assert _release().allows("moz-extension://abcdef-123") is True


def test_other_chrome_extension_only_when_testing():
    origin = "chrome-extension://someotherextension"
    assert _release().allows(origin) is False
    assert _testing().allows(origin) is True


@pytest.mark.parametrize("origin", ["http://127.0.0.1:27180", "http://localhost:27180"])
def test_testing_origins(origin):
    assert _release().allows(origin) is False
    assert _testing().allows(origin) is True


def test_configured_origins():
    policy = cors_policy(
        AWConfig(
            port=5600,
            testing=False,
            cors=["http://example.com"],
            cors_regex=["http://.*\\.example\\.com"],
        )
    )
    assert policy.allows("http://example.com") is True
    assert policy.allows("http://app.example.com") is True
    assert policy.allows("http://example.org") is False


def test_methods_and_credentials():
    policy = _release()
    assert policy.allowed_methods == {"GET", "POST", "DELETE"}
    assert policy.allow_credentials is False


def test_exact_origins_order():
    policy = cors_policy(AWConfig(port=5600, testing=True, cors=["http://example.com"]))
    assert policy.exact_origins == [
        "http://127.0.0.1:5600",
        "http://localhost:5600",
        "http://example.com",
        "http://127.0.0.1:27180",
        "http://localhost:27180",
    ]


def test_invalid_regex_raises():
    with pytest.raises(ValueError):
        CorsPolicy(exact_origins=[], regex_origins=["("])