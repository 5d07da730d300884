import logging

import pytest

from autover.versioner import (InvalidAcceptHeader, NegotiationConfig,
                               NegotiationResult, availableMediaTypes,
                               decompose, hasVendor, hasVersion, negotiate)

FORMATS = [("json", "application/json"), ("xml", "application/xml")]


@pytest.fixture
def config():
    return NegotiationConfig(versions=["v1", "v2"], vendor="acme", formats=FORMATS)


@pytest.fixture
def strict():
    return NegotiationConfig(versions=["v1", "v2"], vendor="acme", formats=FORMATS, strict=True)


def assert_fails(config, header, message, headers={"X-Cascade": "pass"}):
    with pytest.raises(InvalidAcceptHeader) as e:
        negotiate(config, header)
    assert e.value.message == message
    assert e.value.headers == headers


def test_config_defaults():
    cfg = NegotiationConfig(vendor="acme")
    assert cfg.versions == ()
    assert cfg.formats == ()
    assert cfg.strict is False
    assert cfg.cascade is True
    assert cfg.error_headers == {"X-Cascade": "pass"}


def test_config_formats_from_mapping():
    cfg = NegotiationConfig(versions=("v1",), vendor="acme", formats=dict(FORMATS))
    assert cfg.formats == tuple(FORMATS)


def test_config_cascade_only_off_when_false():
    assert NegotiationConfig(vendor="acme", cascade=None).cascade is True
    cfg = NegotiationConfig(vendor="acme", cascade=False)
    assert cfg.error_headers == {}


def test_config_needs_vendor():
    with pytest.raises(ValueError):
        NegotiationConfig(versions=["v1"])


def test_available_media_types(config):
    assert availableMediaTypes(config) == [
        "application/vnd.acme-v2+json",
        "application/vnd.acme-v2",
        "application/vnd.acme-v1+json",
        "application/vnd.acme-v1",
        "application/vnd.acme+json",
        "application/vnd.acme-v2+xml",
        "application/vnd.acme-v2",
        "application/vnd.acme-v1+xml",
        "application/vnd.acme-v1",
        "application/vnd.acme+xml",
        "application/vnd.acme",
        "application/json",
        "application/xml",
        ]


@pytest.mark.parametrize("n", [0, 1, 3])
@pytest.mark.parametrize("f", [0, 1, 2])
def test_available_media_types_size(n, f):
    versions = ["v%d" % i for i in range(1, n + 1)]
    formats = [("f%d" % i, "application/f%d" % i) for i in range(f)]
    cfg = NegotiationConfig(versions=versions, vendor="acme", formats=formats)
    available = availableMediaTypes(cfg)
    assert len(available) == n * 2 * f + f + 1 + f
    for ext, _ in formats:
        idx = [available.index("application/vnd.acme-%s+%s" % (v, ext))
               for v in reversed(versions)]
        assert idx == sorted(idx)


@pytest.mark.parametrize("subtype, expected", [
    ("vnd.acme-v2.1+json", ("acme", "v2.1", "json")),
    ("vnd.acme", ("acme", None, None)),
    ("vnd.acme-v1", ("acme", "v1", None)),
    ("vnd.acme+xml", ("acme", None, "xml")),
    ("vnd.acme-v1+hal+json", ("acme", "v1", "hal+json")),
    ("json", (None, None, None)),
    ("", (None, None, None)),
    ])
def test_decompose(subtype, expected):
    assert decompose(subtype) == expected


def test_has_vendor_and_version():
    assert hasVendor("application/vnd.acme+json")
    assert not hasVersion("application/vnd.acme+json")
    assert hasVendor("application/vnd.acme-v1") and hasVersion("application/vnd.acme-v1")
    assert not hasVendor("text/plain")
    assert not hasVendor("garbage")


def test_negotiate_version_and_format(config):
    result = negotiate(config, "application/vnd.acme-v1+json")
    assert result == NegotiationResult("application", "vnd.acme-v1+json", "acme", "v1", "json")
    assert dict(result.environ_items()) == {
        "api.type": "application",
        "api.subtype": "vnd.acme-v1+json",
        "api.vendor": "acme",
        "api.version": "v1",
        "api.format": "json",
        }


def test_negotiate_is_case_insensitive(config):
    result = negotiate(config, "Application/VND.ACME-V1+XML")
    assert (result.vendor, result.version, result.format) == ("acme", "v1", "xml")


def test_negotiate_vendor_without_version_gets_newest(config):
    result = negotiate(config, "application/vnd.acme+json")
    assert result.subtype == "vnd.acme-v2+json"
    assert result.version == "v2"
    result = negotiate(config, "application/vnd.acme")
    assert (result.version, result.format) == ("v2", None)


def test_negotiate_canonical_type(config):
    result = negotiate(config, "application/xml")
    assert result == NegotiationResult("application", "xml", None, None, None)
    assert dict(result.environ_items()) == {"api.type": "application", "api.subtype": "xml"}


def test_negotiate_prefers_client_weights(config):
    result = negotiate(config, "application/vnd.acme-v1+json, application/vnd.acme-v2+json;q=0.5")
    assert result.version == "v1"


@pytest.mark.parametrize("header", [None, "", "*/*"])
def test_negotiate_lenient_anything_goes(config, header):
    result = negotiate(config, header)
    assert result.media_type == "application/vnd.acme-v2+json"


def test_negotiate_malformed_header(config):
    with pytest.raises(InvalidAcceptHeader) as e:
        negotiate(config, "text/html; level=1")
    assert e.value.message.startswith("Invalid header value")
    assert e.value.headers == {"X-Cascade": "pass"}


def test_strict_requires_header(strict):
    assert_fails(strict, None, "Accept header must be set.")
    assert_fails(strict, "", "Accept header must be set.")


@pytest.mark.parametrize("header", ["*/*", "application/*, */*;q=0.5", "*/vnd.acme-v1+json"])
def test_strict_rejects_ranges(strict, header):
    assert_fails(strict, header, 'Accept header must not contain ranges ("*").')


def test_strict_ignores_ranges_next_to_real_types(strict):
    result = negotiate(strict, "*/*, application/vnd.acme-v1+json")
    assert result.version == "v1"


def test_strict_not_acceptable(strict):
    assert_fails(strict, "text/plain", "406 Not Acceptable")
    assert_fails(strict, "application/vnd.acme-v99+json", "406 Not Acceptable")


def test_lenient_unknown_version(config):
    assert_fails(config, "application/vnd.acme-v99+json", "API vendor or version not found.")


def test_lenient_unknown_vendor(config):
    assert_fails(config, "application/vnd.other+json", "API vendor or version not found.")


def test_lenient_pass_through(config):
    assert negotiate(config, "text/plain") is None


def test_lenient_mixed_intent_passes_through(config):
    assert negotiate(config, "text/plain, application/vnd.acme-v99+json") is None


def test_lenient_rejection_is_not_a_match(config):
    assert_fails(config, "application/vnd.acme-v1+json;q=0", "API vendor or version not found.")


def test_no_cascade_header():
    cfg = NegotiationConfig(versions=["v1"], vendor="acme", formats=FORMATS,
                            strict=True, cascade=False)
    assert_fails(cfg, None, "Accept header must be set.", headers={})


def test_failures_are_logged(config, caplog):
    with caplog.at_level(logging.INFO, logger="autover"):
        with pytest.raises(InvalidAcceptHeader):
            negotiate(config, "application/vnd.acme-v99+json")
    assert "unknown vendor or version" in caplog.text


def test_strict_keeps_partial_subtype_ranges(strict):
    assert_fails(strict, "application/vnd.acme-*+json", "406 Not Acceptable")


def test_negotiate_overweight_quality(config):
    result = negotiate(config, "application/json;q=1.5")
    assert result.media_type == "application/json"


def test_config_versions_are_strings():
    cfg = NegotiationConfig(versions=[1, 2], vendor="acme", formats=FORMATS)
    assert cfg.versions == ("1", "2")
    assert availableMediaTypes(cfg)[0] == "application/vnd.acme-2+json"
