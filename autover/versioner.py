"""
Header based API versioning.

The client picks an API version through the Accept header using
media types of the form::

  application/vnd.<vendor>-<version>+<format>

For a request with ``Accept: application/vnd.acme-v1+json`` against
a config that knows about acme v1 and json, :func:`negotiate` gives
back a result that sets these environ keys:

  api.type     application
  api.subtype  vnd.acme-v1+json
  api.vendor   acme
  api.version  v1
  api.format   json

Failures are raised as :class:`InvalidAcceptHeader`. Unless the
config turns cascading off they carry an ``X-Cascade: pass`` header
so that whatever is dispatching requests may try another route.
"""

__all__ = ['AutoVerError', 'InvalidAcceptHeader', 'NegotiationConfig',
           'NegotiationResult', 'availableMediaTypes', 'decompose',
           'hasVendor', 'hasVersion', 'negotiate']

from collections import namedtuple
import logging
import re

from autover.accept import (AcceptParseError, parseAccept, parseMediaType,
                            bestOf, vendor_re)

log = logging.getLogger("autover")

_has_vendor_re = re.compile(r"^vnd\.[a-z0-9*.]+")
_has_version_re = re.compile(r"^vnd\.[a-z0-9*.]+-[a-z0-9*\-.]+")


class AutoVerError(Exception):
    pass


class InvalidAcceptHeader(AutoVerError):
    def __init__(self, message, headers=None):
        super(InvalidAcceptHeader, self).__init__(message)
        self.message = message
        self.headers = dict(headers or {})


class NegotiationConfig(namedtuple("NegotiationConfig",
                                   "versions vendor formats strict cascade")):
    """
    What a route is willing to serve. *versions* are listed oldest
    first, *formats* is a mapping or a sequence of pairs from file
    extension to the canonical media type, e.g. ``("json",
    "application/json")``. Only an explicit ``cascade=False`` stops
    errors from carrying ``X-Cascade: pass``.
    """
    __slots__ = ()

    def __new__(cls, versions=(), vendor=None, formats=(), strict=False, cascade=True):
        if not vendor:
            raise ValueError("a vendor must be configured")
        if hasattr(formats, "items"):
            formats = formats.items()
        formats = tuple((ext, media_type) for ext, media_type in formats)
        return super(NegotiationConfig, cls).__new__(
            cls, tuple(str(v) for v in versions or ()), vendor, formats,
            bool(strict), cascade is not False)

    @property
    def error_headers(self):
        return {"X-Cascade": "pass"} if self.cascade else {}


class NegotiationResult(namedtuple("NegotiationResult",
                                   "type subtype vendor version format")):
    __slots__ = ()

    @property
    def media_type(self):
        return "%s/%s" % (self.type, self.subtype)

    def environ_items(self):
        yield "api.type", self.type
        yield "api.subtype", self.subtype
        if self.vendor is not None:
            yield "api.vendor", self.vendor
            yield "api.version", self.version
            yield "api.format", self.format


def availableMediaTypes(config):
    """Everything the config can serve, most preferred first."""
    vendor = config.vendor
    available = []
    for ext, _ in config.formats:
        for version in reversed(config.versions):
            available.append("application/vnd.%s-%s+%s" % (vendor, version, ext))
            available.append("application/vnd.%s-%s" % (vendor, version))
        available.append("application/vnd.%s+%s" % (vendor, ext))
    available.append("application/vnd.%s" % vendor)
    available.extend(media_type for _, media_type in config.formats)
    return available


def decompose(subtype):
    m = vendor_re.match(subtype or "")
    if m is None:
        return None, None, None
    return m.groups()


def _subtype(media_type):
    mt = parseMediaType(media_type)
    return mt.subtype if mt is not None else None


def hasVendor(media_type):
    subtype = _subtype(media_type)
    return subtype is not None and _has_vendor_re.match(subtype) is not None


def hasVersion(media_type):
    subtype = _subtype(media_type)
    return subtype is not None and _has_version_re.match(subtype) is not None


def _isRange(media_type):
    mt = parseMediaType(media_type)
    return mt is not None and "*" in (mt.type, mt.subtype)


def negotiate(config, accept_header):
    """
    Work out which of the versions and formats in *config* the
    client is asking for.

    Returns a :class:`NegotiationResult`, or None when the client
    asked for nothing this route has and did not name a vendor or
    version either, so the request may be handled elsewhere. Raises
    :class:`InvalidAcceptHeader` otherwise.
    """
    try:
        qvalues = parseAccept(accept_header)
    except AcceptParseError as e:
        log.info("unparseable Accept header: %s", e)
        raise InvalidAcceptHeader(str(e), config.error_headers)

    if config.strict:
        if not qvalues:
            raise InvalidAcceptHeader("Accept header must be set.", config.error_headers)
        qvalues = [qv for qv in qvalues if not _isRange(qv.media_type)]
        if not qvalues:
            raise InvalidAcceptHeader('Accept header must not contain ranges ("*").',
                                      config.error_headers)

    media_type = bestOf(qvalues, availableMediaTypes(config))
    if media_type is not None:
        log.debug("negotiated %s from %r", media_type, accept_header)
        type_, subtype = media_type.split("/", 1)
        return NegotiationResult(type_, subtype, *decompose(subtype))

    if config.strict:
        log.info("nothing acceptable in %r", accept_header)
        raise InvalidAcceptHeader("406 Not Acceptable", config.error_headers)
    if all(hasVendor(qv.media_type) or hasVersion(qv.media_type) for qv in qvalues):
        log.info("unknown vendor or version in %r", accept_header)
        raise InvalidAcceptHeader("API vendor or version not found.", config.error_headers)

    log.debug("passing on %r", accept_header)
    return None
