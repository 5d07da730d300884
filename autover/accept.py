__all__ = ['AcceptParseError', 'QualityValue', 'MediaType',
           'parseAccept', 'parseMediaType', 'matches', 'qvalue', 'bestOf']

from collections import namedtuple
import re

_q_re = re.compile(r"^(?P<ct>[^\s,]+?)(?:\s*;\s*q\s*=\s*(?P<q>\d+(?:\.\d+)?))?\Z")
_media_re = re.compile(r"^(?P<type>[a-z*]+)/(?P<subtype>[a-z0-9*\-.+]+)(?:;(?P<params>[a-z0-9=;]+))?\Z")
vendor_re = re.compile(r"^vnd\.([a-z0-9*.]+)(?:-([a-z0-9*\-.]+))?(?:\+([a-z0-9*\-.+]+))?\Z", re.I)

QualityValue = namedtuple("QualityValue", "media_type q")
MediaType = namedtuple("MediaType", "type subtype params")


class AcceptParseError(ValueError):
    pass


def parseAccept(header):
    """
    Split an Accept header into QualityValue pairs in header order.
    Media types are lower-cased; a repeated media type keeps its first
    position and takes the last weight given for it.
    """
    parsed = {}
    if not header or not header.strip():
        return []
    for p in re.split(r",\s*", header.strip()):
        if not p:
            continue
        m = _q_re.match(p)
        if m is None:
            raise AcceptParseError("Invalid header value: %r" % p)
        q = float(m.group("q") or "1.0")
        parsed[m.group("ct").lower()] = min(q, 1.0)
    return [QualityValue(ct, q) for ct, q in parsed.items()]


def parseMediaType(media_type):
    """Returns a MediaType, or None when the string is not one."""
    if not media_type:
        return None
    m = _media_re.match(media_type.strip().lower())
    if m is None:
        return None
    params = {}
    for p in (m.group("params") or "").split(";"):
        if "=" in p:
            k, v = p.split("=", 1)
            params[k] = v
    return MediaType(m.group("type"), m.group("subtype"), params)


def _glob(pattern, value):
    if pattern == value or pattern == "*" or value == "*":
        return True
    if "*" not in pattern:
        return False
    rx = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.match("^%s\\Z" % rx, value) is not None


def _subtypeCovers(rng, subtype):
    if _glob(rng, subtype):
        return True
    ## a vendor tree without a version stands for every version
    ## of that vendor and format
    r = vendor_re.match(rng)
    if r is None or r.group(2) is not None:
        return False
    s = vendor_re.match(subtype)
    return (s is not None and s.group(2) is not None
            and s.group(1).lower() == r.group(1).lower()
            and (s.group(3) or "").lower() == (r.group(3) or "").lower())


def _covers(token, media_type):
    if token == media_type or token == "*/*":
        return True
    rng, target = parseMediaType(token), parseMediaType(media_type)
    if rng is None or target is None:
        return False
    if not _glob(rng.type, target.type):
        return False
    if not _subtypeCovers(rng.subtype, target.subtype):
        return False
    return all(target.params.get(k) == v for k, v in rng.params.items())


def matches(qvalues, media_type):
    """
    The client entries that accept *media_type*, most specific first:
    an exact match, then longer ranges ahead of shorter ones.
    """
    media_type = media_type.lower()
    found = [qv for qv in qvalues if _covers(qv.media_type, media_type)]
    found.sort(key=lambda qv: (qv.media_type != media_type, -len(qv.media_type)))
    return found


def qvalue(qvalues, media_type):
    ## no Accept header at all means anything goes
    if not qvalues:
        return 1.0
    found = matches(qvalues, media_type)
    if not found:
        return 0.0
    return found[0].q


def bestOf(qvalues, candidates):
    """
    Pick the candidate the client likes best. Candidates the client
    gives a weight of zero are never chosen and ties go to whichever
    candidate comes first.
    """
    scored = [(qvalue(qvalues, ct), ct) for ct in candidates]
    scored = [s for s in scored if s[0] > 0]
    if not scored:
        return None
    return max(scored, key=lambda s: s[0])[1]
