"""
:program:`autover_fcgi`

:program:`autover_cgi`

Serve documents from the filesystem by API version, where the
version is chosen with the HTTP Accept header.

The script needs to know the following:

  * the API vendor name
  * the supported versions, oldest first
  * extension -> mime_type mapping for the formats
  * base directory to look for the files in the filesystem
  * name of the script to strip from request URIs

If you have a file called *conf.py* with::

  { "vendor": "acme",
    "versions": ["v1", "v2"],
    "formats": [("json", "application/json"), ("xml", "application/xml")] }

And then run the cgi with::

  % autover_cgi -c conf.py -b /var/www

A request for /things with the header::

  Accept: application/vnd.acme-v1+json

is answered with /var/www/things.v1.json. When no version is asked
for, the newest version available is served, and /var/www/things.json
is used when there is no versioned file at all.

Parameters such as *base* and *script* may be configured either
in the configuration file or passed on the command line.

The negotiation is also available as WSGI middleware, :class:`Versioner`,
which leaves the negotiated api.* keys in the environ for the wrapped
application, and :class:`Cascade` which tries one application after the
other for as long as they answer with ``X-Cascade: pass``.
"""

__all__ = ['AutoVer', 'Versioner', 'Cascade', 'not_acceptable']

from ast import literal_eval
from traceback import format_exc
from pprint import pformat
from optparse import OptionParser
import os, time
import logging
from glob import glob

from autover.versioner import InvalidAcceptHeader, NegotiationConfig, negotiate

log = logging.getLogger("autover")

BUFSIZ = 4096


def not_acceptable(start_response, error):
    headers = [('Content-Type', 'text/plain; charset=utf-8')]
    headers.extend(error.headers.items())
    start_response('406 Not Acceptable', headers)
    return [error.message.encode("utf-8")]


class Versioner(object):
    """
    WSGI middleware running the Accept header negotiation in front
    of *app*. Keyword arguments are those of :class:`NegotiationConfig`.
    """
    def __init__(self, app, **kw):
        self.app = app
        self.config = NegotiationConfig(**kw)

    def __call__(self, environ, start_response):
        try:
            result = negotiate(self.config, environ.get('HTTP_ACCEPT'))
        except InvalidAcceptHeader as e:
            return not_acceptable(start_response, e)
        if result is not None:
            environ.update(result.environ_items())
        return self.app(environ, start_response)


class Cascade(object):
    """
    Try each application in turn. A response carrying ``X-Cascade: pass``
    is thrown away and the next application gets the request, the
    last one is always answered.
    """
    def __init__(self, apps):
        self.apps = list(apps)
        if not self.apps:
            raise ValueError("nothing to cascade to")

    def __call__(self, environ, start_response):
        for app in self.apps[:-1]:
            captured = []
            written = []
            def capture(status, headers, exc_info=None):
                captured[:] = [status, headers, exc_info]
                return written.append
            result = app(dict(environ), capture)
            try:
                body = written + list(result)
            finally:
                if hasattr(result, "close"):
                    result.close()
            if not captured:
                raise RuntimeError("%r returned without calling start_response" % (app,))
            status, headers, exc_info = captured
            if any(k.lower() == 'x-cascade' and v == 'pass' for k, v in headers):
                log.debug("%s cascades past %s", status, app)
                continue
            start_response(status, headers, exc_info)
            return body
        return self.apps[-1](environ, start_response)


class AutoVer(object):
    opt_parser = OptionParser(usage=__doc__)
    opt_parser.add_option("-c", "--config",
                          dest="config",
                          default=None,
                          help="configuration file")
    opt_parser.add_option("-d", "--debug",
                          dest="debug",
                          default=False,
                          action="store_true",
                          help="debug")
    opt_parser.add_option("-b", "--base",
                          dest="base",
                          help="base path")
    opt_parser.add_option("-s", "--script",
                          dest="script",
                          help="script name to strip")
    opt_parser.add_option("-i", "--index",
                          dest="index",
                          help="index file to use (default: index)")
    opt_parser.add_option("-V", "--vendor",
                          dest="vendor",
                          help="API vendor name")
    opt_parser.add_option("--version-list",
                          dest="versions",
                          help="comma separated API versions, oldest first")
    opt_parser.add_option("--strict",
                          dest="strict",
                          default=False,
                          action="store_true",
                          help="require an Accept header without ranges")
    opt_parser.add_option("--no-cascade",
                          dest="no_cascade",
                          default=False,
                          action="store_true",
                          help="do not send X-Cascade: pass with errors")
    opt_parser.add_option("-l", "--logfile",
                          dest="logfile", default=None,
                          help="log to file")
    opt_parser.add_option("-v", "--verbosity",
                          dest="loglevel", default=None,
                          help="log verbosity. one of debug, info, warning, error, critical")
    defaults = {
        "vendor": "autover",
        "versions": ["v1"],
        "formats": [
            ("json", "application/json"),
            ("xml", "application/xml"),
            ("txt", "text/plain"),
            ],
        "strict": False,
        "cascade": True,
        "base": "/var/www",
        "script": "",
        "index": "index",
        "loglevel": "info",
        "logformat": "%(asctime)s %(levelname)s  [%(name)s] %(message)s",
        "methods": ('HEAD', 'GET'),
        }
    def __init__(self, args=None):
        self.opts, self.args = self.opt_parser.parse_args(args)
        self.config = dict(self.defaults)
        if self.opts.config:
            with open(self.opts.config) as fp:
                self.config.update(literal_eval(fp.read()))

        for k,v in self.opts.__dict__.items():
            if v: self.config[k] = v
        if isinstance(self.config["versions"], str):
            self.config["versions"] = [v.strip() for v in self.config["versions"].split(",") if v.strip()]
        if self.opts.no_cascade:
            self.config["cascade"] = False

        self.negotiation = NegotiationConfig(versions=self.config["versions"],
                                             vendor=self.config["vendor"],
                                             formats=self.config["formats"],
                                             strict=self.config["strict"],
                                             cascade=self.config["cascade"])

        ## set up logging
        logcfg = {
            "format": self.config.get("logformat"),
            }
        if self.config.get("logfile"):
            logcfg["filename"] = self.config.get("logfile")

        levels = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL
            }
        logcfg["level"] = levels.get(self.config.get("loglevel"), logging.NOTSET)
        logging.basicConfig(**logcfg)

        log.info("%s starting up, %s versions %s", self.__class__.__name__,
                 self.negotiation.vendor, ", ".join(self.negotiation.versions))

    def __call__(self, environ, start_response):
        try:
            method = environ.get('REQUEST_METHOD', 'GET')
            if method.upper() not in self.config["methods"]:
                start_response('405 Method Not Allowed',
                               [('Content-Type', 'text/plain; charset=utf-8')])
                return [b'405 Method Not Allowed']
            try:
                negotiated = negotiate(self.negotiation, environ.get('HTTP_ACCEPT'))
            except InvalidAcceptHeader as e:
                log.warning("%s %s %s rejected: %s" % (environ.get("REMOTE_ADDR"),
                                                       environ.get("REQUEST_METHOD"),
                                                       environ.get("DOCUMENT_URI", "/"),
                                                       e.message))
                return not_acceptable(start_response, e)
            return self.request(environ, start_response, method.upper(), negotiated)
        except Exception:
            log.error("%s %s %s exception:\n%s" % (environ.get("REMOTE_ADDR"),
                                                   environ.get("REQUEST_METHOD"),
                                                   environ.get("DOCUMENT_URI", "/"),
                                                   format_exc()))
            log.error("%s %s %s environ:\n%s" % (environ.get("REMOTE_ADDR"),
                                                 environ.get("REQUEST_METHOD"),
                                                 environ.get("DOCUMENT_URI", "/"),
                                                 pformat(environ)))

            start_response('500 Internal Server Error',
                           [('Content-Type', 'text/plain; charset=utf-8')])
            if self.opts.debug:
                return [format_exc().encode("utf-8")]
            else:
                return [b"Oops. The admin should look at the logs"]

    def get_path(self, environ):
        path = environ.get("DOCUMENT_URI", "/")

        script_name = self.config["script"]
        if path.startswith(script_name):
            path = path[len(script_name):]
        if path.startswith("/"):
            path = path[1:]

        base = os.path.realpath(self.config["base"])
        path = os.path.normpath(os.path.join(base, path))
        ## nothing outside of base is served
        if os.path.commonpath([base, os.path.realpath(path)]) != base:
            return None
        if os.path.isdir(path):
            path = os.path.join(path, self.config["index"])

        return path

    def candidates(self, path, negotiated):
        """
        The files that could answer for *negotiated*, best first,
        paired with the content type to send them with.
        """
        formats = self.negotiation.formats
        if negotiated.format is not None:
            exts = [(e, ct) for e, ct in formats if e == negotiated.format]
        elif negotiated.vendor is not None:
            exts = list(formats)
        else:
            exts = [(e, ct) for e, ct in formats if ct == negotiated.media_type]

        if negotiated.version is not None:
            versions = [negotiated.version]
        else:
            versions = list(reversed(self.negotiation.versions))

        for version in versions:
            for ext, content_type in exts:
                yield "%s.%s.%s" % (path, version, ext), content_type
        for ext, content_type in exts:
            yield "%s.%s" % (path, ext), content_type

    def request(self, environ, start_response, method, negotiated):
        path = self.get_path(environ)
        if path is None:
            return self.not_found(start_response)
        found = []
        if negotiated is not None:
            found = [(fname, ct) for fname, ct in self.candidates(path, negotiated)
                     if os.path.isfile(fname)]
        if found:
            fname, content_type = found[0]
            return self.send_file(start_response, method, fname, content_type)

        matches = sorted(glob(path + ".*"))
        if matches:
            log.warning("%s %s %s with %s" % (environ.get("REMOTE_ADDR"),
                                              environ.get("REQUEST_METHOD"),
                                              environ.get("DOCUMENT_URI", "/"),
                                              environ.get("HTTP_ACCEPT")))
            log.debug("%s %s %s environ:\n%s" % (environ.get("REMOTE_ADDR"),
                                                 environ.get("REQUEST_METHOD"),
                                                 environ.get("DOCUMENT_URI", "/"),
                                                 pformat(environ)))
            headers = [('Content-type', 'text/html')]
            headers.extend(self.negotiation.error_headers.items())
            start_response('406 Not Acceptable', headers)
            return self.alternatives(matches)

        return self.not_found(start_response)

    def not_found(self, start_response):
        start_response('404 Not Found',
                       [('Content-type', 'text/html')])
        return [b"""\
<html>
  <head><title>404 Not Found</title></head>
  <body>
    <h1>404 Not Found</h1>
    <p>Sorry, couldn't find what you were looking for</p>
  </body>
</html>
"""]

    def send_file(self, start_response, method, fname, content_type):
        fp = open(fname, "rb")
        st = os.fstat(fp.fileno())
        headers = [
            ('Content-Type', content_type),
            ('Content-Length', "%s" % st.st_size),
            ('Content-Location', os.path.basename(fname)),
            ('Last-Modified', time.strftime("%a, %d %b %Y %H:%M:%S GMT",
                                            time.gmtime(st.st_mtime))),
            ('Vary', 'Accept'),
            ('ETag', '%s' % st.st_mtime),
            ]
        start_response('200 OK', headers)
        if method != 'GET':
            fp.close()
            return [b""]
        def read():
            with fp:
                while True:
                    data = fp.read(BUFSIZ)
                    if not data:
                        return
                    yield data
        return read()

    def alternatives(self, matches):
        yield b"""\
<html>
  <head><title>406 Not Acceptable</title></head>
  <body>
    <h1>406 Not Acceptable</h1>
    <p>The requested resource could not be found in an acceptable form.
       Possible alternatives:</p>
    <ul>
"""
        for m in matches:
            fname = os.path.basename(m)
            yield ('      <li><a href="%s">%s</a></li>\n' % (fname, fname)).encode("utf-8")

        yield b"""\
    </ul>
  </body>
</html>
"""
