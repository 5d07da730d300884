{
    "vendor": "acme",
    "versions": ["v1", "v2"],
    "formats" : [
        ("json", "application/json"),
        ("xml", "application/xml"),
        ],
    "strict": False,
    "cascade": True,
    "base": "/var/www/api",
    "script": "",
    "index": "index",
    "loglevel": "info",
    "logformat": "%(asctime)s %(levelname)s  [%(name)s] %(message)s",
    "methods": ('HEAD', 'GET'),
}
