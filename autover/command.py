from autover.app import AutoVer

def autover_cgi():
    from flup.server.cgi import WSGIServer
    WSGIServer(AutoVer()).run()

def autover_fcgi():
    from flup.server.fcgi import WSGIServer
    WSGIServer(AutoVer(), multiplexed=False).run()
