import os

from werkzeug.middleware.proxy_fix import ProxyFix

from neigh import create_app

app = create_app()

# Number of reverse proxies in front of the app (0 disables ProxyFix)
_hops = int(os.getenv("PROXY_HOPS", "1"))
if _hops:
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=_hops, x_proto=_hops, x_host=_hops,
                            x_port=_hops, x_prefix=_hops)
