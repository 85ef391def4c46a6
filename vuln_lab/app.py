"""VulnLab - Deliberately vulnerable web server for scanrules testing.

Every endpoint triggers exactly one rule so a scan of the home page and its
links exercises the whole rule set end to end.
"""

import base64
import html

from flask import Flask, request, render_template_string, make_response, Response

app = Flask(__name__)

# AC ED 00 05 stream header followed by a TC_STRING record
JSO_BLOB = b"\xac\xed\x00\x05t\x00\x05admin"

PHP_SOURCE = "<?php\n$db = new PDO('mysql:host=db', 'root', 'hunter2');\necho 'Welcome';\n?>"

# ── Shared HTML layout ──────────────────────────────────────────

_LAYOUT = """<!DOCTYPE html>
<html><head><title>VulnLab - {{ title }}</title>
<style>
body{font-family:monospace;background:#111;color:#0f0;max-width:900px;margin:0 auto;padding:2rem}
a{color:#0ff}h1{color:#f00}h2{color:#ff0}
pre{background:#1a1a1a;padding:1rem;border:1px solid #333;overflow-x:auto}
</style></head>
<body>
<h1>🔓 VulnLab</h1>
<p><a href="/">← Home</a></p>
<h2>{{ title }}</h2>
{{ content|safe }}
</body></html>
"""


def page(title, content):
    return render_template_string(_LAYOUT, title=title, content=content)


# ══════════════════════════════════════════════════════════════════
#  HOME
# ══════════════════════════════════════════════════════════════════

@app.route("/")
def home():
    return page("Home", """
    <p>Deliberately vulnerable application for scanrules testing.</p>
    <ul>
        <li><a href="/api/profile">Wildcard CORS</a></li>
        <li><a href="/session">Java serialized session cookie</a></li>
        <li><a href="/export.bin">Raw Java serialized download</a></li>
        <li><a href="/docs/guide.html">Relative Path Confusion</a></li>
        <li><a href="/index.php">PHP-CGI source disclosure</a></li>
        <li><a href="/app">Single page application</a></li>
    </ul>
    """)


# ══════════════════════════════════════════════════════════════════
#  CORS - Access-Control-Allow-Origin: *
# ══════════════════════════════════════════════════════════════════

@app.route("/api/profile")
def cors():
    resp = make_response({"user": "alice", "email": "alice@vulnlab.local"})
    # VULNERABLE: any origin may read the response
    resp.headers["Access-Control-Allow-Origin"] = "*"
    return resp


# ══════════════════════════════════════════════════════════════════
#  JSO - Java serialized objects in a cookie and a download
# ══════════════════════════════════════════════════════════════════

@app.route("/session")
def session_cookie():
    resp = make_response(page("Session", "<p>Session restored.</p>"))
    # VULNERABLE: session state is a base64 serialized Java object
    resp.set_cookie("JSESSIONSTATE", base64.b64encode(JSO_BLOB).decode("ascii"))
    return resp


@app.route("/export.bin")
def jso_download():
    return Response(JSO_BLOB, mimetype="application/x-java-serialized-object")


# ══════════════════════════════════════════════════════════════════
#  RPC - same page for any extra path, relative stylesheet, no type
# ══════════════════════════════════════════════════════════════════

_GUIDE = """<html><head><title>Guide</title>
<link rel="stylesheet" href="styles/guide.css">
</head><body><p>User guide</p></body></html>"""


@app.route("/docs/guide.html", defaults={"extra": ""})
@app.route("/docs/guide.html/<path:extra>")
def relative_path(extra):
    # VULNERABLE: trailing path ignored, no doctype, no Content-Type, frameable
    resp = Response(_GUIDE)
    del resp.headers["Content-Type"]
    return resp


# ══════════════════════════════════════════════════════════════════
#  PHP-CGI - CVE-2012-1823 "?-s" shows the script source
# ══════════════════════════════════════════════════════════════════

@app.route("/index.php")
def php_cgi():
    if request.query_string == b"-s":
        # VULNERABLE: behaves like php-cgi -s, highlighted source
        return page("index.php", f"<pre>{html.escape(PHP_SOURCE)}</pre>")
    return page("index.php", "<p>Welcome</p>")


# ══════════════════════════════════════════════════════════════════
#  SPA - script only, no traditional links
# ══════════════════════════════════════════════════════════════════

@app.route("/app")
def spa():
    return ('<html><head><title>App</title></head><body><div id="root"></div>'
            '<script src="/static/bundle.js"></script></body></html>')


# ══════════════════════════════════════════════════════════════════
#  Main
# ══════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    print("\n  🔓 VulnLab starting on http://0.0.0.0:5000\n")
    app.run(host="0.0.0.0", port=5000, debug=True)
