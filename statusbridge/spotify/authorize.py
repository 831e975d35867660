"""
Interactive PKCE authorization: the browser half of the login.

Starts a short-lived aiohttp server for the OAuth redirect, sends the user to
Spotify's consent page, and resolves once the callback delivers a code.  The
server is torn down as soon as the callback (or an error) arrives.

The redirect URI (http://127.0.0.1:<port>/callback by default) must be
registered on the Spotify app in the developer dashboard.
"""

import asyncio
import logging
import secrets
import webbrowser

from aiohttp import web

from .pkce import build_auth_url, generate_code_challenge, generate_code_verifier, SCOPES

log = logging.getLogger(__name__)

_DONE_HTML = '''<!DOCTYPE html><html><head>
<meta charset="UTF-8"><title>Spotify Status Bridge</title>
<style>body{font-family:'Helvetica Neue',sans-serif;background:#000;color:#fff;text-align:center;padding:50px}
h1{font-weight:300;letter-spacing:1px}p{color:#999}</style></head><body>
<h1>%s</h1><p>%s</p></body></html>'''


class AuthorizationError(Exception):
    """Spotify (or the user) declined the authorization request."""


class InteractiveAuthorizer:

    def __init__(self, client_id, callback_port=5000, host="127.0.0.1",
                 scopes=SCOPES, open_browser=True):
        self.client_id = client_id
        self.callback_port = callback_port
        self.host = host
        self.scopes = scopes
        self.open_browser = open_browser

    @property
    def redirect_uri(self):
        return f"http://{self.host}:{self.callback_port}/callback"

    async def request_code(self):
        """Run the consent flow.  Returns ``(code, code_verifier)``."""
        if not self.client_id:
            raise AuthorizationError("No Spotify client_id configured")

        verifier = generate_code_verifier()
        state = secrets.token_urlsafe(16)
        result = asyncio.get_running_loop().create_future()

        async def handle_callback(request):
            if request.query.get("state") != state:
                return web.Response(text="Unknown authorization session", status=400)
            error = request.query.get("error")
            if error:
                if not result.done():
                    result.set_exception(AuthorizationError(error))
                return web.Response(
                    text=_DONE_HTML % ("Authorization failed", error),
                    content_type="text/html", status=400)
            code = request.query.get("code", "")
            if not code:
                return web.Response(text="Missing code", status=400)
            if not result.done():
                result.set_result(code)
            return web.Response(
                text=_DONE_HTML % ("Connected to Spotify", "You can close this page."),
                content_type="text/html")

        app = web.Application()
        app.router.add_get("/callback", handle_callback)
        runner = web.AppRunner(app)
        await runner.setup()
        try:
            site = web.TCPSite(runner, self.host, self.callback_port)
            await site.start()

            url = build_auth_url(self.client_id, self.redirect_uri,
                                 generate_code_challenge(verifier), self.scopes, state)
            log.info("Waiting for Spotify authorization — open: %s", url)
            if self.open_browser:
                webbrowser.open(url)

            code = await result
            log.info("Received authorization callback")
            return code, verifier
        finally:
            await runner.cleanup()
