"""
Spotify — everything that talks to Spotify's servers.

  pkce.py       token endpoint calls (PKCE, no client secret)
  tokens.py     atomic refresh-token storage
  authorize.py  interactive consent flow with a local callback server
  auth.py       TokenScheduler: keeps an access token valid, gates API calls
  client.py     Web API client used by the poller and the hub
  extras.py     optional lyrics / canvas lookups
"""
