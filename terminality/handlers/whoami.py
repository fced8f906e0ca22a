# python
"""
terminality/handlers/whoami.py
Handler for `whoami` command that reports the session player name.
"""


async def run(session, fs, argv):
    return session.username or "guest"
