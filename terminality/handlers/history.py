# python
"""
terminality/handlers/history.py
Handler for the `history` command that echoes the stored session history.
"""


async def run(session, fs, argv):
    """
    Return the recorded session commands, numbered like bash does.
    """
    return "\n".join(f"{idx:>5}  {line}" for idx, line in enumerate(session.history, 1))
