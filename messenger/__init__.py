"""
Messenger backend package.

REST endpoints for authentication, chats and messages, plus a socket.io
relay for live delivery, typing indicators and presence.
"""

__version__ = "0.1.0"
