"""
Security pieces for the task API.

Components:
- ratelimit.py  - Fixed-window request throttling per user
- session.py    - Bearer-token sessions (only token hashes are stored)
"""
