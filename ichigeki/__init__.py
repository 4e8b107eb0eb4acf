"""
Ichigeki - run a destructive command at most once per day

Architecture:
- Guard: date check, existence check, confirmation, transcript framing
- Destinations: local file, streaming object store upload, composite fan-out
- CLI: config file + flags, runs the command as a child process

Key Properties:
- At most once: an existing execution log blocks the run
- Durable: the full stdout/stderr transcript is recorded
- Bounded memory: remote uploads stream through a fixed-size conduit
"""

__version__ = "0.1.0"
