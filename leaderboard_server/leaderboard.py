"""
Read-only leaderboard projection over the participant registry.
"""
from __future__ import annotations

from leaderboard_server.registry import ParticipantRecord, ParticipantRegistry


class LeaderboardView:
    def __init__(self, registry: ParticipantRegistry):
        self._registry = registry

    def list(self) -> list[ParticipantRecord]:
        """Fresh snapshot: score descending, ties keep insertion order."""
        return self._registry.snapshot()

    def as_json(self) -> list[dict]:
        return [p.to_public() for p in self.list()]
