from __future__ import annotations

import logging
from typing import Iterable, Mapping

from .profile import ToolProfile

logger = logging.getLogger(__name__)


class ToolProfileRegistry:
    """Registry of the tool profiles the runner knows how to drive."""

    def __init__(self) -> None:
        self._profiles: dict[str, ToolProfile] = {}

    def register(self, profile: ToolProfile) -> None:
        key = profile.name.lower()
        if key in self._profiles:
            raise ValueError(f"Tool profile '{profile.name}' already registered.")
        self._profiles[key] = profile
        logger.debug("Registered tool profile %s", profile.display_name)

    def available(self) -> list[str]:
        return sorted(self._profiles.keys())

    def get(self, name: str) -> ToolProfile:
        key = name.lower()
        if key not in self._profiles:
            raise KeyError(f"Unknown tool '{name}'. Available: {self.available()}")
        return self._profiles[key]

    def get_many(self, names: Iterable[str]) -> list[ToolProfile]:
        return [self.get(name) for name in names]

    def as_mapping(self) -> Mapping[str, ToolProfile]:
        return dict(self._profiles)
