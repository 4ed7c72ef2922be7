"""Runtime settings for the temporal keyword."""

from __future__ import annotations

import os
from dataclasses import dataclass

import pendulum

DEFAULT_KEYWORD = "temporal"
DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class TemporalSettings:
    """Keyword name and time zone used when compiling and evaluating.

    Attributes:
        keyword: Schema keyword that carries date constraints
        timezone: IANA zone that naive inputs are read in, and that parsed
            values are normalised to before manipulation
    """

    keyword: str = DEFAULT_KEYWORD
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self) -> None:
        if not self.keyword:
            raise ValueError("keyword must be a non-empty string")
        try:
            pendulum.timezone(self.timezone)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown time zone: {self.timezone}") from exc

    @classmethod
    def from_env(cls) -> TemporalSettings:
        """Create settings from environment variables.

        Resolution order for each setting:
        1. TEMPORALSCHEMA_KEYWORD / TEMPORALSCHEMA_TIMEZONE env vars
        2. Defaults: "temporal" and "UTC"
        """
        return cls(
            keyword=os.environ.get("TEMPORALSCHEMA_KEYWORD") or DEFAULT_KEYWORD,
            timezone=os.environ.get("TEMPORALSCHEMA_TIMEZONE") or DEFAULT_TIMEZONE,
        )
