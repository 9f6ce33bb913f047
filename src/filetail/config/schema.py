"""Configuration schema dataclasses for filetail.

Defines the structure of configuration files at every level (system, user,
explicit --config). All fields are optional so partial files merge together.

Example config.yaml:
    logging:
      level: info
      file: ~/.filetail/filetail.log
    tail:
      follow: true
      reopen: true
      poll: false
      poll_interval: 0.25
      max_line_size: 8192
    rate_limit:
      capacity: 1000
      leak_interval: 0.001
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from filetail.engine.options import DEFAULT_COOLOFF, SeekInfo, TailConfig
from filetail.watching.polling import DEFAULT_POLL_INTERVAL

if TYPE_CHECKING:
    import logging

    from filetail.watching.multiplexer import WatchMultiplexer


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path; stderr when unset


@dataclass
class TailSettings:
    """Defaults for every tail started from this configuration."""

    follow: bool = False
    reopen: bool = False
    reopen_delay: float = 0.0
    must_exist: bool = False
    poll: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_line_size: int = 0
    notify_interval: float | None = None


@dataclass
class RateLimitConfig:
    """Leaky bucket applied to every tail. Disabled while capacity is unset."""

    capacity: int | None = None
    leak_interval: float = 1.0  # Seconds for one token to leak
    cooloff: float = DEFAULT_COOLOFF


@dataclass
class Config:
    """Root configuration object."""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tail: TailSettings = field(default_factory=TailSettings)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    def tail_config(
        self,
        *,
        location: SeekInfo | None = None,
        logger: logging.Logger | None = None,
        watch_service: WatchMultiplexer | None = None,
    ) -> TailConfig:
        """Build runtime options for one tail from these settings.

        Each call gets its own rate limiter bucket.
        """
        from filetail.ratelimit.bucket import LeakyBucket

        limiter = None
        if self.rate_limit.capacity:
            limiter = LeakyBucket(self.rate_limit.capacity, self.rate_limit.leak_interval)

        return TailConfig(
            location=location,
            follow=self.tail.follow or self.tail.reopen,
            reopen=self.tail.reopen,
            reopen_delay=self.tail.reopen_delay,
            must_exist=self.tail.must_exist,
            poll=self.tail.poll,
            poll_interval=self.tail.poll_interval,
            max_line_size=self.tail.max_line_size,
            notify_interval=self.tail.notify_interval,
            rate_limiter=limiter,
            cooloff=self.rate_limit.cooloff,
            logger=logger,
            watch_service=watch_service,
        )
