"""
Configuration for the monitor replicator.

The configuration is built once at startup and passed to the pipeline
and executor constructors; it never changes afterwards.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict

DEFAULT_REDIS_HOST = "localhost"
DEFAULT_REDIS_PORT = 6379
DEFAULT_REDIS_DB = 0
DEFAULT_CHANNEL_CAPACITY = 100


@dataclass(frozen=True)
class ReplicatorConfig:
    """Destination and pipeline settings."""
    redis_host: str = DEFAULT_REDIS_HOST
    redis_port: int = DEFAULT_REDIS_PORT
    redis_db: int = DEFAULT_REDIS_DB
    verbose: bool = False
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY

    def __post_init__(self):
        if not self.redis_host:
            raise ValueError("redis_host must not be empty")
        if not 0 < self.redis_port < 65536:
            raise ValueError(f"Invalid redis_port: {self.redis_port}")
        if self.redis_db < 0:
            raise ValueError(f"Invalid redis_db: {self.redis_db}")
        if self.channel_capacity < 1:
            raise ValueError(f"Invalid channel_capacity: {self.channel_capacity}")

    @property
    def address(self) -> str:
        return f"{self.redis_host}:{self.redis_port}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_args(cls, args) -> 'ReplicatorConfig':
        """Create configuration from parsed command-line arguments."""
        return cls(
            redis_host=args.redis_host,
            redis_port=args.redis_port,
            redis_db=args.redis_db,
            verbose=args.log
        )
