"""
Command executors for the monitor replicator.

- CommandExecutor: interface the replication sink calls
- RedisExecutor: forwards commands to a destination Redis
"""

from executors.base import CommandExecutor, ExecutionResult
from executors.redis import RedisExecutor

__all__ = [
    'CommandExecutor',
    'ExecutionResult',
    'RedisExecutor'
]
