"""
Redis Command Executor for the monitor replicator.

Forwards replicated commands to a destination Redis server with
``execute_command``.
"""
import logging
from typing import Optional, Sequence

import redis

from executors.base import CommandExecutor, ExecutionResult
from replication.exceptions import ConnectionError as ReplicationConnectionError


def _command_name(name: str):
    """Return the name as sent on the wire, restoring raw bytes if it has any."""
    try:
        name.encode('utf-8')
    except UnicodeEncodeError:
        return name.encode('utf-8', 'surrogateescape')
    return name


class RedisExecutor(CommandExecutor):
    """An executor that runs commands on a destination Redis."""

    def __init__(self, host: str = 'localhost', port: int = 6379, db: int = 0,
                 client: Optional[redis.Redis] = None):
        """
        Initialize the Redis executor.

        Args:
            host: Destination Redis host
            port: Destination Redis port
            db: Destination Redis database number
            client: Pre-built client, used instead of connecting to host/port
        """
        self.host = host
        self.port = port
        self.db = db
        self.redis = client if client is not None else redis.Redis(host=host, port=port, db=db)
        self.logger = logging.getLogger('redis_replicator.executor')

    @classmethod
    def from_config(cls, config) -> 'RedisExecutor':
        """Create an executor for the destination named in a ReplicatorConfig."""
        return cls(host=config.redis_host, port=config.redis_port, db=config.redis_db)

    def ping(self) -> None:
        """
        Check the destination with PING.

        Raises:
            ConnectionError: If the destination cannot be reached
        """
        try:
            self.redis.ping()
        except redis.RedisError as e:
            raise ReplicationConnectionError(
                f"redis connection error: {e}", host=self.host, port=self.port
            ) from e
        self.logger.info(f"Connected to destination {self.host}:{self.port} db={self.db}")

    def execute(self, name: str, args: Sequence[bytes]) -> ExecutionResult:
        """
        Run one command on the destination Redis.

        Args:
            name: Command name; non-UTF-8 bytes arrive as surrogate escapes
            args: Command arguments

        Returns:
            ExecutionResult holding the reply, or the RedisError on failure
        """
        try:
            reply = self.redis.execute_command(_command_name(name), *args)
        except redis.RedisError as e:
            return ExecutionResult.failed(e)
        return ExecutionResult.ok(reply)

    def close(self) -> None:
        """Close the connection pool of the destination client."""
        try:
            self.redis.close()
        except redis.RedisError as e:
            self.logger.warning(f"Error closing Redis connection: {e}")
