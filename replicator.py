#!/usr/bin/env python3
"""
Redis Monitor Replicator

Replays the output of ``redis-cli monitor`` against a destination Redis
in real time.

Usage:
    redis-cli -p 6379 monitor | redis-monitor-replicator --redis-port 6380
"""
import argparse
import sys

from config import (
    ReplicatorConfig,
    DEFAULT_REDIS_HOST,
    DEFAULT_REDIS_PORT,
    DEFAULT_REDIS_DB
)
from executors.redis import RedisExecutor
from logging_config import LoggingConfig
from replication.exceptions import ConnectionError as ReplicationConnectionError
from replication.manager import ReplicationManager

__version__ = "1.0.0"


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description='Replicate Redis MONITOR output read from stdin to a destination Redis'
    )
    parser.add_argument('--redis-host', type=str, default=DEFAULT_REDIS_HOST,
                        help='destination redis host')
    parser.add_argument('--redis-port', type=int, default=DEFAULT_REDIS_PORT,
                        help='destination redis port')
    parser.add_argument('--redis-db', type=int, default=DEFAULT_REDIS_DB,
                        help='destination redis database number')
    parser.add_argument('--log', action='store_true',
                        help='log all replicated commands')
    parser.add_argument('--log-dir', type=str, default=None,
                        help='also write JSON logs to a rotating file in this directory')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser.parse_args(argv)


def main(argv=None, stream=None, executor=None) -> int:
    """
    Run the replicator.

    Args:
        argv: Command line arguments, defaults to sys.argv
        stream: Monitor output, defaults to stdin read as bytes
        executor: Destination executor, defaults to a RedisExecutor for the configured host

    Returns:
        Process exit status
    """
    args = parse_arguments(argv)
    LoggingConfig.setup_logging(log_dir=args.log_dir)
    logger = LoggingConfig.get_logger('cli')

    try:
        config = ReplicatorConfig.from_args(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    logger.debug(f"Configuration: {config.to_dict()}")
    if executor is None:
        executor = RedisExecutor.from_config(config)

    try:
        try:
            executor.ping()
        except ReplicationConnectionError as e:
            logger.error(str(e))
            return 1

        if stream is None:
            stream = sys.stdin.buffer

        manager = ReplicationManager(config, executor)
        try:
            manager.run(stream)
        except Exception as e:
            logger.error(f"Error reading monitor output: {e}")
            return 1
    finally:
        executor.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
