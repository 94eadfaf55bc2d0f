"""
Tests for the Redis executor, configuration, logging setup and CLI.

The destination Redis is replaced by mocks, so no server is needed.
"""
import dataclasses
import json
import logging
import logging.handlers
from types import SimpleNamespace
from unittest import mock

import pytest
import redis

import replicator
from config import ReplicatorConfig
from executors.base import CommandExecutor, ExecutionResult
from executors.redis import RedisExecutor
from logging_config import LoggingConfig, StructuredFormatter
from replication.exceptions import ConnectionError as ReplicationConnectionError


@pytest.fixture
def redis_client():
    return mock.MagicMock(spec=redis.Redis)


@pytest.fixture
def redis_executor(redis_client):
    return RedisExecutor(host='replica.local', port=6380, db=2, client=redis_client)


# ============================================================================
# Redis Executor Tests
# ============================================================================

class TestRedisExecutor:
    """Test forwarding commands with redis-py."""

    def test_execute_passes_args_through(self, redis_executor, redis_client):
        redis_client.execute_command.return_value = 1

        result = redis_executor.execute("HSET", [b"wh:1", b"207108", b"\x00\xff"])

        redis_client.execute_command.assert_called_once_with("HSET", b"wh:1", b"207108", b"\x00\xff")
        assert result.success
        assert result.reply == 1

    def test_execute_without_args(self, redis_executor, redis_client):
        redis_executor.execute("PING", [])
        redis_client.execute_command.assert_called_once_with("PING")

    def test_non_utf8_name_sent_as_raw_bytes(self, redis_executor, redis_client):
        name = b"\xffSET".decode("utf-8", "surrogateescape")

        redis_executor.execute(name, [b"k"])

        redis_client.execute_command.assert_called_once_with(b"\xffSET", b"k")

    def test_response_error_is_reported(self, redis_executor, redis_client):
        redis_client.execute_command.side_effect = redis.ResponseError("ERR unknown command 'FOO'")

        result = redis_executor.execute("FOO", [b"bar"])

        assert not result.success
        assert isinstance(result.error, redis.ResponseError)

    def test_ping_ok(self, redis_executor, redis_client):
        redis_executor.ping()
        redis_client.ping.assert_called_once()

    def test_ping_failure_raises_connection_error(self, redis_executor, redis_client):
        redis_client.ping.side_effect = redis.ConnectionError("Connection refused")

        with pytest.raises(ReplicationConnectionError) as excinfo:
            redis_executor.ping()

        assert excinfo.value.host == 'replica.local'
        assert excinfo.value.port == 6380
        assert "host=replica.local, port=6380" in str(excinfo.value)

    def test_from_config(self):
        config = ReplicatorConfig(redis_host='10.0.0.5', redis_port=6390, redis_db=3)
        executor = RedisExecutor.from_config(config)

        kwargs = executor.redis.connection_pool.connection_kwargs
        assert kwargs['host'] == '10.0.0.5'
        assert kwargs['port'] == 6390
        assert kwargs['db'] == 3
        executor.close()

    def test_close(self, redis_executor, redis_client):
        redis_executor.close()
        redis_client.close.assert_called_once()

    def test_is_a_command_executor(self, redis_executor):
        assert isinstance(redis_executor, CommandExecutor)


# ============================================================================
# Configuration Tests
# ============================================================================

class TestReplicatorConfig:
    """Test the immutable configuration value."""

    def test_defaults(self):
        config = ReplicatorConfig()
        assert config.address == "localhost:6379"
        assert config.redis_db == 0
        assert config.verbose is False
        assert config.channel_capacity == 100

    def test_frozen(self):
        config = ReplicatorConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.redis_port = 6380

    @pytest.mark.parametrize("kwargs", [
        {'redis_port': 0},
        {'redis_port': 70000},
        {'redis_db': -1},
        {'channel_capacity': 0},
        {'redis_host': ''},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ReplicatorConfig(**kwargs)

    def test_to_dict(self):
        config = ReplicatorConfig(redis_port=6380)
        assert config.to_dict()['redis_port'] == 6380
        assert config.to_dict()['channel_capacity'] == 100

    def test_from_args(self):
        args = SimpleNamespace(redis_host='db', redis_port=7000, redis_db=1, log=True)
        config = ReplicatorConfig.from_args(args)
        assert config == ReplicatorConfig(redis_host='db', redis_port=7000, redis_db=1, verbose=True)


# ============================================================================
# Logging Tests
# ============================================================================

class TestLogging:
    """Test logging configuration."""

    def test_structured_formatter_includes_extra(self):
        record = logging.LogRecord(
            'redis_replicator.sink', logging.WARNING, __file__, 10,
            'Error while executing command %s', ('"FOO"',), None
        )
        record.command = 'FOO'

        entry = json.loads(StructuredFormatter().format(record))

        assert entry['level'] == 'WARNING'
        assert entry['logger'] == 'redis_replicator.sink'
        assert entry['message'] == 'Error while executing command "FOO"'
        assert entry['command'] == 'FOO'

    def test_setup_logging_with_log_dir(self, tmp_path):
        LoggingConfig.setup_logging(log_dir=str(tmp_path))
        logger = LoggingConfig.get_logger('test')
        logger.info("replicated", extra={'command': 'SET'})
        for handler in logging.getLogger('redis_replicator').handlers:
            handler.flush()

        lines = (tmp_path / LoggingConfig.LOG_FILE).read_text().splitlines()
        entry = json.loads(lines[-1])
        assert entry['message'] == "replicated"
        assert entry['command'] == 'SET'

        LoggingConfig.setup_logging()

    def test_setup_logging_console_only(self):
        LoggingConfig.setup_logging()
        handlers = logging.getLogger('redis_replicator').handlers
        assert len(handlers) == 1
        assert not isinstance(handlers[0], logging.handlers.RotatingFileHandler)


# ============================================================================
# CLI Tests
# ============================================================================

class TestMain:
    """Test the command line entry point."""

    @pytest.fixture
    def cli_executor(self):
        executor = mock.MagicMock(spec=CommandExecutor)
        executor.execute.return_value = ExecutionResult.ok("OK")
        return executor

    def test_parse_arguments_defaults(self):
        args = replicator.parse_arguments([])
        assert args.redis_host == 'localhost'
        assert args.redis_port == 6379
        assert args.redis_db == 0
        assert args.log is False
        assert args.log_dir is None

    def test_replicates_stream(self, cli_executor):
        stream = [
            'OK\n',
            '1592134898.858273 [0 192.168.23.10:33072] "HSET" "wh:7134878504547625" "207108" "abc"\n',
        ]

        status = replicator.main(['--redis-port', '6380'], stream=stream, executor=cli_executor)

        assert status == 0
        cli_executor.ping.assert_called_once()
        cli_executor.execute.assert_called_once_with("HSET", [b"wh:7134878504547625", b"207108", b"abc"])
        cli_executor.close.assert_called_once()

    def test_failed_ping_is_fatal(self, cli_executor):
        cli_executor.ping.side_effect = ReplicationConnectionError(
            "redis connection error: Connection refused", host='localhost', port=6379
        )
        stream = mock.MagicMock()

        status = replicator.main([], stream=stream, executor=cli_executor)

        assert status == 1
        stream.__iter__.assert_not_called()
        cli_executor.execute.assert_not_called()
        cli_executor.close.assert_called_once()

    def test_invalid_configuration(self, cli_executor):
        status = replicator.main(['--redis-port', '0'], stream=[], executor=cli_executor)

        assert status == 2
        cli_executor.ping.assert_not_called()

    def test_read_error_exits_nonzero(self, cli_executor):
        def broken_stream():
            yield '1.0 [0 127.0.0.1:1] "PING"\n'
            raise OSError("stdin went away")

        status = replicator.main([], stream=broken_stream(), executor=cli_executor)

        assert status == 1
        cli_executor.execute.assert_called_once_with("PING", [])
