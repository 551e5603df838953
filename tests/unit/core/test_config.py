"""
Query Cache — Configuration Tests
"""

import hashlib
from datetime import timedelta
from pathlib import Path

import pytest

from query_cache.config import (
    DEFAULT_PREFIX,
    DEFAULT_TTL_SECONDS,
    QueryCacheConfig,
    SerializerKind,
    StorageBackend,
    StorageConfig,
    get_config,
    load_config,
    reload_config,
)
from query_cache.errors import ConfigurationError


class TestQueryCacheConfig:
    def test_defaults(self) -> None:
        config = QueryCacheConfig()

        assert config.prefix == "gobp:cache:"
        assert config.ttl_seconds == 3600
        assert config.serializer == SerializerKind.JSON
        assert config.key_generator("SELECT 1-[]") == "SELECT 1-[]"
        assert config.storage.backend == StorageBackend.MEMORY

    @pytest.mark.parametrize("ttl", [0, -1, timedelta(0), None])
    def test_non_positive_ttl_replaced(self, ttl: object) -> None:
        assert QueryCacheConfig(ttl_seconds=ttl).ttl_seconds == DEFAULT_TTL_SECONDS

    def test_timedelta_ttl(self) -> None:
        assert QueryCacheConfig(ttl_seconds=timedelta(minutes=5)).ttl_seconds == 300

    def test_empty_prefix_replaced(self) -> None:
        assert QueryCacheConfig(prefix="").prefix == DEFAULT_PREFIX

    def test_custom_key_generator(self) -> None:
        def sha(identifier: str) -> str:
            return hashlib.sha256(identifier.encode()).hexdigest()

        config = QueryCacheConfig(key_generator=sha)
        assert config.key_generator("x") == sha("x")

    def test_missing_key_generator_falls_back(self) -> None:
        assert QueryCacheConfig(key_generator=None).key_generator("abc") == "abc"

    def test_redis_requires_url(self) -> None:
        with pytest.raises(ValueError):
            StorageConfig(backend=StorageBackend.REDIS)


class TestLoadConfig:
    def test_from_environment(self, mock_env_memory: None, tmp_path: Path) -> None:
        config = load_config(env_file=str(tmp_path / "missing.env"), reload=True)

        assert config.prefix == "test:"
        assert config.ttl_seconds == 600
        assert config.storage.max_size == 100
        assert get_config() is config

    def test_redis_auto_detected(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("CACHE_BACKEND", raising=False)
        monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/3")

        config = load_config(env_file=str(tmp_path / "missing.env"), reload=True)

        assert config.storage.backend == StorageBackend.REDIS
        assert config.storage.redis_url == "redis://localhost:6379/3"

    def test_env_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("REDIS_URL", raising=False)
        monkeypatch.delenv("CACHE_BACKEND", raising=False)
        monkeypatch.delenv("QUERY_CACHE_SERIALIZER", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("QUERY_CACHE_SERIALIZER=msgpack\n")

        try:
            config = load_config(env_file=str(env_file), reload=True)
        finally:
            # load_dotenv writes into os.environ directly
            monkeypatch.delenv("QUERY_CACHE_SERIALIZER", raising=False)

        assert config.serializer == SerializerKind.MSGPACK

    def test_invalid_values_raise_configuration_error(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("REDIS_URL", raising=False)
        monkeypatch.setenv("QUERY_CACHE_SERIALIZER", "pickle")

        with pytest.raises(ConfigurationError):
            load_config(env_file=str(tmp_path / "missing.env"), reload=True)

    def test_reload_picks_up_changes(
        self, mock_env_memory: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        env_file = str(tmp_path / "missing.env")
        first = load_config(env_file=env_file)

        monkeypatch.setenv("QUERY_CACHE_PREFIX", "reloaded:")

        assert load_config(env_file=env_file) is first
        assert reload_config(env_file=env_file).prefix == "reloaded:"
