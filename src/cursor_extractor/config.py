"""Configuration loading and management."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class AdapterConfig:
    enabled: bool = True


@dataclass
class NormalizerConfig:
    prefer_composer: bool = True
    merge_all: bool = False
    max_threads_per_db: int | None = 1000
    max_messages_per_thread: int | None = 1000
    adapters: dict[str, AdapterConfig] = field(default_factory=dict)

    def is_adapter_enabled(self, name: str) -> bool:
        """Adapters not mentioned in the configuration are enabled."""
        adapter = self.adapters.get(name)
        return adapter.enabled if adapter is not None else True


@dataclass
class WatchConfig:
    interval_seconds: int = 5
    outbox_path: Path = field(default_factory=lambda: Path.home() / "cursor-extractor" / "outbox")


@dataclass
class Config:
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def _optional_limit(value: object, default: int | None) -> int | None:
    """Read a retention limit; null or 0 disables it."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value if value > 0 else None


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config in standard locations
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "cursor-extractor" / "config.yaml",
            Path("/etc/cursor-extractor/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    # Parse normalizer config
    normalizer_data = data.get("normalizer") or {}
    adapters = {}
    for name, adapter_data in (normalizer_data.get("adapters") or {}).items():
        adapter_data = adapter_data or {}
        adapters[name] = AdapterConfig(enabled=bool(adapter_data.get("enabled", True)))

    defaults = NormalizerConfig()
    normalizer = NormalizerConfig(
        prefer_composer=bool(normalizer_data.get("prefer_composer", True)),
        merge_all=bool(normalizer_data.get("merge_all", False)),
        max_threads_per_db=_optional_limit(
            normalizer_data.get("max_threads_per_db", defaults.max_threads_per_db),
            defaults.max_threads_per_db,
        ),
        max_messages_per_thread=_optional_limit(
            normalizer_data.get("max_messages_per_thread", defaults.max_messages_per_thread),
            defaults.max_messages_per_thread,
        ),
        adapters=adapters,
    )

    # Parse watch config
    watch_data = data.get("watch") or {}
    watch = WatchConfig(
        interval_seconds=watch_data.get("interval_seconds", 5),
        outbox_path=expand_path(watch_data.get("outbox_path", "~/cursor-extractor/outbox")),
    )

    return Config(normalizer=normalizer, watch=watch)
