"""folderindex configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (FOLDERINDEX_EMBEDDING_MODEL, FOLDERINDEX_CHAT_MODEL,
     FOLDERINDEX_EMBED_SUMMARIES, FOLDERINDEX_DB)
  3. Per-project folderindex.yaml
  4. Global ~/.folderindex/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from folderindex.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".folderindex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "folderindex.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Leaves max_tokens alone.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["preferences", "chunking", "embedding", "search", "folders", "database"]
)

_STRATEGIES: frozenset[str] = frozenset(["text", "symbol"])
_BACKENDS: frozenset[str] = frozenset(["hnsw", "flat"])
_TRUTHY: frozenset[str] = frozenset(["1", "true", "yes", "on"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ConfigurationError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class Preferences:
    """Model preferences (folderindex.yaml: preferences:).

    Attributes:
        default_embedding_model: LiteLLM model string used to embed documents
            and queries. ``None`` means no embedding model is configured.
        default_chat_model: LiteLLM model string used for optional
            summarization before embedding.
        embed_summaries: Summarize each document with the chat model and embed
            the summary instead of the raw content.
    """

    default_embedding_model: str | None = "openai/text-embedding-3-small"
    default_chat_model: str | None = "openai/gpt-4o-mini"
    embed_summaries: bool = False


@dataclass
class ChunkingCfg:
    """Chunking strategy configuration (folderindex.yaml: chunking:)."""

    strategy: str = "text"  # text | symbol
    max_tokens: int = 1_000
    overlap_tokens: int = 100
    prefer_natural_boundaries: bool = True
    max_text_length: int = 512
    top_level_only: bool = True


@dataclass
class EmbeddingCfg:
    """Batch sizes for the embedding job (folderindex.yaml: embedding:)."""

    embedding_batch_size: int = 64
    summarize_batch_size: int = 8
    insert_batch_size: int = 50
    snapshot_batch_size: int = 200
    num_retries: int = 3


@dataclass
class SearchCfg:
    """ANN index parameters (folderindex.yaml: search:)."""

    backend: str = "hnsw"  # hnsw | flat
    m: int = 32
    ef_construction: int = 200
    ef_search: int = 64
    score_threshold: float = 0.3
    top_k: int = 10


@dataclass
class FolderCfg:
    """A folder registered in folderindex.yaml (folders[])."""

    name: str
    path: str
    strategy: str | None = None


@dataclass
class FolderIndexConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    preferences: Preferences = field(default_factory=Preferences)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    folders: list[FolderCfg] = field(default_factory=list)
    db_path: str = ".folderindex.db"


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def _check_choice(value: str, allowed: frozenset[str], key: str) -> str:
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ConfigError(f"{key} must be one of: {choices} (got '{value}')")
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any], base_dir: Path) -> FolderIndexConfig:
    """Build a *FolderIndexConfig* from a merged raw YAML dict."""
    cfg = FolderIndexConfig()

    if "preferences" in data:
        p = data["preferences"] or {}
        cfg.preferences = Preferences(
            default_embedding_model=p.get(
                "default_embedding_model", cfg.preferences.default_embedding_model
            ),
            default_chat_model=p.get("default_chat_model", cfg.preferences.default_chat_model),
            embed_summaries=_as_bool(p.get("embed_summaries", cfg.preferences.embed_summaries)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            strategy=_check_choice(
                str(c.get("strategy", cfg.chunking.strategy)), _STRATEGIES, "chunking.strategy"
            ),
            max_tokens=int(c.get("max_tokens", cfg.chunking.max_tokens)),
            overlap_tokens=int(c.get("overlap_tokens", cfg.chunking.overlap_tokens)),
            prefer_natural_boundaries=_as_bool(
                c.get("prefer_natural_boundaries", cfg.chunking.prefer_natural_boundaries)
            ),
            max_text_length=int(c.get("max_text_length", cfg.chunking.max_text_length)),
            top_level_only=_as_bool(c.get("top_level_only", cfg.chunking.top_level_only)),
        )

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            embedding_batch_size=int(
                e.get("embedding_batch_size", cfg.embedding.embedding_batch_size)
            ),
            summarize_batch_size=int(
                e.get("summarize_batch_size", cfg.embedding.summarize_batch_size)
            ),
            insert_batch_size=int(e.get("insert_batch_size", cfg.embedding.insert_batch_size)),
            snapshot_batch_size=int(
                e.get("snapshot_batch_size", cfg.embedding.snapshot_batch_size)
            ),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
        )

    if "search" in data:
        s = data["search"] or {}
        cfg.search = SearchCfg(
            backend=_check_choice(str(s.get("backend", cfg.search.backend)), _BACKENDS, "search.backend"),
            m=int(s.get("m", cfg.search.m)),
            ef_construction=int(s.get("ef_construction", cfg.search.ef_construction)),
            ef_search=int(s.get("ef_search", cfg.search.ef_search)),
            score_threshold=float(s.get("score_threshold", cfg.search.score_threshold)),
            top_k=int(s.get("top_k", cfg.search.top_k)),
        )

    if "folders" in data:
        folders: list[FolderCfg] = []
        for f in data["folders"] or []:
            if "name" not in f or "path" not in f:
                raise ConfigError("Each folders[] entry needs both 'name' and 'path'.")
            strategy = f.get("strategy")
            if strategy is not None:
                _check_choice(str(strategy), _STRATEGIES, f"folders.{f['name']}.strategy")
            path = Path(str(f["path"])).expanduser()
            if not path.is_absolute():
                path = base_dir / path
            folders.append(FolderCfg(name=str(f["name"]), path=str(path), strategy=strategy))
        cfg.folders = folders

    if "database" in data:
        d = data["database"] or {}
        cfg.db_path = str(d.get("path", cfg.db_path))

    return cfg


def _apply_env_overrides(cfg: FolderIndexConfig) -> FolderIndexConfig:
    """Apply FOLDERINDEX_* environment variable overrides (layer 2)."""
    if model := os.environ.get("FOLDERINDEX_EMBEDDING_MODEL"):
        cfg.preferences.default_embedding_model = model
    if model := os.environ.get("FOLDERINDEX_CHAT_MODEL"):
        cfg.preferences.default_chat_model = model
    if (flag := os.environ.get("FOLDERINDEX_EMBED_SUMMARIES")) is not None:
        cfg.preferences.embed_summaries = _as_bool(flag)
    if db := os.environ.get("FOLDERINDEX_DB"):
        cfg.db_path = db
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> FolderIndexConfig:
    """Load and return a merged *FolderIndexConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *folderindex.yaml*. Defaults to CWD.
            Relative folder paths are resolved against it.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *FolderIndexConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or a
            value is outside its allowed set.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged, base_dir=search_dir)

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg)


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.folderindex/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# folderindex global configuration: model defaults only.\n"
            "# NEVER store API keys here; use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "preferences:\n"
            "  default_embedding_model: openai/text-embedding-3-small\n"
            "  default_chat_model: openai/gpt-4o-mini\n"
            "  embed_summaries: false\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
