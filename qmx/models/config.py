from pydantic import BaseModel, ConfigDict
from typing import Optional
import logging
import os
import yaml
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_HOST = "http://172.20.32.1:11434"
DEFAULT_EMBED_MODEL = "nomic-embed-text"
DEFAULT_EXPANDER_MODEL = "hf.co/tobil/qmd-query-expansion-1.7B-gguf:Q4_K_M"
DEFAULT_RERANKER_MODEL = "fanyx/Qwen3-Reranker-0.6B-Q8_0:latest"
DEFAULT_TIMEOUT_MS = 5000

# camelCase names are accepted for compatibility with older config files
_KEY_ALIASES = {
    "ollamaHost": "ollama_host",
    "embedModel": "embed_model",
    "expanderModel": "expander_model",
    "rerankerModel": "reranker_model",
}


def get_default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "qmx"
    return Path.home() / ".config" / "qmx"


def get_default_config_path() -> Path:
    return get_default_config_dir() / "config.yml"


def get_default_cache_dir() -> Path:
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / "qmx"
    return Path.home() / ".cache" / "qmx"


def get_db_path(index_name: str = "index") -> Path:
    base = get_default_cache_dir()
    base.mkdir(parents=True, exist_ok=True)
    return base / f"{index_name or 'index'}.sqlite"


def resolve_ollama_host(host: Optional[str] = None, fallback: Optional[str] = None) -> str:
    """Pick the first configured host and normalize it to ``scheme://host:port``."""
    raw = (host or os.environ.get("OLLAMA_HOST") or fallback or DEFAULT_OLLAMA_HOST).strip()
    if not raw.startswith(("http://", "https://")):
        raw = f"http://{raw}"
    return raw.rstrip("/")


class LLMSettings(BaseModel):
    """Effective backend settings handed to the client and both engines."""

    model_config = ConfigDict(frozen=True)

    host: str = DEFAULT_OLLAMA_HOST
    embed_model: str = DEFAULT_EMBED_MODEL
    expander_model: str = DEFAULT_EXPANDER_MODEL
    reranker_model: str = DEFAULT_RERANKER_MODEL
    timeout_ms: int = DEFAULT_TIMEOUT_MS


class AppConfig(BaseModel):
    ollama_host: Optional[str] = None
    embed_model: Optional[str] = None
    expander_model: Optional[str] = None
    reranker_model: Optional[str] = None
    request_timeout_ms: int = DEFAULT_TIMEOUT_MS

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppConfig":
        config_path = path or get_default_config_path()
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning("Ignoring unreadable config %s: %s", config_path, e)
            return cls()
        if not isinstance(data, dict):
            return cls()
        data = {_KEY_ALIASES.get(k, k): v for k, v in data.items()}
        return cls.model_validate(data)

    def save(self, path: Optional[Path] = None):
        config_path = path or get_default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, allow_unicode=True)

    def set_value(self, key: str, value: str) -> "AppConfig":
        field_name = _KEY_ALIASES.get(key, key)
        if field_name not in _KEY_ALIASES.values():
            raise ValueError(f"Unknown config key '{key}'")
        if field_name == "ollama_host":
            value = resolve_ollama_host(value)
        setattr(self, field_name, value)
        return self

    def settings(
        self,
        host: Optional[str] = None,
        embed_model: Optional[str] = None,
        expander_model: Optional[str] = None,
        reranker_model: Optional[str] = None,
    ) -> LLMSettings:
        """Resolve the effective settings: explicit argument > env/config > default."""
        return LLMSettings(
            host=resolve_ollama_host(host, self.ollama_host),
            embed_model=embed_model or self.embed_model or DEFAULT_EMBED_MODEL,
            expander_model=expander_model or self.expander_model or DEFAULT_EXPANDER_MODEL,
            reranker_model=reranker_model or self.reranker_model or DEFAULT_RERANKER_MODEL,
            timeout_ms=self.request_timeout_ms,
        )
