from __future__ import annotations

import re
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .state.model import Provider


DEFAULT_LS_BASE_URL = "http://localhost:8321"
DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_VLLM_BASE_URL = "http://localhost:8000"

_SCHEME_RE = re.compile(r"^https?:", re.IGNORECASE)
_V1_SUFFIX_RE = re.compile(r"/v1/?$")


def normalize_base_url(
    raw: Optional[str],
    origin: str = "http://localhost:5173",
    default: str = DEFAULT_LS_BASE_URL,
) -> str:
    """Return a base URL without trailing slash or ``/v1`` suffix.

    Transports append their own versioned paths, so ``http://host/v1/``
    becomes ``http://host``. A path-only value is resolved against
    ``origin`` and an empty value falls back to ``default``.
    """
    raw = (raw or "").strip()
    if not raw:
        return default
    if _SCHEME_RE.match(raw):
        url = raw
    elif raw.startswith("/"):
        url = urljoin(origin.rstrip("/") + "/", raw.lstrip("/"))
    else:
        url = f"http://{raw}"
    url = url.rstrip("/")
    return _V1_SUFFIX_RE.sub("", url).rstrip("/")


class AppSettings(BaseSettings):
    """Settings centralisées (env + défauts raisonnables)."""
    model_config = SettingsConfigDict(env_prefix="BJA_", env_file=".env", extra="ignore")

    # Llama Stack
    LS_BASE_URL: str = ""
    LS_API_KEY: str = ""
    LS_MODEL_ID: str = "mistral-small-24b-w8a8"

    # Ollama
    OLLAMA_HOST: str = DEFAULT_OLLAMA_HOST
    OLLAMA_MODEL: str = "llama3.1:8b"

    # vLLM (OpenAI-compatible)
    VLLM_BASE_URL: str = DEFAULT_VLLM_BASE_URL
    VLLM_API_KEY: str = ""
    VLLM_MODEL: str = "mistralai/Mistral-Small-24B-Instruct-2501"

    # Agent de notification du solde
    NTFY_AGENT_ID: str = "blackjack-ai-balance-notifications"

    # Origine utilisée pour résoudre les URLs relatives
    APP_ORIGIN: str = "http://localhost:5173"

    # Transport
    STREAMING: bool = True
    TIMEOUT_S: float = Field(30.0, gt=0)
    MAX_RETRIES: int = Field(1, ge=0, le=1)

    # Sampling
    MAX_TOKENS: int = Field(200, gt=0)
    TEMPERATURE: float = Field(0.7, ge=0.0, le=2.0)
    TOP_P: float = Field(0.9, gt=0.0, le=1.0)

    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL")
    @classmethod
    def _level_upper(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be one of: DEBUG|INFO|WARNING|ERROR|CRITICAL")
        return v

    @property
    def ls_base_url(self) -> str:
        return normalize_base_url(self.LS_BASE_URL, self.APP_ORIGIN)

    @property
    def ollama_base_url(self) -> str:
        return normalize_base_url(self.OLLAMA_HOST, self.APP_ORIGIN, DEFAULT_OLLAMA_HOST)

    @property
    def vllm_base_url(self) -> str:
        return normalize_base_url(self.VLLM_BASE_URL, self.APP_ORIGIN, DEFAULT_VLLM_BASE_URL)

    def model_for(self, provider: Provider) -> str:
        """Static provider -> model identifier mapping."""
        models = {
            Provider.LS: self.LS_MODEL_ID,
            Provider.OLLAMA: self.OLLAMA_MODEL,
            Provider.VLLM: self.VLLM_MODEL,
        }
        return models[Provider(provider)]

    def sampling(self) -> dict[str, float | int]:
        return {
            "max_tokens": self.MAX_TOKENS,
            "temperature": self.TEMPERATURE,
            "top_p": self.TOP_P,
        }


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid config YAML: {path}") from e


def load_settings(config_file: Optional[Path] = None) -> AppSettings:
    """
    Charge les settings depuis l'environnement, avec surcharge YAML optionnelle.

    Les clés du fichier YAML sont les noms de champs (insensibles à la casse).
    """
    if config_file is None:
        return AppSettings()
    path = Path(config_file).resolve()
    if not path.exists():
        raise FileNotFoundError(f"Config YAML not found: {path}")
    data = _load_yaml(path)
    if not isinstance(data, dict):
        raise ValueError(f"Config YAML must be a mapping: {path}")
    overrides = {str(k).upper(): v for k, v in data.items()}
    return AppSettings(**overrides)
