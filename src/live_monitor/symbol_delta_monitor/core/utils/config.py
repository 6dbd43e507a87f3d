import os
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from live_monitor.symbol_delta_monitor.core.utils.errors import ConfigError

load_dotenv()

# ===================== env var -> settings field =============================
ENV_MAPPING: Dict[str, str] = {
    "REDISCACHEHOSTNAME": "cache_host",
    "REDISCACHEKEY": "cache_key",
    "REDISCACHEPORT": "cache_port",
    "REDISCACHESSL": "cache_ssl",
    "REDISCACHETIMEOUT": "cache_timeout",
    "SB_CON_STR": "sb_connection_string",
    "SB_QNAME": "sb_queue_name",
    "SINK_BACKEND": "sink_backend",
    "REDIS_STREAM_NAME": "redis_stream_name",
    "DELETEBLOB_URL": "delete_blob_url",
    "APIM_API_KEY": "apim_api_key",
    "DELETEBLOB_TIMEOUT": "delete_blob_timeout",
    "MAX_CONFLICT_RETRIES": "max_conflict_retries",
    "LOG_LEVEL": "log_level",
    "LOG_DIR": "log_dir",
}

SINK_BACKENDS = ("servicebus", "redis-stream", "memory")


class Settings(BaseModel):
    # ---------- cache store ----------
    cache_host: str = Field("localhost", description="Redis cache hostname")
    cache_key: Optional[str] = Field(None, description="Redis access key")
    cache_port: int = Field(6380, description="Redis TLS port")
    cache_ssl: bool = True
    cache_timeout: float = Field(5.0, description="Redis socket timeout (s)")

    # ---------- message sink ----------
    sb_connection_string: Optional[str] = None
    sb_queue_name: Optional[str] = None
    sink_backend: Optional[str] = None
    redis_stream_name: str = "symbol_delta_stream"

    # ---------- deletion endpoint ----------
    delete_blob_url: Optional[str] = None
    apim_api_key: Optional[str] = None
    delete_blob_timeout: float = 10.0

    # ---------- engine / runtime ----------
    max_conflict_retries: int = Field(3, ge=0)
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    def resolved_sink_backend(self) -> str:
        """Explicit SINK_BACKEND wins, otherwise Service Bus when configured"""
        if self.sink_backend:
            backend = self.sink_backend.lower()
            if backend not in SINK_BACKENDS:
                raise ConfigError(
                    f"Unsupported sink backend: {self.sink_backend} "
                    f"(expected one of {', '.join(SINK_BACKENDS)})"
                )
            return backend
        if self.sb_connection_string:
            return "servicebus"
        return "memory"


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables (.env is loaded on import)"""
    if env is None:
        env = os.environ

    values = {}
    for env_name, field_name in ENV_MAPPING.items():
        raw = env.get(env_name)
        # unset and empty are treated the same
        if raw is None or raw.strip() == "":
            continue
        values[field_name] = raw.strip()

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
