from __future__ import annotations

from pydantic import Field

try:
    from pydantic_settings import BaseSettings, SettingsConfigDict
except Exception as e:  # pragma: no cover
    raise RuntimeError(
        "pydantic-settings is required. Install with: pip install pydantic-settings"
    ) from e


class CaptureGraphSettings(BaseSettings):
    """Unified configuration for capture-graph.

    Environment variables are prefixed with CAPTURE_GRAPH_.
    """

    model_config = SettingsConfigDict(env_prefix="CAPTURE_GRAPH_", extra="ignore")

    # --- Core ---
    log_level: str = Field(default="INFO", description="Python logging level")
    backend: str = Field(default="arango", description="arango|memory")
    memory_seed: str | None = Field(
        default=None, description="JSON dump {container: [rows]} for the memory backend"
    )

    # --- Scope ---
    scope: str | None = Field(default="rhino.global", description="Raw session scope name")
    global_scope_sentinel: str = Field(default="rhino.global")
    default_scope: str = Field(default="global")

    # --- ArangoDB ---
    arango_url: str = Field(default="http://localhost:8529")
    arango_username: str = Field(default="root")
    arango_password: str = Field(default="")
    arango_database: str = Field(default="platform")

    # --- Bundles ---
    bundle_collection: str = Field(default="sys_update_set")
    update_collection: str = Field(default="sys_update_xml")
    session_collection: str = Field(default="capture_session")
    session_key: str = Field(default="default", description="Session document holding the active bundle")


settings = CaptureGraphSettings()
