from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Upstream exports of the precomputed road graph.
_DEFAULT_NODES_URL = "https://drive.google.com/uc?export=download&id=1DoXz1PTDVtiKyl0_DzRGCdCv2T_SklxD"
_DEFAULT_EDGES_URL = "https://drive.google.com/uc?export=download&id=1-eNNWnCwlSm0gG1deFPTyR726NWDAHWS"


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping config out of code for easy extension."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    graph_nodes_url: str = Field(default=_DEFAULT_NODES_URL, alias="GRAPH_NODES_URL")
    graph_edges_url: str = Field(default=_DEFAULT_EDGES_URL, alias="GRAPH_EDGES_URL")
    # Local files win over the URLs when both paths are set.
    graph_nodes_path: str = Field(default="", alias="GRAPH_NODES_PATH")
    graph_edges_path: str = Field(default="", alias="GRAPH_EDGES_PATH")
    graph_fetch_timeout_s: float = Field(default=60.0, ge=1.0, le=600.0, alias="GRAPH_FETCH_TIMEOUT_S")
    graph_warmup_on_startup: bool = Field(default=True, alias="GRAPH_WARMUP_ON_STARTUP")

    route_compute_timeout_s: float = Field(default=10.0, gt=0.0, le=300.0, alias="ROUTE_COMPUTE_TIMEOUT_S")

    out_dir: str = Field(default="out", alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    port: int = Field(default=3000, ge=1, le=65535, alias="PORT")

    @model_validator(mode="after")
    def _normalize_paths(self) -> "Settings":
        self.graph_nodes_path = (self.graph_nodes_path or "").strip()
        self.graph_edges_path = (self.graph_edges_path or "").strip()
        self.log_level = (self.log_level or "INFO").strip().upper() or "INFO"
        return self

    def uses_local_graph_files(self) -> bool:
        return bool(self.graph_nodes_path and self.graph_edges_path)


settings = Settings()
