"""
Configuration for the context memory engine.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)

Config objects are immutable; build one at startup and pass it to the engine.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator


def _default_worker_limit() -> int:
    return os.cpu_count() or 4


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class LLMConfig(_FrozenModel):
    """Chat/completion provider configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "llama3.1:8b"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    temperature: float = 0.1
    max_tokens: int = 2000
    timeout: float = 120.0


class EmbedderConfig(_FrozenModel):
    """Embedder configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "nomic-embed-text"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    timeout: float = 120.0
    # Optional: embedding dimension (fallback to auto-detect)
    dimension: int | None = None
    batch_size: int = Field(default=50, ge=1)
    max_concurrency: int = Field(default=4, ge=1)


class ChunkingConfig(_FrozenModel):
    """Word-window chunking configuration."""

    chunk_size: int = Field(default=1000, ge=1)
    chunk_overlap: int = Field(default=200, ge=0)

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


class TokenizerConfig(_FrozenModel):
    """Token counting configuration."""

    provider: str = "tiktoken"  # tiktoken, approximate
    encoding: str = "cl100k_base"
    chars_per_token: float = 4.0


class RetryConfig(_FrozenModel):
    """Retry with exponential backoff."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=10.0, ge=0.0)


class CircuitBreakerConfig(_FrozenModel):
    """Per-endpoint circuit breaker."""

    failure_threshold: int = Field(default=5, ge=1)
    open_duration: float = Field(default=30.0, ge=0.0)
    success_threshold: int = Field(default=1, ge=1)


class ResilienceConfig(_FrozenModel):
    """Retry, circuit breaker and per-call timeouts for each backend."""

    retry: RetryConfig = Field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    vector_timeout: float = 30.0
    graph_timeout: float = 30.0
    llm_timeout: float = 120.0


class ProcessingConfig(_FrozenModel):
    """Ingestion worker pool and enrichment settings."""

    max_concurrent_documents: int = Field(default_factory=_default_worker_limit, ge=1)
    max_concurrent_extractions: int = Field(default=4, ge=1)
    min_relationship_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    summary_max_length: int = Field(default=500, ge=4)
    drain_timeout: float = 300.0


class LoggingConfig(_FrozenModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class QdrantConfig(_FrozenModel):
    """Qdrant configuration. One collection per project: <collection_prefix>_<project_id>."""

    url: str = "http://localhost:6333"
    collection_prefix: str = "context_memory"
    api_key: str | None = None
    use_grpc: bool = False
    hnsw_m: int = 16
    hnsw_ef_construct: int = 100
    use_quantization: bool = False
    on_disk: bool = False
    batch_size: int = 100
    timeout: int = 30


class Neo4jConfig(_FrozenModel):
    """Neo4j graph database configuration."""

    uri: str = "bolt://localhost:7687"
    username: str = "neo4j"
    password: str = "password"
    database: str = "neo4j"


class Config(_FrozenModel):
    """Main configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    tokenizer: TokenizerConfig = Field(default_factory=TokenizerConfig)
    resilience: ResilienceConfig = Field(default_factory=ResilienceConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    neo4j: Neo4jConfig = Field(default_factory=Neo4jConfig)

    # Store backends
    vector_backend: str = "qdrant"  # qdrant, memory
    graph_backend: str = "neo4j"  # neo4j, memory

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            CTXMEM_LLM_PROVIDER: LLM provider (ollama, openai)
            CTXMEM_LLM_MODEL: LLM model name
            CTXMEM_LLM_BASE_URL: LLM base URL
            CTXMEM_LLM_API_KEY: LLM API key (for OpenAI)
            CTXMEM_EMBEDDER_PROVIDER: Embedder provider
            CTXMEM_EMBEDDER_MODEL: Embedder model name
            CTXMEM_EMBEDDER_DIMENSION: Embedding dimension (optional)
            CTXMEM_EMBEDDER_BATCH_SIZE: Max texts per embedding request
            CTXMEM_CHUNK_SIZE / CTXMEM_CHUNK_OVERLAP: Chunk window in words
            CTXMEM_RETRY_MAX_ATTEMPTS / CTXMEM_RETRY_BASE_DELAY / CTXMEM_RETRY_MAX_DELAY
            CTXMEM_CB_FAILURE_THRESHOLD / CTXMEM_CB_OPEN_DURATION
            CTXMEM_MAX_CONCURRENT_DOCUMENTS: Ingestion worker limit
            CTXMEM_VECTOR_BACKEND / CTXMEM_GRAPH_BACKEND: Store backends
            CTXMEM_NEO4J_URI / CTXMEM_NEO4J_USERNAME / CTXMEM_NEO4J_PASSWORD
            CTXMEM_QDRANT_URL / CTXMEM_QDRANT_COLLECTION_PREFIX
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None or value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        dimension = get_env("CTXMEM_EMBEDDER_DIMENSION")

        return cls(
            llm=LLMConfig(
                provider=get_env("CTXMEM_LLM_PROVIDER", "ollama"),
                model=get_env("CTXMEM_LLM_MODEL", "llama3.1:8b"),
                base_url=get_env("CTXMEM_LLM_BASE_URL", "http://localhost:11434"),
                api_key=get_env("CTXMEM_LLM_API_KEY"),
                temperature=get_env("CTXMEM_LLM_TEMPERATURE", 0.1),
                max_tokens=get_env("CTXMEM_LLM_MAX_TOKENS", 2000),
                timeout=get_env("CTXMEM_LLM_TIMEOUT", 120.0),
            ),
            embedder=EmbedderConfig(
                provider=get_env("CTXMEM_EMBEDDER_PROVIDER", "ollama"),
                model=get_env("CTXMEM_EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("CTXMEM_EMBEDDER_BASE_URL", "http://localhost:11434"),
                api_key=get_env("CTXMEM_EMBEDDER_API_KEY"),
                timeout=get_env("CTXMEM_EMBEDDER_TIMEOUT", 120.0),
                dimension=int(dimension) if dimension is not None else None,
                batch_size=get_env("CTXMEM_EMBEDDER_BATCH_SIZE", 50),
                max_concurrency=get_env("CTXMEM_EMBEDDER_MAX_CONCURRENCY", 4),
            ),
            chunking=ChunkingConfig(
                chunk_size=get_env("CTXMEM_CHUNK_SIZE", 1000),
                chunk_overlap=get_env("CTXMEM_CHUNK_OVERLAP", 200),
            ),
            tokenizer=TokenizerConfig(
                provider=get_env("CTXMEM_TOKENIZER_PROVIDER", "tiktoken"),
                encoding=get_env("CTXMEM_TOKENIZER_ENCODING", "cl100k_base"),
            ),
            resilience=ResilienceConfig(
                retry=RetryConfig(
                    max_attempts=get_env("CTXMEM_RETRY_MAX_ATTEMPTS", 3),
                    base_delay=get_env("CTXMEM_RETRY_BASE_DELAY", 1.0),
                    max_delay=get_env("CTXMEM_RETRY_MAX_DELAY", 10.0),
                ),
                circuit_breaker=CircuitBreakerConfig(
                    failure_threshold=get_env("CTXMEM_CB_FAILURE_THRESHOLD", 5),
                    open_duration=get_env("CTXMEM_CB_OPEN_DURATION", 30.0),
                ),
                vector_timeout=get_env("CTXMEM_VECTOR_TIMEOUT", 30.0),
                graph_timeout=get_env("CTXMEM_GRAPH_TIMEOUT", 30.0),
                llm_timeout=get_env("CTXMEM_LLM_CALL_TIMEOUT", 120.0),
            ),
            processing=ProcessingConfig(
                max_concurrent_documents=get_env(
                    "CTXMEM_MAX_CONCURRENT_DOCUMENTS", _default_worker_limit()
                ),
                max_concurrent_extractions=get_env("CTXMEM_MAX_CONCURRENT_EXTRACTIONS", 4),
                drain_timeout=get_env("CTXMEM_DRAIN_TIMEOUT", 300.0),
            ),
            vector_backend=get_env("CTXMEM_VECTOR_BACKEND", "qdrant"),
            graph_backend=get_env("CTXMEM_GRAPH_BACKEND", "neo4j"),
            neo4j=Neo4jConfig(
                uri=get_env("CTXMEM_NEO4J_URI", "bolt://localhost:7687"),
                username=get_env("CTXMEM_NEO4J_USERNAME", "neo4j"),
                password=get_env("CTXMEM_NEO4J_PASSWORD", "password"),
                database=get_env("CTXMEM_NEO4J_DATABASE", "neo4j"),
            ),
            qdrant=QdrantConfig(
                url=get_env("CTXMEM_QDRANT_URL", "http://localhost:6333"),
                collection_prefix=get_env("CTXMEM_QDRANT_COLLECTION_PREFIX", "context_memory"),
                api_key=get_env("CTXMEM_QDRANT_API_KEY"),
                use_grpc=get_env("CTXMEM_QDRANT_USE_GRPC", False),
                hnsw_m=get_env("CTXMEM_QDRANT_HNSW_M", 16),
                hnsw_ef_construct=get_env("CTXMEM_QDRANT_HNSW_EF_CONSTRUCT", 100),
                use_quantization=get_env("CTXMEM_QDRANT_USE_QUANTIZATION", False),
                on_disk=get_env("CTXMEM_QDRANT_ON_DISK", False),
            ),
            logging=LoggingConfig(
                level=get_env("CTXMEM_LOG_LEVEL", "INFO"),
                log_to_file=get_env("CTXMEM_LOG_TO_FILE", True),
                log_dir=get_env("CTXMEM_LOG_DIR", "logs"),
                file_rotation=get_env("CTXMEM_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("CTXMEM_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("CTXMEM_LOG_COMPRESSION", "zip"),
                serialize=get_env("CTXMEM_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Only sections whose environment values differ from the defaults
        override the YAML file.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        config_dict: dict[str, Any] = {}
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}

        env_config = cls.from_env(env_file)
        default = cls()

        final_dict = {**config_dict}
        for section in (
            "llm",
            "embedder",
            "chunking",
            "tokenizer",
            "resilience",
            "processing",
            "neo4j",
            "qdrant",
            "logging",
        ):
            env_section = getattr(env_config, section)
            default_section = getattr(default, section)
            if section == "processing":
                # The worker default depends on the host, compare the rest only
                differs = env_section.model_dump(exclude={"max_concurrent_documents"}) != (
                    default_section.model_dump(exclude={"max_concurrent_documents"})
                ) or os.getenv("CTXMEM_MAX_CONCURRENT_DOCUMENTS")
            else:
                differs = env_section != default_section
            if differs:
                final_dict[section] = env_section.model_dump()

        for field in ("vector_backend", "graph_backend"):
            if getattr(env_config, field) != getattr(default, field):
                final_dict[field] = getattr(env_config, field)

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
