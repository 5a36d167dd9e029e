"""Configuration management."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # API Keys
    voyage_api_key: str = ""
    anthropic_api_key: str = ""

    # Embeddings
    voyage_model: str = Field(default="voyage-3", description="Voyage model used for query and document embeddings")
    embedding_timeout_seconds: float = Field(default=30.0, gt=0)

    # Generation
    generation_model: str = Field(default="claude-sonnet-4-5", description="Model narrating the game")
    generation_max_tokens: int = Field(default=1024, gt=0)

    # Neo4j
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "password"

    # Long-term memory
    vector_backend: Literal["neo4j", "memory"] = "neo4j"
    collection_name: str = Field(default="campaign", pattern=r"^[A-Za-z][A-Za-z0-9_-]{0,63}$")
    store_timeout_seconds: float = Field(default=30.0, gt=0)
    dimension_mismatch_policy: Literal["discard", "raise"] = Field(
        default="discard",
        description="What append does with an entry whose embedding length differs from the collection's",
    )
    memory_write_failure_policy: Literal["log", "raise"] = Field(
        default="log",
        description="Whether failed memory writes are logged and dropped or re-raised to the caller",
    )

    # Game loop
    max_history_exchanges: int = Field(default=1, ge=1, description="Player+narrator exchanges kept in the transcript")  # noqa: E501
    max_semantic_results: int = Field(default=5, ge=1)

    # App config
    debug: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # Ignore extra fields in .env file
        env_nested_delimiter="__",
    )


settings = Settings()
