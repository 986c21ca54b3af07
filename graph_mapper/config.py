"""
Configuration for graph_mapper.
"""

from pydantic import Field
from pydantic_settings import BaseSettings

from graph_mapper.result import RetryPolicy


class Settings(BaseSettings):
    """Runtime tuning of the write and read paths."""

    # Serialization conflict retries
    max_retries: int = Field(default=4, ge=0)
    initial_backoff_ms: float = Field(default=100, ge=0)
    max_backoff_ms: float = Field(default=200, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)

    # Read path
    read_concurrency: int = Field(default=1, ge=1, description="Resolvers of one level run on this many threads")
    slow_query_ms: float = Field(default=1000, description="Queries slower than this are logged as warnings")

    model_config = {"env_prefix": "GRAPH_MAPPER_"}

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            initial_backoff=self.initial_backoff_ms / 1000,
            max_backoff=self.max_backoff_ms / 1000,
            multiplier=self.backoff_multiplier,
        )
