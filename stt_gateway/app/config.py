"""Runtime configuration for the speech-to-text comparison gateway."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROVIDER_NAMES: tuple[str, ...] = ("assemblyai", "deepgram", "openai")


class Settings(BaseSettings):
    """Environment-backed settings for gateway runtime behavior.

    Values are loaded from environment variables, with `.env` used for local
    development defaults. Adapters receive an explicit ``Settings`` instance
    at construction; only the HTTP wiring in ``main.py`` reads the module
    level ``settings`` object.

    Attributes:
        PORT: Local port where the gateway listens.
        ASSEMBLYAI_API_KEY: AssemblyAI credential. Empty disables the provider.
        DEEPGRAM_API_KEY: Deepgram credential. Empty disables the provider.
        OPENAI_API_KEY: OpenAI credential. Empty disables the provider.
        LOG_LEVEL: Application log verbosity.
        WEBSOCKETS_LOG_LEVEL: Log level for `websockets` library internals.
        HTTPX_LOG_LEVEL: Log level for `httpx` request logging.
        REALTIME_CONNECT_TIMEOUT_S: Upper bound for a realtime session to reach
            a ready state.
        MAX_UPLOAD_BYTES: Largest accepted batch upload.
        UPLOAD_DIR: Directory for ephemeral temp files written before upload.
        ASSEMBLYAI_API_URL: AssemblyAI REST base URL.
        ASSEMBLYAI_STREAMING_URL: AssemblyAI streaming websocket URL.
        ASSEMBLYAI_POLL_INTERVAL_S: Delay between transcript status polls.
        DEEPGRAM_API_URL: Deepgram REST base URL.
        DEEPGRAM_STREAMING_URL: Deepgram live websocket URL.
        DEEPGRAM_MODEL: Deepgram model for batch and live requests.
        DEEPGRAM_UTTERANCE_END_MS: Silence gap that triggers `UtteranceEnd`.
        OPENAI_BATCH_MODEL: Model used for uploaded files.
        OPENAI_CHUNK_MODEL: Model used for one-second streaming chunks.
        OPENAI_CHUNK_SECONDS: Audio duration accumulated per streaming chunk.
        OPENAI_CHUNK_POLL_INTERVAL_S: Cadence of the chunk-batching loop.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    PORT: int = 3000
    ASSEMBLYAI_API_KEY: str = ""
    DEEPGRAM_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    LOG_LEVEL: str = "info"
    WEBSOCKETS_LOG_LEVEL: str = "info"
    HTTPX_LOG_LEVEL: str = "warning"
    REALTIME_CONNECT_TIMEOUT_S: float = Field(default=10.0, gt=0)
    MAX_UPLOAD_BYTES: int = Field(default=25 * 1024 * 1024, ge=1)
    UPLOAD_DIR: str = "uploads"

    ASSEMBLYAI_API_URL: str = "https://api.assemblyai.com"
    ASSEMBLYAI_STREAMING_URL: str = "wss://streaming.assemblyai.com/v3/ws"
    ASSEMBLYAI_POLL_INTERVAL_S: float = Field(default=3.0, gt=0)

    DEEPGRAM_API_URL: str = "https://api.deepgram.com"
    DEEPGRAM_STREAMING_URL: str = "wss://api.deepgram.com/v1/listen"
    DEEPGRAM_MODEL: str = "nova-3"
    DEEPGRAM_UTTERANCE_END_MS: int = Field(default=1000, ge=1000)

    OPENAI_BATCH_MODEL: str = "whisper-1"
    OPENAI_CHUNK_MODEL: str = "whisper-1"
    OPENAI_CHUNK_SECONDS: float = Field(default=1.0, gt=0)
    OPENAI_CHUNK_POLL_INTERVAL_S: float = Field(default=0.25, gt=0)

    def credential_for(self, provider: str) -> str:
        """Returns the configured API key for one provider (empty if absent)."""
        return {
            "assemblyai": self.ASSEMBLYAI_API_KEY,
            "deepgram": self.DEEPGRAM_API_KEY,
            "openai": self.OPENAI_API_KEY,
        }.get(provider, "")

    def has_credentials(self, provider: str) -> bool:
        """Returns whether a provider has a non-empty credential."""
        return bool(self.credential_for(provider))

    def provider_status(self) -> dict[str, bool]:
        """Builds the per-provider credential map reported by health checks.

        Returns:
            Mapping of provider name to whether its credential is configured.
        """
        return {name: self.has_credentials(name) for name in PROVIDER_NAMES}


settings = Settings()
