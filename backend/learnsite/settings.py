from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")
	# Must support the IMAGE response modality
	gemini_image_model: str = Field(default="gemini-2.0-flash-exp", validation_alias="GEMINI_IMAGE_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional, text only)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="LearnSite", validation_alias="OPENROUTER_TITLE")

	# Google Programmable Search (image lookup before generation)
	google_search_api_key: str | None = Field(default=None, validation_alias="GOOGLE_SEARCH_API_KEY")
	google_cse_id: str | None = Field(default=None, validation_alias="GOOGLE_CSE_ID")

	# Database backing the content cache
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# Cache capacity model (sizes are UTF-16 estimates: 2 bytes per code unit)
	cache_total_bytes: int = Field(default=5 * 1024 * 1024, validation_alias="CACHE_TOTAL_BYTES")
	cache_max_item_bytes: int = Field(default=1024 * 1024, validation_alias="CACHE_MAX_ITEM_BYTES")
	cache_eviction_threshold: float = Field(default=0.9, validation_alias="CACHE_EVICTION_THRESHOLD")

	# Pipeline behaviour; 1 keeps page generation strictly sequential
	page_concurrency: int = Field(default=1, validation_alias="PAGE_CONCURRENCY")
	quiz_skip_references: bool = Field(default=False, validation_alias="QUIZ_SKIP_REFERENCES")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
