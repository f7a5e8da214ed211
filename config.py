"""
Configuration management using Pydantic Settings with safe access wrapper
"""
from pydantic_settings import BaseSettings
from typing import Any, Dict


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Annotation Server"
    version: str = "1.0.0"
    debug: bool = False
    environment: str = "production"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 9000

    # Annotation engine settings
    spacy_model: str = "en_core_web_sm"
    language: str = "en"
    max_text_length: int = 100000

    # Server-wide default request configuration
    default_annotators: str = "tokenize,ssplit,pos,lemma,depparse"
    default_input_format: str = "text"
    default_output_format: str = "json"

    # Pipeline cache settings
    pipeline_cache_size: int = 16
    pipeline_cache_ttl: int = 3600
    pipeline_cache_stripes: int = 16
    cache_cleanup_interval: int = 300

    # Worker threads running annotation jobs
    annotation_workers: int = 4

    # Logging settings
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_file_max_bytes: int = 10485760
    log_file_backup_count: int = 10

    # Monitoring
    enable_metrics: bool = True
    metrics_port: int = 9090

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"   # allow unknown env vars without error

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.validate_settings()

    def validate_settings(self):
        """Validate critical settings on startup"""
        errors = []

        if self.environment not in ["development", "testing", "production"]:
            errors.append(f"Invalid environment: {self.environment}")

        if not 0 < self.port < 65536:
            errors.append(f"Invalid port: {self.port}")

        if not self.default_annotators.strip():
            errors.append("At least one default annotator is required")

        if self.pipeline_cache_size < 1:
            errors.append("Pipeline cache size must be at least 1")

        if self.pipeline_cache_ttl <= 0:
            errors.append("Pipeline cache TTL must be positive")

        if self.pipeline_cache_stripes < 1:
            errors.append("Pipeline cache needs at least one lock stripe")

        if self.annotation_workers < 1:
            errors.append("At least one annotation worker is required")

        if errors:
            raise ValueError(f"Configuration errors: {'; '.join(errors)}")

    def default_properties(self) -> Dict[str, str]:
        """Request configuration used when a client sends no overrides"""
        return {
            "annotators": self.default_annotators,
            "inputFormat": self.default_input_format,
            "outputFormat": self.default_output_format,
            "language": self.language,
            "model": self.spacy_model,
        }


class SafeSettings:
    """Safe wrapper for settings with fallback defaults"""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._defaults = {
            "spacy_model": "en_core_web_sm",
            "language": "en",
            "port": 9000,
            "pipeline_cache_size": 16,
            "pipeline_cache_ttl": 3600,
            "log_level": "INFO",
            "log_dir": "logs",
            "environment": "production",
            "debug": False,
            "enable_metrics": True,
            "max_text_length": 100000,
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Safely get setting value with fallback"""
        value = getattr(self._settings, key, None)
        if value is None:
            value = self._defaults.get(key, default)
        return value

    def __getattr__(self, key: str) -> Any:
        """Proxy attribute access with safety"""
        return self.get(key)

    @property
    def raw(self) -> Settings:
        """Get raw settings object"""
        return self._settings


# Initialize settings with safety wrapper
_raw_settings = Settings()
settings = SafeSettings(_raw_settings)
