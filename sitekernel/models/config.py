from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    api_prefix: str = "/api"
    static_dir: str = "dist"


class CompletionConfig(BaseModel):
    base_url: str = "https://api.openai.com/v1"
    timeout_sec: int = Field(default=600, ge=30)
    max_stream_sec: int = Field(default=900, ge=30)
    max_connections: int = Field(default=50, ge=1)
    max_keepalive_connections: int = Field(default=20, ge=0)


class HubConfig(BaseModel):
    base_url: str = "https://huggingface.co"
    timeout_sec: int = Field(default=60, ge=5)
    max_connections: int = Field(default=20, ge=1)
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    redirect_uri: str = ""
    oauth_scope: str = "openid profile write-repos manage-repos inference-api"
    app_url: str = "https://enzostvs-deepsite.hf.space"
    cookie_max_age_days: int = Field(default=30, ge=1)


class DefaultsConfig(BaseModel):
    model: str = "gpt-4o-mini"
    max_tokens: int | None = Field(default=None, ge=1)
    closing_marker: str = "</html>"


class AdmissionConfig(BaseModel):
    max_concurrent_per_client: int = Field(default=2, ge=1)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    # httpx logs every request at INFO
    http_client_level: str = "WARNING"


class AppConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    hub: HubConfig = Field(default_factory=HubConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    admission: AdmissionConfig = Field(default_factory=AdmissionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
