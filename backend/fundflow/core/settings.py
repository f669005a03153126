from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, model_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Fundflow API"
    ENV: str = Field(default="lab", validation_alias=AliasChoices("FUNDFLOW_ENV", "ENV"))  # lab|prod
    LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("FUNDFLOW_LOG_LEVEL", "LOG_LEVEL"))
    DATABASE_URL: str = Field(default="sqlite:///./lab.db", validation_alias=AliasChoices("FUNDFLOW_DATABASE_URL", "DATABASE_URL"))

    # Auth (JWT)
    AUTH_JWT_SECRET: str = Field(default="", validation_alias=AliasChoices("FUNDFLOW_AUTH_JWT_SECRET", "AUTH_JWT_SECRET", "JWT_SECRET"))
    AUTH_JWT_TTL_MIN: int = Field(default=60, validation_alias=AliasChoices("FUNDFLOW_AUTH_JWT_TTL_MIN", "AUTH_JWT_TTL_MIN"))
    # janela curta do token de re-autenticação (exigido antes de apagar operações)
    AUTH_REAUTH_TTL_S: int = Field(default=300, validation_alias=AliasChoices("FUNDFLOW_AUTH_REAUTH_TTL_S", "AUTH_REAUTH_TTL_S"))
    AUTH_MIN_PASSWORD_LEN: int = 6

    # Primeiro admin (criado no startup se não existir nenhum usuário)
    BOOTSTRAP_ADMIN_EMAIL: str = Field(default="", validation_alias=AliasChoices("FUNDFLOW_BOOTSTRAP_ADMIN_EMAIL", "BOOTSTRAP_ADMIN_EMAIL"))
    BOOTSTRAP_ADMIN_PASSWORD: str = Field(default="", validation_alias=AliasChoices("FUNDFLOW_BOOTSTRAP_ADMIN_PASSWORD", "BOOTSTRAP_ADMIN_PASSWORD"))
    BOOTSTRAP_ADMIN_NAME: str = "Administrator"

    # Blob storage (anexos)
    STORAGE_DIR: str = Field(default="./storage", validation_alias=AliasChoices("FUNDFLOW_STORAGE_DIR", "STORAGE_DIR"))
    STORAGE_PUBLIC_BASE_URL: str = Field(default="/files", validation_alias=AliasChoices("FUNDFLOW_STORAGE_PUBLIC_BASE_URL", "STORAGE_PUBLIC_BASE_URL"))
    STORAGE_CHUNK_BYTES: int = 64 * 1024
    MAX_UPLOAD_BYTES: int = Field(default=10 * 1024 * 1024, validation_alias=AliasChoices("FUNDFLOW_MAX_UPLOAD_BYTES", "MAX_UPLOAD_BYTES"))

    CURRENCY_SYMBOL: str = "₸"
    BUILD_SHA: str = Field(default="", validation_alias=AliasChoices("FUNDFLOW_BUILD_SHA", "BUILD_SHA", "GITHUB_SHA"))

    @model_validator(mode="after")
    def _security_invariants(self):
        # Fail-fast de segurança (contrato de settings)
        sec = (self.AUTH_JWT_SECRET or "").strip()
        if self.ENV == "prod":
            if not sec:
                raise ValueError("SECURITY: AUTH_JWT_SECRET vazio (obrigatório quando ENV=prod)")
            if len(sec) < 32:
                raise ValueError("SECURITY: AUTH_JWT_SECRET curto (min 32 chars)")
        # normaliza (remove espaços acidentais)
        self.AUTH_JWT_SECRET = sec

        email = (self.BOOTSTRAP_ADMIN_EMAIL or "").strip().lower()
        if bool(email) != bool(self.BOOTSTRAP_ADMIN_PASSWORD):
            raise ValueError("BOOTSTRAP_ADMIN_EMAIL e BOOTSTRAP_ADMIN_PASSWORD devem ser definidos juntos")
        self.BOOTSTRAP_ADMIN_EMAIL = email

        if self.MAX_UPLOAD_BYTES <= 0:
            raise ValueError("MAX_UPLOAD_BYTES deve ser positivo")

        self.STORAGE_PUBLIC_BASE_URL = self.STORAGE_PUBLIC_BASE_URL.rstrip("/")
        return self

settings = Settings()
