from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configurações globais do Assinaturas API.
    Lê automaticamente variáveis do arquivo .env.
    """

    # Configuração base
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Projeto
    project_name: str = "Assinaturas API"
    api_v1_str: str = "/api/v1"
    debug: bool = False

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    # Banco de dados
    database_url: str = "sqlite:///./dev.db"

    # Gateway de pagamentos (Asaas)
    gateway_base_url: str = "https://sandbox.asaas.com/api/v3"
    gateway_access_token: Optional[str] = None
    gateway_timeout_seconds: float = 30.0
    gateway_user_agent: str = "appns-assinaturas"

    # Atrasos de propagação do gateway (leitura após escrita)
    customer_settle_delay_seconds: float = 3.0
    customer_repair_delay_seconds: float = 5.0

    # Webhooks
    webhook_auth_token: Optional[str] = None

    # Plano padrão dos sellers
    default_plan_name: str = "Plano Básico"
    default_plan_value: float = 29.90
    default_plan_cycle: str = "MONTHLY"

    # Logs
    log_level: str = "INFO"
    log_file: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Retorna a instância de configurações globais (cacheada)."""
    return Settings()


settings = get_settings()
