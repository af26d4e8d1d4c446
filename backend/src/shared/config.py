from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "Node Bootstrap"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Listener (host:port, empty host binds all interfaces)
    SERVER_LISTEN: str = ":3988"
    SERVER_CERTIFICATE_PATH: Optional[str] = None
    SERVER_KEY_PATH: Optional[str] = None

    # Keystore
    KEYSTORE_PATH: str = "/etc/node-bootstrap/pki"
    KEYSTORE_CA_NAMES: str = "ca"

    # Identity resolution ("" disables it)
    CLOUD_PROVIDER: str = "aws"
    AWS_REGION: Optional[str] = None

    @property
    def ca_names(self) -> list[str]:
        """CA names from the comma-separated KEYSTORE_CA_NAMES."""
        return [n.strip() for n in self.KEYSTORE_CA_NAMES.split(",") if n.strip()]

    @property
    def listen_address(self) -> tuple[str, int]:
        """Split SERVER_LISTEN into (host, port)."""
        host, _, port = self.SERVER_LISTEN.rpartition(":")
        return host or "0.0.0.0", int(port)


settings = Settings()
