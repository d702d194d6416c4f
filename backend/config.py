"""Application settings loaded from environment variables and .env file."""
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Remote mode (all three required)
    DB2USER: str = ""
    DB2PASSWORD: str = ""
    DBNAME: str = ""
    DB2_HOST: str = ""
    DB2_PORT: Optional[int] = None

    # Local mode
    DB2INSTANCE: str = ""
    DB2DSDRIVER_CFG: str = ""

    # Gateway
    DB2_DIALECT: str = "db2+ibm_db"
    TARGET_URL: str = ""            # overrides the URL built for every target

    # Run options
    INVENTORY: bool = True
    VERBOSE: bool = False
    REPORT_FILE_PATH: str = ""
    OUTPUT_DIR: str = "."
    INVENTORY_SERIALIZER: Literal["pydantic", "manual"] = "pydantic"

    # Policy data
    NON_FENCED_EXCLUDED_SCHEMAS: str = "SQLJ,SYSCAT,SYSFUN,SYSIBM,SYSIBMADM,SYSPROC,SYSTOOLS"
    FEDERATION_ALLOWED_LIBRARIES: str = "libdb2drda.so,libdb2rcodbc.so"
    SYSTEM_SCHEMA_PREFIXES: str = "SYS"

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:5173"

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def remote_mode(self) -> bool:
        return bool(self.DB2USER and self.DB2PASSWORD and self.DBNAME)

    @property
    def non_fenced_excluded_schema_list(self) -> list[str]:
        return _split(self.NON_FENCED_EXCLUDED_SCHEMAS)

    @property
    def federation_allowed_library_list(self) -> list[str]:
        return _split(self.FEDERATION_ALLOWED_LIBRARIES)

    @property
    def system_schema_prefix_list(self) -> list[str]:
        return _split(self.SYSTEM_SCHEMA_PREFIXES)


settings = Settings()
