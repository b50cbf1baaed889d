# geomap/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from pathlib import Path

class Settings(BaseSettings):
    app_name: str = Field(default="GeoMap Aggregation API", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Bitrix24 smart process holding the geo objects
    bitrix_smart_process_id: int = Field(default=139, alias="BITRIX_SMART_PROCESS_ID")
    bitrix_polygon_type_id: int = Field(default=61, alias="BITRIX_POLYGON_TYPE_ID")
    bitrix_point_type_id: int = Field(default=65, alias="BITRIX_POINT_TYPE_ID")

    # custom fields carrying the geometry of a smart process item
    crm_latitude_field: str = Field(default="ufCrm139Latitude", alias="CRM_LATITUDE_FIELD")
    crm_longitude_field: str = Field(default="ufCrm139Longitude", alias="CRM_LONGITUDE_FIELD")
    crm_coordinates_field: str = Field(default="ufCrm139Coordinates", alias="CRM_COORDINATES_FIELD")
    crm_geometry_field: str = Field(default="ufCrm139Geometry", alias="CRM_GEOMETRY_FIELD")

    # Bases
    userside_base_url: str = Field(default="", alias="USERSIDE_BASE_URL")
    utm5_base_url: str = Field(default="", alias="UTM5_BASE_URL")
    dadata_endpoint: str = Field(
        default="https://suggestions.dadata.ru/suggestions/api/4_1/rs/suggest/address",
        alias="DADATA_ENDPOINT",
    )
    yandex_geocoder_url: str = Field(default="https://geocode-maps.yandex.ru/1.x/", alias="YANDEX_GEOCODER_URL")

    # Keys
    dadata_token: str | None = Field(default=None, alias="DADATA_TOKEN")
    yandex_api_key: str | None = Field(default=None, alias="YANDEX_API_KEY")

    # Limits (seconds / pages)
    adapter_timeout: float = Field(default=20.0, alias="ADAPTER_TIMEOUT")
    http_timeout: float = Field(default=30.0, alias="HTTP_TIMEOUT")
    max_pages: int = Field(default=200, alias="MAX_PAGES")

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[1] / ".env"),  # geomap/.env
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

settings = Settings()
