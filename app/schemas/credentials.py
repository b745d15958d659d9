from typing import Annotated, Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator


class WooCommerceCredentials(BaseModel):
    platform_type: Literal["woocommerce"] = "woocommerce"
    site_url: str
    consumer_key: str = Field(min_length=1)
    consumer_secret: str = Field(min_length=1)
    api_version: str = "wc/v3"
    webhook_secret: Optional[str] = None

    @field_validator("site_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("site_url must be an absolute http(s) URL")
        return v.rstrip("/")


class WholesaleAppCredentials(BaseModel):
    platform_type: Literal["wholesale_app"] = "wholesale_app"
    base_url: str
    api_token: str = Field(min_length=1)
    webhook_secret: Optional[str] = None

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an absolute http(s) URL")
        return v.rstrip("/")


class OtherPlatformCredentials(BaseModel):
    platform_type: Literal["other"] = "other"
    settings: Dict[str, Any] = {}
    webhook_secret: Optional[str] = None


PlatformCredentials = Annotated[
    Union[WooCommerceCredentials, WholesaleAppCredentials, OtherPlatformCredentials],
    Field(discriminator="platform_type"),
]
