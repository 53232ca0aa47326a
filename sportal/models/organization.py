# sportal/models/organization.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Organization(BaseModel):
    """One organization row, read once per request.

    Instances are immutable so request handlers never share or mutate
    settings between concurrent requests.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    org_id: str
    org_name: Optional[str] = None
    user_email: Optional[str] = None

    # PlayHQ credentials
    playhq_org_id: str
    playhq_api_key: str
    playhq_tenant: Optional[str] = None  # Falls back to settings.playhq_default_tenant

    # Branding (opaque to the aggregation pipeline)
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    text_color: Optional[str] = None
    font_family: Optional[str] = None
    sponsor_logo_url: Optional[str] = None

    # Cached aggregate and the time it was written
    cache_json: Optional[Dict[str, Any]] = None
    cache_updated_at: Optional[datetime] = None

    @field_validator("org_id", "playhq_org_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # Serial/uuid columns come back as ints or UUIDs depending on the schema
        return str(value) if value is not None else value

    @property
    def has_cache(self) -> bool:
        return self.cache_json is not None
