from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class FieldLimitRules(BaseModel):
    page_url: int = 2048
    user_agent: int = 255
    ip_address: int = 45


class AnalyticsRules(BaseModel):
    allowed_event_types: list[str] = Field(
        default_factory=lambda: [
            "page_view",
            "unit_click",
            "unit_action_click",
            "product_view",
            "slide_view",
            "slide_click",
        ]
    )
    dedupe_window_seconds: int = Field(default=30, ge=0)
    retention_days: int = Field(default=90, ge=1)
    field_limits: FieldLimitRules = Field(default_factory=FieldLimitRules)
    timezone: str = "UTC"
    default_days: int = Field(default=30, ge=1)
    period_tokens: dict[str, int] = Field(
        default_factory=lambda: {
            "last_7_days": 7,
            "last_30_days": 30,
            "last_90_days": 90,
        }
    )
    top_n: int = Field(default=10, ge=1)
    click_action_types: list[str] = Field(default_factory=lambda: ["whatsapp"])

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if value.upper() == "UTC":
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone '{value}'") from e
        return value

    @field_validator("period_tokens")
    @classmethod
    def _positive_tokens(cls, value: dict[str, int]) -> dict[str, int]:
        for token, days in value.items():
            if days < 1:
                raise ValueError(f"period token '{token}' must cover at least one day")
        return value


class Rules(BaseModel):
    project: ProjectRules
    analytics: AnalyticsRules = Field(default_factory=AnalyticsRules)
