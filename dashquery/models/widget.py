"""
Widget models

Field names follow the camelCase wire shape the dashboard client consumes;
Python code uses the snake_case attributes.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dashquery.config.constants import FallbackStage


class ChartConfig(BaseModel):
    """Chart binding: which result columns feed which axis."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Optional[str] = None
    x_axis: Optional[str] = Field(default=None, alias="xAxis")
    y_axis: Optional[str] = Field(default=None, alias="yAxis")
    title: Optional[str] = None
    color_scheme: Optional[str] = Field(default=None, alias="colorScheme")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class WidgetIntent(BaseModel):
    """A widget as proposed by the model, before execution."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    sql: str = ""
    explanation: str = ""
    chart_config: ChartConfig = Field(default_factory=ChartConfig, alias="chartConfig")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "WidgetIntent":
        """Build from model JSON, tolerating nulls for optional text fields."""
        data = dict(payload or {})
        for key in ("title", "sql", "explanation"):
            if data.get(key) is None:
                data[key] = ""
        if not isinstance(data.get("chartConfig"), dict):
            data["chartConfig"] = {}
        return cls.model_validate(data)


class WidgetMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    raw_row_count: int = Field(default=0, alias="rawRowCount")
    post_limit_count: int = Field(default=0, alias="postLimitCount")
    fallback_stage: str = Field(default=FallbackStage.NONE.value, alias="fallbackStage")


class WidgetResult(BaseModel):
    """Outcome of one widget. Immutable once built."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str = ""
    sql: str = ""
    explanation: str = ""
    chart_config: ChartConfig = Field(default_factory=ChartConfig, alias="chartConfig")
    chart_data: List[Dict[str, Any]] = Field(default_factory=list, alias="chartData")
    sql_error: Optional[str] = Field(default=None, alias="sqlError")
    meta: WidgetMeta = Field(default_factory=WidgetMeta)

    @property
    def failed(self) -> bool:
        return self.sql_error is not None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        data["chartConfig"] = self.chart_config.to_dict()
        return data


class DashboardChatResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str
    widgets: List[WidgetResult] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"summary": self.summary, "widgets": [w.to_dict() for w in self.widgets]}
