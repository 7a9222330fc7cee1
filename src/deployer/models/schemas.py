from pydantic import BaseModel, Field, ConfigDict


class HealthResponse(BaseModel):
    """Body of `GET /api/health` on a slot."""
    status: str


class MetricsResponse(BaseModel):
    """Body of `GET /api/metrics` on a slot; rates are percentages."""
    error_rate: float = Field(default=0.0, alias="errorRate", ge=0)
    success_rate: float = Field(default=100.0, alias="successRate", ge=0, le=100)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "errorRate": 0.4,
                "successRate": 99.6
            }
        }
    )


class GateResults(BaseModel):
    """Quality gate summary written by the gate checker."""
    approved: bool = False
    overall_score: float = Field(default=0.0, alias="overallScore")

    model_config = ConfigDict(populate_by_name=True)
