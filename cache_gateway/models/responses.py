"""
Pydantic response models for the gateway's JSON error and health bodies.

Successful resource responses are not modeled: the upstream payload is
passed through byte for byte.
"""
from pydantic import BaseModel, ConfigDict, Field


class RateLimitedResponse(BaseModel):
    """
    Body returned when a client exceeds its request budget.

    Serialized with camelCase aliases (``requestCount``).
    """

    status: int = Field(
        ...,
        description="HTTP status of the response (429, or 503 if configured)",
    )
    request_count: int = Field(
        ...,
        ge=0,
        alias="requestCount",
        description="Requests counted for this client in the current window",
    )
    message: str = Field(
        ...,
        min_length=1,
        description="Human-readable explanation",
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "status": 429,
                "requestCount": 21,
                "message": "Too many requests: limit is 20 per 3600 seconds",
            }
        },
    )


class ErrorResponse(BaseModel):
    """
    Body returned when a resource cannot be served.

    Attributes:
        error: Human-readable error message
        status_code: HTTP status of the response (``statusCode`` on the wire)
    """

    error: str = Field(
        ...,
        min_length=1,
        description="Human-readable error message",
    )
    status_code: int = Field(
        ...,
        alias="statusCode",
        description="HTTP status of the response",
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "error": "Character not found",
                "statusCode": 404,
            }
        },
    )


class HealthCheckResponse(BaseModel):
    """
    Health check response.

    Used to verify the gateway is running and its store is reachable.
    """

    status: str = Field(
        ...,
        description="Overall health status (healthy, degraded)",
    )
    version: str = Field(
        ...,
        description="Gateway version",
    )
    components: dict[str, str] = Field(
        ...,
        description="Health status of individual components",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "components": {
                    "server": "healthy",
                    "redis": "healthy",
                },
            }
        },
    )
