from datetime import datetime

from credgate.schemas.base import BaseSchema


class HealthCheckResponse(BaseSchema):
    """Schema for health check response"""

    success: bool = True
    status: str
    message: str
    timestamp: datetime
