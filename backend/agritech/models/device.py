"""
Device Models
=============
Pydantic models for device and device-group requests/responses.

- Request models: What the frontend sends to the backend
- Response models: What the backend returns to the frontend

Author: AgriTech Backend Team
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum
from uuid import UUID

from agritech.utils.validation import validate_mac_address


# =============================================================================
# ENUMS
# =============================================================================

class DeviceType(str, Enum):
    """
    Category tag a user puts on a station.

    Purely descriptive - it doesn't change how we talk to the station.
    """
    CONTROLLED_ENVIRONMENTS = "Controlled environments"
    PLANTS = "Plants"
    SOIL = "Soil"
    CLIMATE = "Climate"
    LARGE_SCALE_FARMING = "Large-scale farming"
    HOME_GARDENS = "home gardens"
    MANUAL = "Manual"
    AUTOMATED = "Automated"
    DELICATE = "Delicate"
    TOUGH = "Tough"
    OUTDOOR = "Outdoor"
    INDOOR = "Indoor"


class DeviceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# =============================================================================
# REQUEST MODELS - What frontend sends to backend
# =============================================================================

class CreateDeviceRequest(BaseModel):
    """
    Request body for registering an EcoWitt station.

    The application key / API key pair comes from the user's EcoWitt account
    (https://www.ecowitt.net/user/index -> User Profile -> API Keys).

    Example Request:
        POST /api/devices
        {
            "user_id": "8d5b5f3e-2d0c-4f7c-9b1e-6a3f2e1d0c9b",
            "name": "Greenhouse North",
            "mac": "A1:B2:C3:D4:E5:F6",
            "application_key": "...",
            "api_key": "...",
            "device_type": "Soil"
        }
    """
    user_id: UUID = Field(..., description="Owner of the device")
    name: str = Field(
        ...,
        description="Human-readable name for the station",
        min_length=1,
        max_length=255,
        examples=["Greenhouse North", "Orchard Station"]
    )
    mac: str = Field(
        ...,
        description="Station MAC address",
        examples=["A1:B2:C3:D4:E5:F6"]
    )
    application_key: str = Field(..., min_length=1, description="EcoWitt application key")
    api_key: str = Field(..., min_length=1, description="EcoWitt API key")
    device_type: DeviceType = Field(..., description="Category tag")
    status: DeviceStatus = Field(default=DeviceStatus.ACTIVE)

    @field_validator("mac")
    @classmethod
    def check_mac(cls, value: str) -> str:
        if not validate_mac_address(value):
            raise ValueError("Invalid MAC address format")
        return value.upper()


class UpdateDeviceRequest(BaseModel):
    """
    Request body for updating a device.

    All fields are optional - only provided fields will be updated.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    mac: Optional[str] = Field(None, description="New MAC address")
    application_key: Optional[str] = Field(None, min_length=1)
    api_key: Optional[str] = Field(None, min_length=1)
    device_type: Optional[DeviceType] = None
    status: Optional[DeviceStatus] = None

    @field_validator("mac")
    @classmethod
    def check_mac(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not validate_mac_address(value):
            raise ValueError("Invalid MAC address format")
        return value.upper() if value else value


class CreateGroupRequest(BaseModel):
    """Request body for creating a device group."""
    user_id: UUID = Field(..., description="Owner of the group")
    name: str = Field(..., min_length=1, max_length=255, examples=["North field"])
    description: Optional[str] = Field(None, max_length=1000)
    device_ids: list[UUID] = Field(default_factory=list, description="Initial members")


class UpdateGroupRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    status: Optional[DeviceStatus] = None


class CompareDevicesRequest(BaseModel):
    """
    Request body for comparing stations side by side (up to 4).

    Either range_type or both start_time/end_time are needed for history.
    """
    user_id: UUID
    device_ids: list[UUID] = Field(..., description="Devices to compare (max 4)")
    range_type: Optional[str] = Field(None, examples=["day", "week"])
    start_time: Optional[str] = Field(None, examples=["2024-05-01T00:00:00Z"])
    end_time: Optional[str] = Field(None, examples=["2024-05-08T00:00:00Z"])


# =============================================================================
# RESPONSE MODELS - What backend returns to frontend
# =============================================================================

class DeviceResponse(BaseModel):
    """
    Device as the frontend sees it.

    The API key is never sent back.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    mac: str
    application_key: str
    device_type: str
    status: str
    created_at: Optional[datetime] = None


class DeviceListResponse(BaseModel):
    devices: list[DeviceResponse]
    total: int


class GroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GroupDetailResponse(GroupResponse):
    devices: list[DeviceResponse] = Field(default_factory=list)


class GroupListResponse(BaseModel):
    groups: list[GroupResponse]
    total: int
