"""Recording device metadata."""

from typing import Optional

from pydantic import BaseModel, Field

from domain.models.sport import DeviceType


class DeviceInfo(BaseModel):
    """A device or sensor that contributed to an activity."""

    model_config = {"frozen": True}

    device_index: Optional[int] = Field(default=None, ge=0, description="0 is the recording device")
    device_type: DeviceType = Field(default=DeviceType.OTHER)
    manufacturer: Optional[str] = None
    product: Optional[str] = None
    serial_number: Optional[str] = None
    software_version: Optional[str] = None
    hardware_version: Optional[str] = None
    battery_status: Optional[str] = None

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.manufacturer, self.product) if p]
        return " ".join(parts) if parts else self.device_type.value
