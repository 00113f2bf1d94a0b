"""Vehicle status model.

Mapped from the vehicle data endpoint, which wraps everything in a
``response`` object::

    {"response": {"charge_state": {"usable_battery_level": 73,
                                   "charging_state": "NoPower"},
                  "drive_state": {"shift_state": null}}}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from teslabridge import _constants as const


class VehicleStatus(BaseModel):
    """Snapshot of the fields the bridge republishes."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )

    usable_battery_level: int = Field(ge=0, le=100)
    """Usable state of charge (0-100 percent)."""
    charging_state: str
    """Charging state, e.g. ``Charging``, ``NoPower``, ``Disconnected``, ``Complete``."""
    shift_state: str = ""
    """Gear selector: ``P``, ``D``, ``R``, ``N`` or empty when unknown/parked asleep."""

    @model_validator(mode="before")
    @classmethod
    def _unwrap_response(cls, values: Any) -> Any:
        """Flatten ``response.charge_state`` / ``response.drive_state``."""
        if not isinstance(values, dict) or "response" not in values:
            return values
        response = values["response"]
        if not isinstance(response, dict):
            raise ValueError("'response' is not an object")
        charge_state = response.get("charge_state")
        if not isinstance(charge_state, dict):
            raise ValueError("'response.charge_state' is missing")
        drive_state = response.get("drive_state")
        flattened: dict[str, Any] = {
            "usable_battery_level": charge_state.get("usable_battery_level"),
            "charging_state": charge_state.get("charging_state"),
        }
        if isinstance(drive_state, dict):
            flattened["shift_state"] = drive_state.get("shift_state")
        return flattened

    @field_validator("shift_state", mode="before")
    @classmethod
    def _null_shift_state(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def is_charging(self) -> bool:
        """Whether the car is plugged in and drawing (or trying to draw) power."""
        return self.charging_state in const.CHARGING_STATES

    @property
    def is_driving(self) -> bool:
        """Whether the gear selector is in drive or reverse."""
        return self.shift_state in const.DRIVING_SHIFT_STATES
