"""Runtime system settings for the invoice workflow application.

Commission split and processing mode live in a key/value settings store
that admins edit. ``SystemConfig`` is the typed view over that store with
an explicit load / initialize-defaults lifecycle.
"""

import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..exceptions import ValidationError

if TYPE_CHECKING:
    from ..database import SettingsRepository

__all__ = ["ProcessingMode", "SystemConfig"]

logger = logging.getLogger(__name__)


class ProcessingMode(str, Enum):
    """What happens to a job after a high-confidence automatic extraction."""
    AUTO_PROCESS = "auto-process"
    REQUIRE_HUMAN_REVIEW = "require-human-review"


# setting key -> (dataclass attribute, description)
_SETTING_KEYS: Dict[str, tuple] = {
    "compilerCommission": ("compiler_commission", "Percentage of job price that goes to the compiler"),
    "companyCommission": ("company_commission", "Percentage of job price that goes to the company"),
    "jobProcessingMode": ("processing_mode", "Whether matched jobs complete automatically or wait for review"),
}


@dataclass(frozen=True)
class SystemConfig:
    """Typed snapshot of the global settings.

    Attributes:
        compiler_commission: Percentage of the job price paid to the compiler
        company_commission: Percentage of the job price kept by the company
        processing_mode: Automation policy applied by the auto-processor
    """
    compiler_commission: int = 70
    company_commission: int = 30
    processing_mode: ProcessingMode = ProcessingMode.REQUIRE_HUMAN_REVIEW

    @property
    def auto_process(self) -> bool:
        return self.processing_mode is ProcessingMode.AUTO_PROCESS

    def compiler_price(self, total_price: int) -> int:
        """Return the compiler's cut of a job price (same unit as the price)."""
        return round(total_price * self.compiler_commission / 100)

    @classmethod
    def defaults(cls) -> Dict[str, Any]:
        """Return the default settings keyed by their store key."""
        default = cls()
        return {
            key: _store_value(getattr(default, attr))
            for key, (attr, _) in _SETTING_KEYS.items()
        }

    @classmethod
    def from_values(cls, values: Dict[str, Any]) -> "SystemConfig":
        """Build a config from raw store values, falling back to defaults.

        Unknown keys are ignored; known keys are validated.

        Raises:
            ValidationError: If a stored value is out of range or unknown
        """
        kwargs: Dict[str, Any] = {}
        for key, value in values.items():
            if key not in _SETTING_KEYS:
                continue
            attr = _SETTING_KEYS[key][0]
            kwargs[attr] = _coerce(key, value)
        return cls(**kwargs)

    @classmethod
    def load(cls, repository: "SettingsRepository") -> "SystemConfig":
        """Load the current settings, merging stored values over defaults."""
        return cls.from_values(repository.all_values())

    @classmethod
    def initialize_defaults(cls, repository: "SettingsRepository",
                            updated_by: Optional[int] = None) -> "SystemConfig":
        """Insert any missing default settings and return the resulting config.

        Existing values are never overwritten.
        """
        stored = repository.all_values()
        for key, value in cls.defaults().items():
            if key in stored:
                continue
            repository.upsert(key, value, _SETTING_KEYS[key][1], updated_by)
            logger.info("Initialized default setting %s=%s", key, value)
        return cls.load(repository)

    @classmethod
    def update_setting(cls, repository: "SettingsRepository", key: str, value: Any,
                       updated_by: Optional[int] = None,
                       description: Optional[str] = None) -> "SystemConfig":
        """Validate and persist a single setting, returning the new config.

        Raises:
            ValidationError: If the key is unknown or the value is invalid
        """
        if key not in _SETTING_KEYS:
            raise ValidationError(f"Unknown setting: {key}")
        coerced = _coerce(key, value)
        repository.upsert(key, _store_value(coerced),
                          description or _SETTING_KEYS[key][1], updated_by)
        return cls.load(repository)

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: _store_value(getattr(self, f.name)) for f in fields(self)}


def _coerce(key: str, value: Any) -> Any:
    if key == "jobProcessingMode":
        try:
            return ProcessingMode(value)
        except ValueError:
            raise ValidationError(f"Unknown processing mode: {value!r}")

    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Setting {key} must be a number, got {value!r}")
    if number < 0 or number > 100:
        raise ValidationError("Commission percentage must be between 0 and 100")
    return number


def _store_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value
