"""Configuration models using Pydantic for validation."""
from typing import Dict, List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
import os

NumericKind = Literal["float", "int"]


class ProfileConfig(BaseModel):
    """Element vocabulary that drives the dispatcher."""
    block_element: str
    label_element: str
    label_attribute: str = "id"
    qualifier_element: Optional[str] = None  # Secondary label read from element text
    first_element: str
    first_kind: NumericKind = "float"
    second_element: str
    second_kind: NumericKind = "float"
    passthrough_elements: List[str] = Field(default_factory=list)
    indexed: bool = False
    label_sentinel: str = "(unknown_site)"
    qualifier_sentinel: str = "(unknown_date)"

    @model_validator(mode='after')
    def validate_distinct_elements(self):
        """Each element name may play only one role."""
        names = [self.block_element, self.label_element, self.first_element, self.second_element]
        if self.qualifier_element:
            names.append(self.qualifier_element)
        names.extend(self.passthrough_elements)

        seen = set()
        for name in names:
            if not name:
                raise ValueError("Element names must not be empty")
            if name in seen:
                raise ValueError(f"Element '{name}' is assigned to more than one role")
            seen.add(name)
        return self


BUILTIN_PROFILES: Dict[str, ProfileConfig] = {
    "traffic": ProfileConfig(
        block_element="siteMeasurements",
        label_element="measurementSiteReference",
        first_element="speed",
        first_kind="float",
        second_element="vehicleFlowRate",
        second_kind="int",
        passthrough_elements=["publicationTime"],
        indexed=True,
    ),
    "location": ProfileConfig(
        block_element="measurementSiteTable",
        label_element="measurementSiteRecord",
        qualifier_element="measurementSiteRecordVersionTime",
        first_element="latitude",
        first_kind="float",
        second_element="longitude",
        second_kind="float",
        passthrough_elements=["publicationTime"],
        indexed=False,
    ),
}


class EngineConfig(BaseModel):
    """Queueing and text limits for the pairing engine."""
    queue_strategy: Literal["bounded", "unbounded"] = "bounded"
    first_capacity: int = Field(default=64, ge=1)
    second_capacity: int = Field(default=64, ge=1)
    max_text: int = Field(default=511, ge=1)
    chunk_size: int = Field(default=65536, ge=1)


class OutputConfig(BaseModel):
    """Where pair records are written."""
    path: Optional[str] = None  # None means stdout
    buffer_bytes: int = Field(default=8 * 1024 * 1024, ge=0)


class MetricsConfig(BaseModel):
    """Prometheus self-metrics configuration."""
    enabled: bool = False
    port: int = 8000
    bind_address: str = "0.0.0.0"
    prefix: str = "pairstream_"
    textfile: Optional[str] = None


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    engine: EngineConfig = Field(default_factory=EngineConfig)
    profile: str = "traffic"
    custom_profile: Optional[ProfileConfig] = None
    output: OutputConfig = Field(default_factory=OutputConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator('profile')
    @classmethod
    def validate_profile_name(cls, v):
        if not v:
            raise ValueError("Profile name must not be empty")
        return v

    @model_validator(mode='after')
    def validate_profile_known(self):
        """A built-in profile must exist unless a custom one is supplied."""
        if self.custom_profile is None and self.profile not in BUILTIN_PROFILES:
            known = ", ".join(sorted(BUILTIN_PROFILES))
            raise ValueError(f"Unknown profile '{self.profile}' (known: {known})")
        return self

    def resolve_profile(self) -> ProfileConfig:
        """Return the profile the engine should run with."""
        if self.custom_profile is not None:
            return self.custom_profile
        return BUILTIN_PROFILES[self.profile]


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate configuration from a YAML file (defaults when no path)."""
    import yaml

    raw_config = {}
    if config_path is not None:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        if not isinstance(raw_config, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_path}")

    # Apply environment variable overrides
    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})['log_level'] = env_log_level

    if env_profile := os.getenv('PAIRSTREAM_PROFILE'):
        raw_config['profile'] = env_profile

    try:
        return Config(**raw_config)
    except ValidationError as e:
        raise ValueError(f"Configuration validation failed: {e}")
