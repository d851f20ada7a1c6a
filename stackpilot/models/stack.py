"""Stack and manifest data models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..constants import REPLACEMENT_BLUE_GREEN


class Capacity(BaseModel):
    """Autoscaling bounds of a group."""

    model_config = ConfigDict(frozen=True)

    min: int = 0
    max: int = 0
    desired: int = 0

    def describe(self) -> str:
        return f"Min: {self.min}, Desired: {self.desired}, Max: {self.max}"


class LifecycleCallbacks(BaseModel):
    """Commands run against previous versions before they are drained."""

    pre_terminate_past_cluster: list[str] = Field(default_factory=list)


class Stack(BaseModel):
    """A declared deployment unit: one autoscaling group per version."""

    stack: str
    account: str = ""
    replacement_type: Literal["BlueGreen"] = REPLACEMENT_BLUE_GREEN
    region: str = ""
    capacity: Capacity = Field(default_factory=Capacity)
    instance_type: str = ""
    ami: str = ""
    autoscaling: list[str] = Field(default_factory=list)  # scaling policy names
    lifecycle_callbacks: LifecycleCallbacks = Field(default_factory=LifecycleCallbacks)
    api_test_enabled: bool = False
    api_test_template: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)


class APIEndpoint(BaseModel):
    """One request fired by an acceptance test."""

    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"] = "GET"
    url: str
    body: str | None = None
    header: dict[str, str] = Field(default_factory=dict)


class APITestTemplate(BaseModel):
    """Acceptance test run after a deployment."""

    name: str
    duration: float = Field(default=10.0, gt=0, description="Seconds")
    request_per_second: int = Field(default=1, gt=0)
    apis: list[APIEndpoint] = Field(default_factory=list)


class MetricConfig(BaseModel):
    """Metrics collection settings."""

    enabled: bool = False
    storage: dict[str, str] = Field(default_factory=dict)


class Manifest(BaseModel):
    """Application manifest: every stack the application declares."""

    name: str
    stacks: list[Stack] = Field(default_factory=list)
    api_test_templates: list[APITestTemplate] = Field(default_factory=list)
    metrics: MetricConfig = Field(default_factory=MetricConfig)

    @model_validator(mode="after")
    def _unique_stack_names(self) -> "Manifest":
        seen: set[str] = set()
        for stack in self.stacks:
            if stack.stack in seen:
                raise ValueError(f"duplicated stack name: {stack.stack}")
            seen.add(stack.stack)
        return self

    def find_template(self, name: str | None) -> APITestTemplate | None:
        for template in self.api_test_templates:
            if template.name == name:
                return template
        return None

    def select_stacks(self, stack_filter: str | None) -> list[Stack]:
        """Stacks in scope for a run; an empty filter selects all of them."""
        if not stack_filter:
            return list(self.stacks)
        return [s for s in self.stacks if s.stack == stack_filter]
