"""Prerequisite data structures attached to test cases."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class DeviceActionPayload(BaseModel):
    action: str  # press_back, press_home, rotate_landscape, toggle_wifi, ...
    params: dict[str, Any] = Field(default_factory=dict)


class CustomActionPayload(BaseModel):
    action_name: str
    args: list[str] = Field(default_factory=list)


class ShellCommandPayload(BaseModel):
    command: str


class PrerequisiteAction(BaseModel):
    """A single state-setup or cleanup action."""
    id: str
    type: Literal["device_action", "custom_action", "shell_command"]
    description: str = ""
    device_action: Optional[DeviceActionPayload] = None
    custom_action: Optional[CustomActionPayload] = None
    shell_command: Optional[ShellCommandPayload] = None

    def payload(self) -> BaseModel | None:
        return getattr(self, self.type)


class _PrerequisiteBase(BaseModel):
    id: str
    name: str
    description: str = ""
    enabled: bool = True
    timeout: Optional[int] = None  # milliseconds


class SetupProfilePrerequisite(_PrerequisiteBase):
    type: Literal["setup_profile"] = "setup_profile"
    setup_profile_id: str


class TestDependencyPrerequisite(_PrerequisiteBase):
    type: Literal["test_dependency"] = "test_dependency"
    test_case_id: str
    use_cache: bool = False
    cache_expiry: Optional[int] = None  # milliseconds, None = session


class StateSetupPrerequisite(_PrerequisiteBase):
    type: Literal["state_setup"] = "state_setup"
    actions: list[PrerequisiteAction] = Field(default_factory=list)


class CleanupPrerequisite(_PrerequisiteBase):
    type: Literal["cleanup"] = "cleanup"
    actions: list[PrerequisiteAction] = Field(default_factory=list)
    always_run: bool = True  # False: only when the test failed


Prerequisite = Annotated[
    Union[
        SetupProfilePrerequisite,
        TestDependencyPrerequisite,
        StateSetupPrerequisite,
        CleanupPrerequisite,
    ],
    Field(discriminator="type"),
]

# Order in which the runner executes a test's prerequisites.
# Cleanup is handled separately after the test body.
PREREQUISITE_RUN_ORDER = {
    "setup_profile": 1,
    "state_setup": 2,
    "test_dependency": 3,
    "cleanup": 4,
}
