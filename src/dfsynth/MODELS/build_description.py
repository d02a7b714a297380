# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Models for declarative build descriptions read from YAML.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class BuildDescription(BaseModel):
    """
    A Dockerfile described as data: a base and an ordered instruction list.

    Each instruction is a single-key mapping from instruction name to its
    arguments, e.g. ``{"run": "apt-get update"}``.
    """
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    context_dir: str
    base_dir: Optional[str] = None
    from_image: Optional[str] = Field(default=None, alias='from')
    extends: Optional[str] = None
    instructions: List[Dict[str, Any]] = []

    @field_validator('instructions')
    @classmethod
    def _single_key(cls, value: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        for position, item in enumerate(value, start=1):
            if len(item) != 1:
                raise ValueError(
                    f"instruction #{position} must have exactly one key, got {sorted(item)}"
                )
        return value

    @model_validator(mode='after')
    def _single_base(self) -> "BuildDescription":
        if self.from_image and self.extends:
            raise ValueError("'from' and 'extends' are mutually exclusive")
        return self
