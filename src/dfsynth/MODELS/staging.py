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
Models for the deferred actions that populate a build context directory.
"""
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional
from pydantic import BaseModel, field_validator


class CopySpec(BaseModel):
    """
    Declarative description of files to stage.

    Every file below one of the source roots that matches an include pattern
    and no exclude pattern is copied, keeping its path relative to its root,
    into the destination (or the ``into`` sub-directory of it). A source that
    is a plain file is copied by name.
    """
    sources: List[str]
    include: List[str] = []
    exclude: List[str] = []
    into: Optional[str] = None

    @field_validator('sources', 'include', 'exclude', mode='before')
    @classmethod
    def _listify(cls, value):
        if isinstance(value, (str, Path)):
            return [str(value)]
        if value is None:
            return []
        return [str(v) for v in value]

    @field_validator('sources')
    @classmethod
    def _require_sources(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("a copy specification needs at least one source")
        return value


class StagingKind(str, Enum):
    """
    What a staging action produces in the build context.
    """
    COPY = "copy"
    ARCHIVE = "archive"


class StagingAction(BaseModel):
    """
    One deferred step preparing part of the build context.
    """
    kind: StagingKind
    instruction: str
    target: Path
    operation: Callable[[], None]
    executed: bool = False

    @property
    def description(self) -> str:
        return f"{self.instruction} {self.kind.value} -> {self.target}"

    def run(self) -> None:
        self.operation()
        self.executed = True
