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
Exceptions raised while declaring, staging and rendering a Dockerfile.
"""


class DockerfileError(Exception):
    """Base class for all dfsynth errors."""


class InstructionError(DockerfileError, ValueError):
    """A Dockerfile instruction was declared with a malformed invocation."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(f"{name}: {message}")


class UnknownInstructionError(InstructionError):
    """The instruction name cannot be dispatched."""


class InstructionArgumentError(InstructionError):
    """The arguments do not fit the instruction's handler."""


class StagingError(DockerfileError):
    """A staging action failed while populating the build context."""

    def __init__(self, description: str, cause: Exception):
        self.description = description
        self.cause = cause
        super().__init__(f"Staging action '{description}' failed: {cause}")


class BuildDescriptionError(DockerfileError, ValueError):
    """The build description file is invalid."""
