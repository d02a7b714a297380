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
Builder turning a parsed build description into a Dockerfile.
"""
import logging
from typing import Any, Mapping
from .context_stager import ContextStager
from .dockerfile import Dockerfile
from ..MODELS.build_description import BuildDescription
from ..UTILS.errors import InstructionArgumentError

logger = logging.getLogger(__name__)

EXEC_FORM_INSTRUCTIONS = {"cmd", "entrypoint"}
STAGING_INSTRUCTIONS = {"add", "copy"}


class DescriptionBuilder:
    """
    Declares the instructions of a BuildDescription on a new Dockerfile.
    """
    def __init__(self, description: BuildDescription):
        self.description = description
        self.stager = ContextStager(base_dir=description.base_dir or ".")

    def create(self) -> Dockerfile:
        """
        Creates the Dockerfile with all instructions declared and staging
        actions queued, but nothing staged or finalized yet.
        """
        description = self.description
        dockerfile = Dockerfile(
            self.stager.resolve_path(description.context_dir),
            resolve_path=self.stager.resolve_path,
            copier=self.stager.copy,
            archiver=self.stager.write_tar,
        )

        if description.from_image:
            dockerfile.from_(description.from_image)
        elif description.extends:
            dockerfile.extend_dockerfile(description.extends)

        for item in description.instructions:
            (name, value), = item.items()
            self.declare(dockerfile, name, value)

        logger.debug("Declared %d instruction(s), %d staging action(s)",
                     len(description.instructions), len(dockerfile.staging_backlog))
        return dockerfile

    def declare(self, dockerfile: Dockerfile, name: str, value: Any) -> None:
        """
        Declares one described instruction.

        cmd/entrypoint take their list as one exec-form argument. add/copy
        take a source string, a [source, destination] pair, or a mapping with
        ``source`` or ``spec`` and an optional ``destination``. Any other
        instruction spreads a list into arguments and renders a mapping as
        KEY=VALUE pairs.
        """
        key = name.lower()
        if key in EXEC_FORM_INSTRUCTIONS:
            dockerfile.instruction(name, value)
        elif key in STAGING_INSTRUCTIONS:
            self._declare_staging(dockerfile, name, value)
        elif isinstance(value, list):
            dockerfile.instruction(name, *value)
        elif isinstance(value, Mapping):
            dockerfile.instruction(name, *[f"{k}={v}" for k, v in value.items()])
        elif value is None:
            dockerfile.instruction(name)
        else:
            dockerfile.instruction(name, value)

    def _declare_staging(self, dockerfile: Dockerfile, name: str, value: Any) -> None:
        if isinstance(value, list):
            dockerfile.instruction(name, *value)
        elif isinstance(value, Mapping) and ('source' in value or 'spec' in value):
            extra = set(value) - {'source', 'spec', 'destination'}
            if extra or ('source' in value and 'spec' in value):
                raise InstructionArgumentError(name.upper(), f"unexpected keys {sorted(value)}")
            source = value['source'] if 'source' in value else value['spec']
            dockerfile.instruction(name, source, value.get('destination', '/'))
        else:
            dockerfile.instruction(name, value)
