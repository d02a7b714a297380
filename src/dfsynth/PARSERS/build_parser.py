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
Parser for YAML build descriptions.
"""
import os
import yaml
from typing import Dict, Optional
from pydantic import ValidationError
from ..MODELS.build_description import BuildDescription
from ..UTILS.errors import BuildDescriptionError
from ..UTILS.string_interpolation import EnvironmentInterpolator


class BuildParser:
    """
    Parser for dfsynth.yml build descriptions.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional variable context for interpolation.

        :param context: Variables for ${VAR} interpolation, the process environment by default.
        """
        self.context = context if context is not None else dict(os.environ)

    def parse(self, description_path: str) -> BuildDescription:
        """
        Parses a build description from a path.

        Relative ``base_dir`` and ``context_dir`` values are resolved against
        the directory containing the file.

        :param description_path: Path to the YAML file.
        :return: Parsed description with absolute directories.
        """
        with open(description_path, 'r') as f:
            content = f.read()
        description = self.parse_from_string(content)

        root = os.path.dirname(os.path.abspath(description_path))
        base_dir = os.path.join(root, description.base_dir or '.')
        description.base_dir = os.path.abspath(base_dir)
        description.context_dir = os.path.abspath(os.path.join(root, description.context_dir))
        return description

    def parse_from_string(self, content: str) -> BuildDescription:
        """
        Parses a build description from a string.

        :param content: YAML content.
        :return: Parsed description.
        :raises BuildDescriptionError: On interpolation, YAML or schema errors.
        """
        try:
            content = EnvironmentInterpolator.interpolate(content, self.context)
        except KeyError as e:
            raise BuildDescriptionError(f"Interpolation failed: {e.args[0]}") from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise BuildDescriptionError(f"Invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise BuildDescriptionError("A build description must be a YAML mapping")

        try:
            return BuildDescription.model_validate(data)
        except ValidationError as e:
            raise BuildDescriptionError(f"Invalid build description: {e}") from e
