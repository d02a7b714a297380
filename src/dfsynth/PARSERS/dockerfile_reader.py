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
Reader for base Dockerfiles whose instructions are imported verbatim.
"""
import os
from typing import List, Union


class DockerfileReader:
    """
    Reads a Dockerfile-like file as a list of instruction lines.
    """
    def read_lines(self, dockerfile_path: Union[str, os.PathLike]) -> List[str]:
        """
        Reads a Dockerfile, one instruction line per file line.

        Args:
            dockerfile_path: Path to the Dockerfile.

        Returns:
            List[str]: The lines, verbatim apart from their line terminators.

        Raises:
            OSError: If the file cannot be read.
        """
        with open(dockerfile_path, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.read_lines_from_string(content)

    def read_lines_from_string(self, content: str) -> List[str]:
        """
        Splits on newlines only; form feeds and Unicode separators stay inside their line.
        """
        if not content:
            return []
        lines = content.split('\n')
        if content.endswith('\n'):
            lines.pop()
        return [line.rstrip('\r') for line in lines]
