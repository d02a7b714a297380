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
Utilities for interpolating variables into build descriptions.
"""
import re
from typing import Dict, List

# $${VAR} escapes to a literal ${VAR}, left for Docker to expand at build time.
_PATTERN = re.compile(r'\$(\$)?\{([^}:]+)(?::(-|\+)([^}]*))?\}')


class EnvironmentInterpolator:
    """
    Interpolates ${VAR}, ${VAR:-default} and ${VAR:+value} placeholders.
    Bare $VAR references are left untouched.
    """
    @staticmethod
    def interpolate(template: str, context: Dict[str, str]) -> str:
        """
        Interpolates variables in the template string using the provided context.

        :param template: The string containing ${VAR} placeholders.
        :param context: The variables available for substitution.
        :return: The interpolated string.
        :raises KeyError: If a variable without modifier is not in the context.
        """
        def replace(match):
            escaped, var_name, modifier, alt_value = match.groups()
            if escaped:
                return match.group(0)[1:]

            value = context.get(var_name)
            if modifier == '-':
                return value if value else alt_value
            if modifier == '+':
                return alt_value if value else ''
            if value is None:
                raise KeyError(f"Variable {var_name} not found in context")
            return value

        return _PATTERN.sub(replace, template)

    @staticmethod
    def variables(template: str) -> List[str]:
        """Names referenced by unescaped placeholders, in order of appearance."""
        return [m.group(2) for m in _PATTERN.finditer(template) if not m.group(1)]
