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
Ordered storage of rendered and pending Dockerfile instructions.
"""
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple
from ..MODELS.instruction import OngoingInstruction

logger = logging.getLogger(__name__)


class InstructionLedger:
    """
    Keeps three sequences: base instructions (FROM or an imported Dockerfile),
    finalized instruction lines, and ongoing instructions awaiting finalization.

    Ongoing instructions are kept as an ordered list so that repeated names
    stay distinct entries; a per-name index supports counting.
    """
    def __init__(self):
        self.base_instructions: List[str] = []
        self.instructions: List[str] = []
        self._ongoing: List[OngoingInstruction] = []
        self._ongoing_index: Dict[str, List[int]] = defaultdict(list)
        self._finalized_count = 0

    def append(self, value: Any) -> "InstructionLedger":
        self.instructions.append(str(value))
        return self

    def append_all(self, values: Iterable[Any]) -> "InstructionLedger":
        self.instructions.extend(str(value) for value in values)
        return self

    def append_ongoing(self, name: str, *args: Any) -> "InstructionLedger":
        """
        Records an instruction whose arguments are resolved at finalization.

        :param name: Instruction name, in any case.
        :param args: Literal values or zero-argument callables.
        """
        self._ongoing_index[name.lower()].append(len(self._ongoing))
        self._ongoing.append(OngoingInstruction.create(name, *args))
        return self

    @property
    def ongoing(self) -> List[Tuple[str, tuple]]:
        """(name, raw arguments) of every ongoing entry, in declaration order."""
        return [
            (entry.name, tuple(arg.factory if arg.is_deferred else arg.value for arg in entry.arguments))
            for entry in self._ongoing
        ]

    def ongoing_count(self, name: Optional[str] = None) -> int:
        if name is None:
            return len(self._ongoing)
        return len(self._ongoing_index.get(name.lower(), []))

    def finalize(self) -> int:
        """
        Renders pending ongoing instructions and appends them as finalized lines.

        Entries already finalized by an earlier call are skipped, so calling
        this twice never duplicates lines or re-runs deferred arguments.

        :return: The number of lines appended.
        """
        pending = self._ongoing[self._finalized_count:]
        if not pending and self._finalized_count:
            logger.warning("finalize() called again with no new instructions to render")
        for entry in pending:
            self.append(entry.render())
            self._finalized_count += 1
        return len(pending)

    def set_base(self, lines: Iterable[Any]) -> None:
        self.base_instructions = [str(line) for line in lines]

    def has_base(self) -> bool:
        return len(self.base_instructions) > 0

    def get_instructions(self) -> List[str]:
        """
        Returns base instructions followed by finalized instructions.
        Ongoing instructions are not finalized implicitly.
        """
        return self.base_instructions + self.instructions
