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
Models for Dockerfile instructions that are declared but not yet rendered.
"""
from typing import Any, Callable, List, Optional
from pydantic import BaseModel, PrivateAttr


class InstructionArgument(BaseModel):
    """
    A single instruction argument, either a literal value or a deferred one.

    Deferred arguments hold a zero-argument callable that is invoked the first
    time the argument is resolved; the result is kept so the callable never
    runs twice.
    """
    value: Any = None
    factory: Optional[Callable[[], Any]] = None

    _resolved: bool = PrivateAttr(default=False)

    @classmethod
    def wrap(cls, raw: Any) -> "InstructionArgument":
        """
        Builds an argument from a raw value passed to an instruction.

        :param raw: A literal, a zero-argument callable or an existing argument.
        :return: The corresponding InstructionArgument.
        """
        if isinstance(raw, InstructionArgument):
            return raw
        if callable(raw):
            return cls(factory=raw)
        return cls(value=raw)

    @property
    def is_deferred(self) -> bool:
        """True while the value still has to be computed."""
        return self.factory is not None and not self._resolved

    def resolve(self) -> Any:
        """
        Returns the literal value, computing it on first use for deferred arguments.
        """
        if self.is_deferred:
            self.value = self.factory()
            self._resolved = True
        return self.value

    def render(self) -> str:
        return str(self.resolve())


class OngoingInstruction(BaseModel):
    """
    An instruction recorded under its declared name, awaiting finalization.
    """
    name: str
    arguments: List[InstructionArgument] = []

    @classmethod
    def create(cls, name: str, *args: Any) -> "OngoingInstruction":
        return cls(name=name, arguments=[InstructionArgument.wrap(a) for a in args])

    @property
    def keyword(self) -> str:
        """The upper-cased instruction keyword, e.g. RUN."""
        return self.name.upper()

    def render(self) -> str:
        """
        Resolves every argument and joins them behind the keyword.

        :return: The finalized instruction line.
        """
        values = [argument.render() for argument in self.arguments]
        return " ".join([self.keyword] + values)
