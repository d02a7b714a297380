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
Builder accumulating Dockerfile instructions and the staging actions that
prepare the build context they refer to.
"""
import functools
import inspect
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union
from urllib.parse import ParseResult, urlparse
from pydantic import ValidationError
from .context_stager import ContextStager
from .instruction_ledger import InstructionLedger
from ..MODELS.staging import CopySpec, StagingAction, StagingKind
from ..PARSERS.dockerfile_reader import DockerfileReader
from ..UTILS.errors import InstructionArgumentError, StagingError, UnknownInstructionError

logger = logging.getLogger(__name__)

INSTRUCTION_NAME = re.compile(r'[A-Za-z][A-Za-z0-9_]*')


def is_url(value: str) -> bool:
    """
    True if ``value`` is an absolute URL, e.g. ``https://host/f`` or
    ``file:///etc/hosts``. Single-letter schemes are Windows drive letters,
    not URLs. Malformed URLs are reported as not being URLs.
    """
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    if not parsed.scheme:
        return False
    return bool(parsed.netloc) or len(parsed.scheme) > 1


def exec_form(command: Iterable[Any]) -> str:
    """Encodes a command list in Docker's exec form: ["a", "b"]."""
    return '["' + '", "'.join(str(part) for part in command) + '"]'


class Dockerfile:
    """
    A Dockerfile under construction.

    Any instruction can be declared by calling it as a method, in any case:
    ``df.run("apt-get update")`` and ``df.RUN(...)`` both record
    ``RUN apt-get update``. FROM, CMD, ENTRYPOINT, ADD and COPY have dedicated
    handlers. ADD and COPY of local files also queue staging actions; run them
    with ``stage()`` before ``finalize()`` renders pending instructions.
    """
    def __init__(self,
                 context_dir: Union[str, os.PathLike],
                 resolve_path: Optional[Callable[[str], Path]] = None,
                 copier: Optional[Callable[[Any, Path], None]] = None,
                 archiver: Optional[Callable[[Path, Path], Any]] = None):
        """
        Initializes an empty Dockerfile.

        :param context_dir: The build context directory staged files land in.
        :param resolve_path: Resolves non-URL source strings to paths.
        :param copier: Copies a path or CopySpec into a directory.
        :param archiver: Writes a tar archive of a directory's contents.
        """
        stager = ContextStager()
        self.context_dir = Path(context_dir)
        self.resolve_path = resolve_path or stager.resolve_path
        self.copier = copier or stager.copy
        self.archiver = archiver or stager.write_tar
        self.ledger = InstructionLedger()
        self.reader = DockerfileReader()
        self._backlog: List[StagingAction] = []
        self._archive_counts = {"add": 0, "copy": 0}
        self._handlers = {
            "from": self.from_,
            "extenddockerfile": self.extend_dockerfile,
            "extend_dockerfile": self.extend_dockerfile,
            "cmd": self.cmd,
            "entrypoint": self.entrypoint,
            "add": self.add,
            "copy": self.copy,
        }

    def __getattr__(self, name: str):
        if name.startswith('_'):
            raise AttributeError(name)
        return functools.partial(self.instruction, name)

    def instruction(self, name: str, *args: Any, **kwargs: Any) -> "Dockerfile":
        """
        Declares an instruction by name.

        Names are case-insensitive. Names without a dedicated handler are
        recorded as ongoing instructions with their raw arguments, e.g.
        ``instruction("expose", 8080)`` becomes ``EXPOSE 8080``.

        :raises UnknownInstructionError: If ``name`` is not a valid instruction name.
        :raises InstructionArgumentError: If the arguments do not fit the handler.
        """
        if not isinstance(name, str) or not INSTRUCTION_NAME.fullmatch(name):
            raise UnknownInstructionError(str(name), "not a valid instruction name")
        key = name.lower()
        handler = self._handlers.get(key)
        if handler is None:
            if kwargs:
                raise InstructionArgumentError(key.upper(), f"unexpected keyword arguments {sorted(kwargs)}")
            logger.debug('No explicit handler for "%s(%s)" found. Using default implementation.',
                         key, ', '.join(str(a) for a in args))
            self.ledger.append_ongoing(key, *args)
            return self
        try:
            inspect.signature(handler).bind(*args, **kwargs)
        except TypeError as e:
            raise InstructionArgumentError(key.upper(), f"bad arguments: {e}") from e
        handler(*args, **kwargs)
        return self

    def append(self, value: Any) -> "Dockerfile":
        self.ledger.append(value)
        return self

    def append_all(self, values: Iterable[Any]) -> "Dockerfile":
        self.ledger.append_all(values)
        return self

    def append_ongoing(self, name: str, *args: Any) -> "Dockerfile":
        self.ledger.append_ongoing(name, *args)
        return self

    def extend_dockerfile(self, base_file: Union[str, os.PathLike]) -> "Dockerfile":
        """
        Replaces the base instructions with the lines of an existing Dockerfile.

        :param base_file: Path to the Dockerfile to extend.
        :raises OSError: If the file cannot be read.
        """
        if not isinstance(base_file, (str, os.PathLike)):
            raise InstructionArgumentError("EXTEND_DOCKERFILE", "expected a path")
        path = self.resolve_path(base_file) if isinstance(base_file, str) else Path(base_file)
        self.ledger.set_base(self.reader.read_lines(path))
        return self

    def from_(self, base_image: str) -> "Dockerfile":
        """
        Sets the base image, replacing any previous base instructions.

        :param base_image: Name of the base image, e.g. ``alpine:3.18``.
        """
        if not isinstance(base_image, str) or not base_image.strip():
            raise InstructionArgumentError("FROM", "expected a non-empty image name")
        self.ledger.set_base([f"FROM {base_image}"])
        return self

    def cmd(self, command: List[Any]) -> "Dockerfile":
        return self._exec_form_instruction("CMD", command)

    def entrypoint(self, command: List[Any]) -> "Dockerfile":
        return self._exec_form_instruction("ENTRYPOINT", command)

    def _exec_form_instruction(self, keyword: str, command: List[Any]) -> "Dockerfile":
        if isinstance(command, (str, bytes)) or not isinstance(command, (list, tuple)):
            raise InstructionArgumentError(keyword, "expected a list of command arguments")
        self.ledger.append_ongoing(keyword, exec_form(command))
        return self

    def add(self, source: Any, destination: str = '/') -> "Dockerfile":
        """
        Declares an ADD instruction.

        ``source`` may be a URL, a path string, a path, or a CopySpec (or a
        mapping of CopySpec fields) that is staged as an archive.
        """
        return self._add_or_copy("ADD", source, destination)

    def copy(self, source: Any, destination: str = '/') -> "Dockerfile":
        """
        Declares a COPY instruction. Accepts the same sources as ``add``.
        """
        return self._add_or_copy("COPY", source, destination)

    def _add_or_copy(self, keyword: str, source: Any, destination: str) -> "Dockerfile":
        if isinstance(source, Mapping):
            try:
                source = CopySpec.model_validate(source)
            except ValidationError as e:
                raise InstructionArgumentError(keyword, f"invalid copy specification: {e}") from e
        if isinstance(source, CopySpec):
            return self._stage_archive(keyword, source, destination)
        if isinstance(source, ParseResult):
            source = source.geturl()
        if isinstance(source, str):
            if is_url(source):
                self.ledger.append_ongoing(keyword, source, destination)
                return self
            source = self.resolve_path(source)
        if isinstance(source, os.PathLike):
            return self._stage_path(keyword, Path(source), destination)
        raise InstructionArgumentError(keyword, f"unsupported source type {type(source).__name__}")

    def _stage_path(self, keyword: str, source: Path, destination: str) -> "Dockerfile":
        if source.is_dir():
            target = self.context_dir / source.name
        else:
            target = self.context_dir
        self._queue(StagingAction(
            kind=StagingKind.COPY,
            instruction=keyword,
            target=target,
            operation=functools.partial(self.copier, source, target),
        ))
        self.ledger.append_ongoing(keyword, source.name, destination)
        return self

    def _stage_archive(self, keyword: str, spec: CopySpec, destination: str) -> "Dockerfile":
        kind = keyword.lower()
        self._archive_counts[kind] += 1
        tar_file = self.context_dir / f"{kind}_{self._archive_counts[kind]}.tar"
        action = StagingAction(
            kind=StagingKind.ARCHIVE,
            instruction=keyword,
            target=tar_file,
            operation=functools.partial(self._create_tar_archive, tar_file, spec),
        )
        self._queue(action)
        self.ledger.append_ongoing(keyword, lambda: action.target.name, destination)
        return self

    def _queue(self, action: StagingAction) -> None:
        logger.debug("Queued staging action %s", action.description)
        self._backlog.append(action)

    def _create_tar_archive(self, tar_file: Path, spec: CopySpec) -> None:
        with tempfile.TemporaryDirectory(prefix="dfsynth-") as tmp_dir:
            logger.info("Creating tar archive %s from %s", tar_file, tmp_dir)
            self.copier(spec, Path(tmp_dir))
            self.archiver(Path(tmp_dir), tar_file)

    @property
    def staging_backlog(self) -> List[StagingAction]:
        return list(self._backlog)

    def stage(self) -> int:
        """
        Runs every staging action not run yet, in declaration order.

        :return: The number of actions run.
        :raises StagingError: When an action fails; later actions are not run
            and the context directory is left partially populated.
        """
        self.context_dir.mkdir(parents=True, exist_ok=True)
        ran = 0
        for action in self._backlog:
            if action.executed:
                continue
            logger.debug("Running staging action %s", action.description)
            try:
                action.run()
            except Exception as e:
                raise StagingError(action.description, e) from e
            ran += 1
        return ran

    def finalize(self) -> int:
        """
        Renders ongoing instructions, resolving deferred arguments.

        :return: The number of instruction lines appended.
        """
        return self.ledger.finalize()

    def get_instructions(self) -> List[str]:
        """
        Get the contents of the Dockerfile row by row.
        """
        return self.ledger.get_instructions()

    def has_base(self) -> bool:
        """True if a base image or a base Dockerfile to extend has been set."""
        return self.ledger.has_base()

    def render(self) -> str:
        return ''.join(f"{line}\n" for line in self.get_instructions())

    def write_to_file(self, destination: Union[str, os.PathLike]) -> Path:
        """
        Writes the instructions, one per line, to ``destination``.
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        with open(destination, 'w', encoding='utf-8') as f:
            for line in self.get_instructions():
                f.write(f"{line}\n")
        logger.info("Wrote Dockerfile with %d instruction(s) to %s",
                    len(self.get_instructions()), destination)
        return destination

    def build(self, destination: Optional[Union[str, os.PathLike]] = None) -> Path:
        """
        Stages the build context, finalizes instructions and writes the Dockerfile.

        :param destination: Output file, ``<context_dir>/Dockerfile`` by default.
        :return: The path of the written Dockerfile.
        """
        self.stage()
        self.finalize()
        return self.write_to_file(destination or self.context_dir / "Dockerfile")
