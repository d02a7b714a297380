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
Default collaborators for staging files into a build context directory:
path resolution, file copying and tar archive creation.
"""
import logging
import os
import re
import shutil
import tarfile
from pathlib import Path
from typing import Iterator, List, Tuple, Union
from ..MODELS.staging import CopySpec

logger = logging.getLogger(__name__)

CopySource = Union[str, os.PathLike, CopySpec]


def _glob_to_regex(pattern: str) -> "re.Pattern":
    """
    Translates an Ant-style glob into a regex over '/'-separated relative paths.
    '**/' matches any number of directories, '*' and '?' never cross '/'.
    """
    regex = []
    i = 0
    while i < len(pattern):
        if pattern.startswith('**/', i):
            regex.append('(?:.*/)?')
            i += 3
        elif pattern.startswith('**', i):
            regex.append('.*')
            i += 2
        elif pattern[i] == '*':
            regex.append('[^/]*')
            i += 1
        elif pattern[i] == '?':
            regex.append('[^/]')
            i += 1
        else:
            regex.append(re.escape(pattern[i]))
            i += 1
    return re.compile(''.join(regex) + r'\Z')


def matches_any(relative_path: str, patterns: List[str]) -> bool:
    return any(_glob_to_regex(p).match(relative_path) for p in patterns)


class ContextStager:
    """
    Resolves host paths and copies files into a build context.

    An instance serves as the path resolver, the copy collaborator and the
    archive writer of a Dockerfile.
    """
    def __init__(self, base_dir: str = "."):
        """
        Initializes the stager.

        :param base_dir: The directory relative source paths are resolved against.
        """
        self.base_dir = os.path.abspath(base_dir)

    def resolve_path(self, path: Union[str, os.PathLike]) -> Path:
        """
        Resolves a source path string to an absolute location.

        :param path: Absolute, home-relative or base-relative path.
        :return: The absolute path.
        """
        expanded = os.path.expanduser(str(path))
        if os.path.isabs(expanded):
            return Path(expanded)
        return Path(os.path.abspath(os.path.join(self.base_dir, expanded)))

    def copy(self, source: CopySource, target: Union[str, os.PathLike]) -> None:
        """
        Copies a path or a copy specification into ``target``.

        A directory source has its contents copied into ``target``; a file
        source is copied into ``target`` under its own name.

        :raises FileNotFoundError: If a source does not exist.
        """
        target = Path(target)
        if isinstance(source, CopySpec):
            self._copy_spec(source, target)
        else:
            self._copy_path(self.resolve_path(source), target)

    def _copy_path(self, source: Path, target: Path) -> None:
        if not source.exists():
            raise FileNotFoundError(f"Cannot stage {source}: no such file or directory")
        target.mkdir(parents=True, exist_ok=True)
        logger.debug("Copying %s -> %s", source, target)
        if source.is_dir():
            shutil.copytree(source, target, dirs_exist_ok=True)
        else:
            shutil.copy2(source, target / source.name)

    def _copy_spec(self, spec: CopySpec, target: Path) -> None:
        destination = target / spec.into if spec.into else target
        destination.mkdir(parents=True, exist_ok=True)
        copied = 0
        for path, relative in self.collect(spec):
            dest = destination / relative
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, dest)
            copied += 1
        logger.debug("Copied %d file(s) from %s into %s", copied, spec.sources, destination)

    def collect(self, spec: CopySpec) -> Iterator[Tuple[Path, str]]:
        """
        Yields (absolute path, relative destination path) for every file the
        specification selects.
        """
        for source in spec.sources:
            root = self.resolve_path(source)
            if not root.exists():
                raise FileNotFoundError(f"Cannot stage {root}: no such file or directory")
            if root.is_file():
                candidates = [(root, root.name)]
            else:
                candidates = [
                    (path, path.relative_to(root).as_posix())
                    for path in sorted(root.rglob('*')) if path.is_file()
                ]
            for path, relative in candidates:
                if spec.include and not matches_any(relative, spec.include):
                    continue
                if matches_any(relative, spec.exclude):
                    continue
                yield path, relative

    def write_tar(self, directory: Union[str, os.PathLike], tar_path: Union[str, os.PathLike]) -> Path:
        """
        Archives the contents of ``directory`` into an uncompressed tar file.

        :param directory: The directory whose contents are archived.
        :param tar_path: The archive to create.
        :return: The archive path.
        """
        directory = Path(directory)
        tar_path = Path(tar_path)
        tar_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Creating tar archive %s from %s", tar_path, directory)
        with tarfile.open(tar_path, 'w') as tar:
            for entry in sorted(directory.iterdir()):
                tar.add(str(entry), arcname=entry.name)
        return tar_path
