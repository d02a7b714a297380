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
Unit tests for the Dockerfile builder: dispatch, ADD/COPY staging and rendering.
"""
import tarfile
from urllib.parse import urlparse

import pytest
from dfsynth.BUILDERS.dockerfile import Dockerfile, exec_form, is_url
from dfsynth.MODELS.staging import CopySpec, StagingKind
from dfsynth.UTILS.errors import InstructionArgumentError, StagingError, UnknownInstructionError


class RecordingCopier:
    """Copy collaborator that records calls instead of copying."""

    def __init__(self):
        self.calls = []

    def __call__(self, source, target):
        self.calls.append((source, target))


@pytest.fixture
def copier():
    return RecordingCopier()


@pytest.fixture
def dockerfile(tmp_path, copier):
    return Dockerfile(tmp_path / "context", copier=copier)


class TestDispatch:
    """Tests for dynamic instruction dispatch."""

    def test_generic_instruction(self, dockerfile):
        """Test that unknown names become ongoing instructions."""
        dockerfile.expose(8080, 8443)
        dockerfile.finalize()
        assert dockerfile.get_instructions() == ["EXPOSE 8080 8443"]

    def test_case_insensitive(self, dockerfile):
        """Test that Run, RUN and run record identical entries."""
        dockerfile.Run("echo hi")
        dockerfile.RUN("echo hi")
        dockerfile.run("echo hi")
        assert dockerfile.ledger.ongoing == [("run", ("echo hi",))] * 3

    def test_repeated_instructions_not_merged(self, dockerfile):
        """Test that two RUN calls yield two lines."""
        dockerfile.run("a").run("b")
        dockerfile.finalize()
        assert dockerfile.get_instructions() == ["RUN a", "RUN b"]

    def test_instruction_by_name(self, dockerfile):
        """Test explicit dispatch through instruction()."""
        dockerfile.instruction("WORKDIR", "/app")
        dockerfile.instruction("From", "alpine:3.18")
        dockerfile.finalize()
        assert dockerfile.get_instructions() == ["FROM alpine:3.18", "WORKDIR /app"]

    def test_uppercase_handler_routes_to_specific_handler(self, dockerfile):
        """Test that CMD via attribute access still uses exec form."""
        dockerfile.CMD(["echo", "hi"])
        dockerfile.finalize()
        assert dockerfile.get_instructions() == ['CMD ["echo", "hi"]']

    def test_invalid_name(self, dockerfile):
        """Test that malformed names are rejected."""
        with pytest.raises(UnknownInstructionError):
            dockerfile.instruction("run it", "x")
        with pytest.raises(UnknownInstructionError):
            dockerfile.instruction("", "x")

    def test_bad_arity(self, dockerfile):
        """Test that handler arity mismatches raise a clear error."""
        with pytest.raises(InstructionArgumentError, match="FROM"):
            dockerfile.instruction("from", "a", "b")
        with pytest.raises(InstructionArgumentError):
            dockerfile.instruction("cmd")

    def test_bad_types(self, dockerfile):
        """Test that wrongly typed handler arguments are rejected."""
        with pytest.raises(InstructionArgumentError):
            dockerfile.cmd("echo hi")
        with pytest.raises(InstructionArgumentError):
            dockerfile.from_("")
        with pytest.raises(InstructionArgumentError):
            dockerfile.add(42)

    def test_keyword_arguments_on_generic_instruction(self, dockerfile):
        """Test that generic instructions reject keyword arguments."""
        with pytest.raises(InstructionArgumentError):
            dockerfile.run(command="echo")

    def test_private_attributes_not_dispatched(self, dockerfile):
        """Test that private names raise AttributeError."""
        with pytest.raises(AttributeError):
            dockerfile._missing


class TestBase:
    """Tests for base instructions."""

    def test_from(self, dockerfile):
        dockerfile.from_("alpine:3.18")
        assert dockerfile.has_base()
        assert dockerfile.get_instructions() == ["FROM alpine:3.18"]

    def test_extend_replaces_from(self, dockerfile, tmp_path):
        """Test that the last base-setting call wins."""
        base = tmp_path / "Dockerfile.base"
        base.write_text("FROM debian:12\nRUN apt-get update\n")
        dockerfile.from_("alpine:3.18")
        dockerfile.extend_dockerfile(base)
        assert dockerfile.has_base()
        assert dockerfile.get_instructions() == ["FROM debian:12", "RUN apt-get update"]

    def test_from_replaces_extend(self, dockerfile, tmp_path):
        base = tmp_path / "Dockerfile.base"
        base.write_text("FROM debian:12\n")
        dockerfile.extendDockerfile(str(base))
        dockerfile.FROM("alpine:3.18")
        assert dockerfile.get_instructions() == ["FROM alpine:3.18"]

    def test_extend_missing_file(self, dockerfile, tmp_path):
        """Test that an unreadable base file raises an I/O error."""
        with pytest.raises(OSError):
            dockerfile.extend_dockerfile(tmp_path / "missing")

    def test_extend_keeps_lines_with_separators(self, dockerfile, tmp_path):
        """Test that only newlines split base instructions."""
        base = tmp_path / "Dockerfile.base"
        base.write_text('FROM a\nLABEL desc="x\u2028y"\r\nRUN printf "\x0c"\n', encoding='utf-8', newline='')
        dockerfile.extend_dockerfile(base)
        assert dockerfile.get_instructions() == [
            'FROM a',
            'LABEL desc="x\u2028y"',
            'RUN printf "\x0c"',
        ]

    def test_extend_keeps_blank_lines(self, dockerfile, tmp_path):
        base = tmp_path / "Dockerfile.base"
        base.write_text("FROM a\n\n# comment\nRUN b", encoding='utf-8')
        dockerfile.extend_dockerfile(base)
        assert dockerfile.get_instructions() == ["FROM a", "", "# comment", "RUN b"]

    def test_write_and_extend_round_trip(self, dockerfile, tmp_path):
        """Test that non-ASCII instructions survive writing and re-importing."""
        dockerfile.from_("alpine")
        dockerfile.append('LABEL maintainer="Zoë Ångström"')
        path = dockerfile.write_to_file(tmp_path / "Dockerfile")
        assert path.read_text(encoding='utf-8') == 'FROM alpine\nLABEL maintainer="Zoë Ångström"\n'

        other = Dockerfile(tmp_path / "other")
        other.extend_dockerfile(path)
        assert other.get_instructions() == ["FROM alpine", 'LABEL maintainer="Zoë Ångström"']

    def test_no_base(self, dockerfile):
        assert not dockerfile.has_base()


class TestExecForm:
    """Tests for CMD and ENTRYPOINT encoding."""

    def test_cmd(self, dockerfile):
        dockerfile.cmd(["echo", "hi"])
        dockerfile.finalize()
        assert dockerfile.get_instructions() == ['CMD ["echo", "hi"]']

    def test_entrypoint(self, dockerfile):
        dockerfile.entrypoint(["java", "-jar", "app.jar"])
        dockerfile.finalize()
        assert dockerfile.get_instructions() == ['ENTRYPOINT ["java", "-jar", "app.jar"]']

    def test_exec_form_helper(self):
        assert exec_form(["a", "b", "c"]) == '["a", "b", "c"]'
        assert exec_form([]) == '[""]'


class TestAddCopy:
    """Tests for ADD and COPY resolution and staging."""

    def test_add_url(self, dockerfile):
        """Test that URLs are added without staging."""
        dockerfile.add("http://example.com/f.txt", "/dst")
        assert dockerfile.ledger.ongoing == [("ADD", ("http://example.com/f.txt", "/dst"))]
        assert dockerfile.staging_backlog == []

    def test_copy_url(self, dockerfile):
        dockerfile.copy("https://example.com/a.tgz", "/opt")
        dockerfile.finalize()
        assert dockerfile.get_instructions() == ["COPY https://example.com/a.tgz /opt"]
        assert dockerfile.staging_backlog == []

    def test_add_parsed_url(self, dockerfile):
        dockerfile.add(urlparse("https://example.com/x"))
        dockerfile.finalize()
        assert dockerfile.get_instructions() == ["ADD https://example.com/x /"]

    def test_add_directory(self, dockerfile, copier, tmp_path):
        """Test that a directory is staged into a same-named sub-directory."""
        source = tmp_path / "assets"
        source.mkdir()
        dockerfile.add(source, "/dst")

        backlog = dockerfile.staging_backlog
        assert len(backlog) == 1
        assert backlog[0].kind == StagingKind.COPY
        assert backlog[0].target == dockerfile.context_dir / "assets"
        assert dockerfile.ledger.ongoing == [("ADD", ("assets", "/dst"))]

        assert copier.calls == []
        dockerfile.stage()
        assert copier.calls == [(source, dockerfile.context_dir / "assets")]

    def test_copy_file(self, dockerfile, copier, tmp_path):
        """Test that a file is staged into the context directory itself."""
        source = tmp_path / "app.jar"
        source.write_text("jar")
        dockerfile.copy(source, "/opt/app.jar")
        dockerfile.stage()
        dockerfile.finalize()
        assert copier.calls == [(source, dockerfile.context_dir)]
        assert dockerfile.get_instructions() == ["COPY app.jar /opt/app.jar"]

    def test_path_string_uses_resolver(self, tmp_path, copier):
        """Test that non-URL strings go through the path resolver."""
        source = tmp_path / "src" / "main.py"
        source.parent.mkdir()
        source.write_text("print()")
        resolved = []

        def resolve(path):
            resolved.append(path)
            return tmp_path / "src" / path

        dockerfile = Dockerfile(tmp_path / "ctx", resolve_path=resolve, copier=copier)
        dockerfile.add("main.py")
        assert resolved == ["main.py"]
        assert dockerfile.ledger.ongoing == [("ADD", ("main.py", "/"))]

    def test_malformed_url_falls_back_to_path(self, tmp_path, copier):
        """Test that unparsable URLs are resolved as paths."""
        resolved = []

        def resolve(path):
            resolved.append(path)
            return tmp_path / "weird"

        dockerfile = Dockerfile(tmp_path / "ctx", resolve_path=resolve, copier=copier)
        dockerfile.add("http://[::1")
        assert resolved == ["http://[::1"]
        assert len(dockerfile.staging_backlog) == 1

    def test_copy_spec_archive(self, dockerfile, copier):
        """Test that a copy specification is staged as a numbered archive."""
        spec = CopySpec(sources=["src"], include=["**/*.py"])
        dockerfile.add(spec)
        dockerfile.copy({"sources": ["lib"]})

        backlog = dockerfile.staging_backlog
        assert [a.kind for a in backlog] == [StagingKind.ARCHIVE, StagingKind.ARCHIVE]
        assert backlog[0].target == dockerfile.context_dir / "add_1.tar"
        assert backlog[1].target == dockerfile.context_dir / "copy_1.tar"

        dockerfile.finalize()
        assert dockerfile.get_instructions() == ["ADD add_1.tar /", "COPY copy_1.tar /"]

    def test_invalid_copy_spec_mapping(self, dockerfile):
        with pytest.raises(InstructionArgumentError):
            dockerfile.copy({"sources": []})

    def test_archive_staging(self, tmp_path):
        """Test that archive actions populate a temp dir and tar it."""
        calls = []

        def copier(spec, target):
            calls.append(spec)
            (target / "hello.txt").write_text("hello")

        dockerfile = Dockerfile(tmp_path / "ctx", copier=copier)
        dockerfile.add(CopySpec(sources=["anything"]))
        dockerfile.copy(CopySpec(sources=["anything"]))
        assert dockerfile.stage() == 2

        for name in ("add_1.tar", "copy_1.tar"):
            with tarfile.open(tmp_path / "ctx" / name) as tar:
                assert tar.getnames() == ["hello.txt"]
        assert len(calls) == 2

    def test_archive_names_unique(self, tmp_path):
        """Test that N archive declarations produce N distinct tar files."""
        dockerfile = Dockerfile(tmp_path / "ctx", copier=lambda spec, target: (target / "f").write_text("x"))
        for _ in range(3):
            dockerfile.add(CopySpec(sources=["x"]))
            dockerfile.copy(CopySpec(sources=["x"]))
        dockerfile.run("echo interleaved")
        dockerfile.stage()

        names = sorted(p.name for p in (tmp_path / "ctx").glob("*.tar"))
        assert names == ["add_1.tar", "add_2.tar", "add_3.tar", "copy_1.tar", "copy_2.tar", "copy_3.tar"]

    def test_staging_and_instruction_in_step(self, dockerfile, tmp_path):
        """Test one staging action and one instruction per local ADD/COPY."""
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "dir").mkdir()
        dockerfile.add(tmp_path / "a.txt")
        dockerfile.copy(tmp_path / "dir", "/dir")
        dockerfile.copy(CopySpec(sources=["x"]))
        assert len(dockerfile.staging_backlog) == dockerfile.ledger.ongoing_count() == 3


class TestStaging:
    """Tests for draining the staging backlog."""

    def test_stage_runs_once(self, dockerfile, copier, tmp_path):
        """Test that actions already run are skipped."""
        (tmp_path / "a.txt").write_text("a")
        dockerfile.add(tmp_path / "a.txt")
        assert dockerfile.stage() == 1
        assert dockerfile.stage() == 0
        assert len(copier.calls) == 1

    def test_stage_creates_context_dir(self, dockerfile):
        dockerfile.stage()
        assert dockerfile.context_dir.is_dir()

    def test_stage_failure(self, tmp_path):
        """Test that collaborator failures surface as StagingError and stop the drain."""
        calls = []

        def copier(source, target):
            calls.append(source)
            raise IOError("disk full")

        (tmp_path / "a").write_text("a")
        (tmp_path / "b").write_text("b")
        dockerfile = Dockerfile(tmp_path / "ctx", copier=copier)
        dockerfile.add(tmp_path / "a").add(tmp_path / "b")

        with pytest.raises(StagingError) as excinfo:
            dockerfile.stage()
        assert isinstance(excinfo.value.cause, IOError)
        assert calls == [tmp_path / "a"]
        assert not dockerfile.staging_backlog[0].executed


class TestRender:
    """Tests for rendering and writing."""

    def test_full_order(self, dockerfile):
        """Test base, direct and finalized lines in order."""
        dockerfile.from_("alpine:3.18")
        dockerfile.append("LABEL stage=direct")
        dockerfile.run("apk add curl")
        dockerfile.cmd(["curl", "--version"])
        dockerfile.finalize()
        assert dockerfile.get_instructions() == [
            "FROM alpine:3.18",
            "LABEL stage=direct",
            "RUN apk add curl",
            'CMD ["curl", "--version"]',
        ]

    def test_write_to_file(self, dockerfile, tmp_path):
        dockerfile.from_("alpine")
        dockerfile.run("true")
        dockerfile.finalize()
        path = dockerfile.write_to_file(tmp_path / "out" / "Dockerfile")
        assert path.read_text() == "FROM alpine\nRUN true\n"
        assert dockerfile.render() == "FROM alpine\nRUN true\n"

    def test_build(self, tmp_path):
        """Test the stage, finalize and write sequence."""
        source = tmp_path / "config.ini"
        source.write_text("[app]\n")
        dockerfile = Dockerfile(tmp_path / "ctx")
        dockerfile.from_("python:3.12-slim")
        dockerfile.copy(source, "/etc/app/")
        path = dockerfile.build()

        assert path == tmp_path / "ctx" / "Dockerfile"
        assert (tmp_path / "ctx" / "config.ini").read_text() == "[app]\n"
        assert path.read_text() == "FROM python:3.12-slim\nCOPY config.ini /etc/app/\n"


def test_is_url():
    assert is_url("http://example.com/f.txt")
    assert is_url("s3://bucket/key")
    assert not is_url("relative/path.txt")
    assert not is_url("/abs/path")
    assert not is_url("C:\\Users\\file")
    assert not is_url("http://[::1")
    assert is_url("file:///etc/hosts")
    assert is_url("file:/etc/hosts")
    assert not is_url("D:/data/file.txt")


def test_add_file_url_is_not_staged(dockerfile):
    """Test that URLs without a network location are added verbatim."""
    dockerfile.add("file:///etc/hosts", "/dst")
    assert dockerfile.staging_backlog == []
    dockerfile.finalize()
    assert dockerfile.get_instructions() == ["ADD file:///etc/hosts /dst"]
