import os
import sys


# Ensure `src/backend` is on sys.path so imports like `import common...` work.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

import textwrap

import pytest

from common.profile_engine.context import ProfileContext
from common.profile_engine.execution import ExampleWorld
from common.profile_engine.resources import build_namespace
from common.profile_engine.runner import ProfileRunner
from common.profile_engine.targets import TargetResolver


PASSWD = """\
root:x:0:0:root:/root:/bin/bash
daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin
# service accounts
www-data:x:33:33:www-data:/var/www:/usr/sbin/nologin
alice:x:1000:1000:Alice:/home/alice:/bin/bash
"""


class FakeBackend:
    def __init__(self, files=None, env=None):
        self.files = dict(files or {})
        self.env = dict(env or {})
        self.reads = []

    def read_file(self, path):
        self.reads.append(path)
        return self.files.get(path)

    def file_exists(self, path):
        return path in self.files

    def is_directory(self, path):
        return False

    def file_mode(self, path):
        return 0o644 if path in self.files else None

    def getenv(self, name):
        return self.env.get(name)

    def os_info(self):
        return {"name": "debian", "family": "debian", "arch": "x86_64", "release": "12"}


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend(files={"/etc/passwd": PASSWD}, env={"PATH": "/usr/bin:/bin"})


@pytest.fixture
def example_world() -> ExampleWorld:
    return ExampleWorld()


@pytest.fixture
def profile_source():
    def _make(text: str) -> str:
        return textwrap.dedent(text).lstrip("\n")

    return _make


@pytest.fixture
def make_context(fake_backend):
    def _make(profile_id: str = "test-profile") -> ProfileContext:
        return ProfileContext(profile_id, build_namespace(fake_backend))

    return _make


@pytest.fixture
def make_runner(fake_backend, example_world):
    def _make(profile_id: str = "test-profile", *, resolver: TargetResolver | None = None) -> ProfileRunner:
        return ProfileRunner(
            profile_id,
            backend=fake_backend,
            resolver=resolver,
            example_world=example_world,
        )

    return _make
