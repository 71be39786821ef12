"""Shared test fixtures — corpora of FileUnits, settings, fakes."""

import os

# Force dummy API keys for all tests; no real inference calls.
# Set unconditionally at import time so no Settings() or litellm call
# ever picks up a real key from the shell environment.
os.environ["OPENAI_API_KEY"] = "for-demo-purposes-only"
os.environ["ANTHROPIC_API_KEY"] = "for-demo-purposes-only"

from collections.abc import Callable

import pytest

from codeatlas.config import Settings
from codeatlas.fakes import RecordingSink
from codeatlas.ingestion.schemas import FileUnit

type FileFactory = Callable[..., FileUnit]


def make_file(path: str, content: str = "") -> FileUnit:
    return FileUnit(path=path, content=content)


@pytest.fixture
def file_factory() -> FileFactory:
    return make_file


@pytest.fixture
def web_corpus() -> list[FileUnit]:
    """Small TypeScript app with controller/model/view files."""
    return [
        make_file(
            "src/index.ts",
            "import { start } from './server';\nstart();\n",
        ),
        make_file(
            "src/server.ts",
            "// HTTP server bootstrap\n"
            "import { UserController } from './controllers/userController';\n"
            "export function start() {}\n",
        ),
        make_file(
            "src/controllers/userController.ts",
            "import { User } from '../models/user';\n"
            "import { renderUser } from '../views/userView';\n"
            "export class UserController {}\n",
        ),
        make_file("src/models/user.ts", "export class User {}\n"),
        make_file(
            "src/views/userView.ts",
            "const user = require('../models/user');\n"
            "export function renderUser() {}\n",
        ),
        make_file(
            "tests/user.test.ts",
            "import { User } from '../src/models/user';\n",
        ),
    ]


@pytest.fixture
def settings() -> Settings:
    """Settings that send every file of a small corpus to inference."""
    return Settings(
        chunk_size=4,
        min_selected_files=20,
        max_selected_files=20,
        llm_chunk_timeout_seconds=0.2,
        log_dir=None,
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
