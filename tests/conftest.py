from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from dialog_generator.engine import TemplateEngine, load_structured_template
from dialog_generator.materializer import Generation
from dialog_generator.models import FeedbackType
from dialog_generator.scope import Scope
from dialog_generator.tracker import FileTracker


class FeedbackLog:
    """Collects feedback events for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[FeedbackType, str]] = []

    def __call__(self, kind: FeedbackType, message: str) -> None:
        self.events.append((kind, message))

    def of(self, kind: FeedbackType) -> list[str]:
        return [message for event, message in self.events if event == kind]

    @property
    def errors(self) -> list[str]:
        return self.of(FeedbackType.error)

    @property
    def warnings(self) -> list[str]:
        return self.of(FeedbackType.warning)


@pytest.fixture
def feedback() -> FeedbackLog:
    return FeedbackLog()


@pytest.fixture
def write_files():
    def write(root: Path, files: dict[str, str]) -> Path:
        for name, content in files.items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return write


@pytest.fixture
def generator_template(tmp_path: Path):
    path = tmp_path / "generator.tmpl.yaml"
    path.write_text(
        'dialogDir: "dialogs/"\n'
        'generationDir: "language-generation/"\n'
        'understandingDir: "language-understanding/"\n'
        'knowledgeDir: "knowledge-base/"\n',
        encoding="utf-8",
    )
    return load_structured_template(path)


@pytest.fixture
def engine(generator_template) -> TemplateEngine:
    return TemplateEngine(generator_template)


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "templates"
    directory.mkdir()
    return directory


@pytest.fixture
def generation(tmp_path: Path, templates_dir: Path, engine: TemplateEngine, feedback: FeedbackLog) -> Generation:
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    return Generation(template_dirs=[templates_dir], out_dir=out_dir, engine=engine, feedback=feedback)


@pytest.fixture
def scope() -> Scope:
    return Scope(prefix="test", locale="en-us", locales=["en-us"], files=FileTracker(), utterances=set())


@pytest.fixture
def sample_schema(tmp_path: Path) -> Path:
    path = tmp_path / "schemas" / "sandwich.json"
    path.parent.mkdir()
    path.write_text(
        '{\n'
        '  "properties": {\n'
        '    "name": {"type": "string"},\n'
        '    "age": {"type": "integer", "examples": ["42"]}\n'
        '  }\n'
        '}\n',
        encoding="utf-8",
    )
    return path
