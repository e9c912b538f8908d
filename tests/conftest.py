import argparse
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import glgen  # noqa: E402

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def make_buffer() -> Callable[..., glgen.TextBuffer]:
    def _make_buffer(text: str, name: str = "<memory>") -> glgen.TextBuffer:
        return glgen.TextBuffer(name, text)

    return _make_buffer


@pytest.fixture
def build_index(
    make_buffer: Callable[..., glgen.TextBuffer],
) -> Callable[..., glgen.RegistryIndex]:
    def _build_index(text: str, capacity: int = glgen.TABLE_CAPACITY) -> glgen.RegistryIndex:
        return glgen.RegistryIndex.build(make_buffer(text, "registry.h"), capacity)

    return _build_index


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write_file(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write_file


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., glgen.GenerateConfig]:
    def _make_config(**overrides: object) -> glgen.GenerateConfig:
        base: dict[str, object] = {
            "registry_files": (FIXTURES_DIR / "glcorearb_minimal.h",),
            "inputs": (FIXTURES_DIR / "sample.c",),
            "output": tmp_path / "out" / "opengl.generated.h",
            "prefix": "",
            "ignores": (),
            "boilerplate": True,
            "silent": True,
            "force": True,
        }
        base.update(overrides)
        return glgen.GenerateConfig(**base)

    return _make_config


@pytest.fixture
def make_args(tmp_path: Path) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "inputs": [FIXTURES_DIR / "sample.c"],
            "registry": [str(FIXTURES_DIR / "glcorearb_minimal.h")],
            "output": tmp_path / "opengl.generated.h",
            "prefix": "",
            "ignore": None,
            "no_boilerplate": False,
            "silent": False,
            "force": False,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args
