from collections.abc import Callable
from pathlib import Path

import pytest

import glgen

GL_CLEAR_REGISTRY = (
    "GLAPI void GLAPIENTRY glClear (GLbitfield mask);\n"
    "#define GL_MAJOR_VERSION 0x821B\n"
)


def _lookup(index: glgen.RegistryIndex, name: str) -> glgen.RegistryEntry:
    entry = index.lookup(glgen.string_hash(name))
    assert entry is not None, f"{name} missing from registry index"
    return entry


# ===--- HashSlots ---=== #


def test_hash_slots_rejects_non_power_of_two_capacity() -> None:
    with pytest.raises(ValueError):
        glgen.HashSlots(6)
    with pytest.raises(ValueError):
        glgen.HashSlots(0)


def test_hash_slots_linear_probing_keeps_colliding_slots_reachable() -> None:
    slots = glgen.HashSlots(4)

    # 1, 5 and 9 all start probing at slot 1.
    assert slots.insert(1, "one")
    assert slots.insert(5, "five")
    assert slots.insert(9, "nine")

    assert slots.get(1) == "one"
    assert slots.get(5) == "five"
    assert slots.get(9) == "nine"
    assert slots.get(13) is None
    assert len(slots) == 3


def test_hash_slots_insert_is_first_write_wins() -> None:
    slots = glgen.HashSlots(8)

    assert slots.insert(42, "first") is True
    assert slots.insert(42, "second") is False

    assert slots.get(42) == "first"
    assert len(slots) == 1


def test_hash_slots_never_stores_sentinel_hash() -> None:
    slots = glgen.HashSlots(8)

    assert slots.insert(glgen.EMPTY_HASH, "zero") is False
    assert glgen.EMPTY_HASH not in slots
    assert slots.get(glgen.EMPTY_HASH) is None
    assert len(slots) == 0


def test_hash_slots_full_table_raises() -> None:
    slots = glgen.HashSlots(4)
    for hash_value in (1, 2, 3, 4):
        slots.insert(hash_value, hash_value)

    with pytest.raises(glgen.HashTableFullError) as exc_info:
        slots.insert(5, 5)

    assert exc_info.value.capacity == 4
    assert slots.get(4) == 4
    assert slots.get(5) is None


def test_hash_slots_lookup_in_full_table_terminates() -> None:
    slots = glgen.HashSlots(2)
    slots.insert(1, "a")
    slots.insert(2, "b")

    assert slots.get(3) is None
    assert 3 not in slots


# ===--- RegistryIndex.build ---=== #


def test_build_indexes_function_declaration(
    build_index: Callable[..., glgen.RegistryIndex],
) -> None:
    index = build_index(GL_CLEAR_REGISTRY)

    entry = _lookup(index, "glClear")

    assert entry.kind == glgen.ENTRY_FUNCTION
    assert entry.name.text == "glClear"
    assert entry.return_type is not None
    assert entry.return_type.text == "void"
    assert entry.parameters is not None
    assert entry.parameters.text == "(GLbitfield mask);"
    assert entry.line.text == "GLAPI void GLAPIENTRY glClear (GLbitfield mask);"


def test_build_indexes_macro_line_verbatim(
    build_index: Callable[..., glgen.RegistryIndex],
) -> None:
    index = build_index(GL_CLEAR_REGISTRY)

    entry = _lookup(index, "GL_MAJOR_VERSION")

    assert entry.kind == glgen.ENTRY_MACRO
    assert entry.line.text == "#define GL_MAJOR_VERSION 0x821B"
    assert entry.return_type is None
    assert entry.parameters is None
    assert len(index) == 2


def test_build_folds_const_qualifier_and_pointer_into_return_type(
    build_index: Callable[..., glgen.RegistryIndex],
) -> None:
    index = build_index(
        "GLAPI const GLubyte *APIENTRY glGetString (GLenum name);\n"
        "GLAPI void *APIENTRY glMapBuffer (GLenum target, GLenum access);\n"
    )

    get_string = _lookup(index, "glGetString")
    map_buffer = _lookup(index, "glMapBuffer")

    assert get_string.return_type is not None
    assert get_string.return_type.text == "const GLubyte *"
    assert map_buffer.return_type is not None
    assert map_buffer.return_type.text == "void *"
    assert map_buffer.parameters is not None
    assert map_buffer.parameters.text == "(GLenum target, GLenum access);"


def test_build_spans_are_substrings_of_declaration_line(fixtures_dir: Path) -> None:
    registry = glgen.read_registry([fixtures_dir / "glcorearb_minimal.h"])
    index = glgen.RegistryIndex.build(registry)

    for name in ("glClear", "glGetIntegerv", "glGetString", "glMapBufferRange"):
        entry = _lookup(index, name)
        assert entry.return_type is not None and entry.parameters is not None
        assert entry.return_type.text in entry.line.text
        assert entry.parameters.text in entry.line.text
        assert entry.line.text.endswith(entry.parameters.text)


def test_build_skips_export_marker_outside_prototype(
    build_index: Callable[..., glgen.RegistryIndex],
) -> None:
    index = build_index("#ifndef GLAPI\n#define GLAPI extern\n#endif\n")

    assert index.lookup(glgen.string_hash("extern")) is None
    assert _lookup(index, "GLAPI").line.text == "#define GLAPI extern"
    assert len(index) == 1


def test_build_ignores_typedef_lines(
    build_index: Callable[..., glgen.RegistryIndex],
) -> None:
    index = build_index("typedef void (APIENTRYP PFNGLCLEARPROC) (GLbitfield mask);\n")

    assert len(index) == 0


def test_build_first_duplicate_wins(
    build_index: Callable[..., glgen.RegistryIndex],
) -> None:
    index = build_index(
        "#define GL_TRIANGLES 0x0004\n"
        "#define GL_TRIANGLES 0x9999\n"
    )

    assert _lookup(index, "GL_TRIANGLES").line.text == "#define GL_TRIANGLES 0x0004"
    assert index.duplicates == 1
    assert index.collisions == []
    assert len(index) == 1


def test_build_reports_hash_collision_and_keeps_first(
    build_index: Callable[..., glgen.RegistryIndex],
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    real_hash = glgen.string_hash
    colliding = {"GL_ALPHA_FAKE", "GL_BETA_FAKE"}
    monkeypatch.setattr(
        glgen,
        "string_hash",
        lambda text: 0xBEEF if text in colliding else real_hash(text),
    )

    index = build_index("#define GL_ALPHA_FAKE 1\n#define GL_BETA_FAKE 2\n")

    assert index.collisions == [("GL_ALPHA_FAKE", "GL_BETA_FAKE")]
    assert index.lookup(0xBEEF).line.text == "#define GL_ALPHA_FAKE 1"
    assert "Hash collision" in capsys.readouterr().err


def test_build_raises_when_table_overflows(
    build_index: Callable[..., glgen.RegistryIndex],
) -> None:
    with pytest.raises(glgen.HashTableFullError):
        build_index("#define GL_A 1\n#define GL_B 2\n#define GL_C 3\n", capacity=2)


def test_lookup_unknown_and_sentinel_hash_return_none(
    build_index: Callable[..., glgen.RegistryIndex],
) -> None:
    index = build_index(GL_CLEAR_REGISTRY)

    assert index.lookup(glgen.string_hash("glFooBar")) is None
    assert index.lookup(glgen.EMPTY_HASH) is None


def test_lookup_is_hash_only(
    build_index: Callable[..., glgen.RegistryIndex],
) -> None:
    index = build_index(GL_CLEAR_REGISTRY)
    entry = _lookup(index, "glClear")

    assert index.lookup(entry.hash) is entry


# ===--- Registry files ---=== #


def test_read_registry_first_file_wins_for_duplicate_macro(
    fixtures_dir: Path,
) -> None:
    registry = glgen.read_registry(
        [fixtures_dir / "glcorearb_minimal.h", fixtures_dir / "glext_minimal.h"]
    )
    index = glgen.RegistryIndex.build(registry)

    assert _lookup(index, "GL_TRIANGLES").line.text.endswith("0x0004")
    assert _lookup(index, "GL_TEXTURE_MAX_ANISOTROPY_EXT")
    clear = _lookup(index, "glClear")
    assert clear.parameters is not None
    assert clear.parameters.text == "(GLbitfield mask);"


def test_read_registry_order_decides_winner(fixtures_dir: Path) -> None:
    registry = glgen.read_registry(
        [fixtures_dir / "glext_minimal.h", fixtures_dir / "glcorearb_minimal.h"]
    )
    index = glgen.RegistryIndex.build(registry)

    assert _lookup(index, "GL_TRIANGLES").line.text.endswith("0x9999")


def test_read_registry_missing_file_is_fatal(tmp_path: Path, fixtures_dir: Path) -> None:
    with pytest.raises(glgen.UnreadableFileError) as exc_info:
        glgen.read_registry([fixtures_dir / "glcorearb_minimal.h", tmp_path / "nope.h"])

    assert exc_info.value.path == tmp_path / "nope.h"


def test_read_registry_empty_file_is_fatal(
    write_file: Callable[[str, str], Path],
) -> None:
    empty = write_file("empty.h", "")

    with pytest.raises(glgen.EmptyFileError):
        glgen.read_registry([empty])
