"""OpenGL header generator.

Scans C/C++ sources for the OpenGL functions and enums they actually use and
writes a small header with only those typedefs and #defines, taken verbatim
from the Khronos registry headers (glcorearb.h, glext.h, ...). Optionally
appends gl3w-style loader boilerplate.

Usage:
    python glgen.py src/*.c -gl glcorearb.h -o opengl.generated.h \
        -i glfwGetFramebufferSize,glfwSwapInterval
"""

import argparse
import os
import re
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    registry_files: tuple[Path, ...]
    inputs: tuple[Path, ...]
    output: Path
    prefix: str
    ignores: tuple[str, ...]
    boilerplate: bool
    silent: bool
    force: bool


VALID_ERROR_CODES = {
    "MISSING_REGISTRY",
    "MISSING_OUTPUT",
    "MISSING_INPUTS",
    "PATH_NOT_FOUND",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def split_comma_list(raw_values: Iterable[str] | None) -> tuple[str, ...]:
    """Flatten repeated comma-separated flag values, dropping empties and repeats."""
    if raw_values is None:
        return tuple()
    seen: set[str] = set()
    result: list[str] = []
    for raw in raw_values:
        for item in raw.split(","):
            item = item.strip()
            if not item or item in seen:
                continue
            seen.add(item)
            result.append(item)
    return tuple(result)


def parse_ignore_list(raw_values: Iterable[str] | None) -> tuple[str, ...]:
    return split_comma_list(raw_values)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate an OpenGL header containing only the symbols your code uses"
    )

    parser.add_argument("inputs", nargs="*", type=Path, default=[])
    parser.add_argument("--registry", "-gl", action="append", default=None)
    parser.add_argument("--output", "-o", type=Path, default=None)
    parser.add_argument("--prefix", "-p", type=str, default="")
    parser.add_argument("--ignore", "-i", action="append", default=None)
    parser.add_argument(
        "--no-boilerplate", "-no-b", action="store_true", default=False
    )
    parser.add_argument("--silent", "-silent", action="store_true", default=False)
    parser.add_argument("--force", "-force", action="store_true", default=False)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    # Input files may appear on either side of the options.
    return parser.parse_intermixed_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig:
    registry_names = split_comma_list(args.registry)
    if not registry_names:
        raise ConfigError(
            "MISSING_REGISTRY",
            "At least one registry header is required.",
            "Pass the Khronos headers: -gl glcorearb.h[,glext.h]",
        )

    if args.output is None:
        raise ConfigError(
            "MISSING_OUTPUT",
            "An output file is required.",
            "Pass the header to generate: -o opengl.generated.h",
        )

    if not args.inputs:
        raise ConfigError(
            "MISSING_INPUTS",
            "At least one input source file is required.",
            "List the C/C++ files to scan before or after the options.",
        )

    registry_files = tuple(Path(name) for name in registry_names)
    for path in registry_files:
        if not path.exists():
            raise ConfigError(
                "PATH_NOT_FOUND",
                f"Registry header does not exist: {path}",
                "Download glcorearb.h from https://registry.khronos.org/OpenGL/api/GL/",
            )

    return GenerateConfig(
        registry_files=registry_files,
        inputs=tuple(Path(p) for p in args.inputs),
        output=Path(args.output),
        prefix=args.prefix or "",
        ignores=parse_ignore_list(args.ignore),
        boilerplate=not args.no_boilerplate,
        silent=args.silent,
        force=args.force,
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig:
    args = parse_args(argv)
    return validate_config(args)


# ===--- Errors ---=== #


class GeneratorError(Exception):
    """Base class for failures raised while reading or indexing sources."""


class UnreadableFileError(GeneratorError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"Couldn't open file: {path} ({reason})")
        self.path = Path(path)
        self.reason = reason


class EmptyFileError(UnreadableFileError):
    def __init__(self, path: Path):
        super().__init__(path, "file is empty")


class HashTableFullError(GeneratorError):
    def __init__(self, capacity: int):
        super().__init__(f"Symbol table is full ({capacity} slots)")
        self.capacity = capacity


# ===--- Text buffers and spans ---=== #


@dataclass(frozen=True)
class TextBuffer:
    """Immutable source text. Every Span keeps a reference to its buffer."""

    name: str
    text: str = field(repr=False)

    def line_end(self, pos: int) -> int:
        match = _NEWLINE_RE.search(self.text, pos)
        return match.start() if match else len(self.text)

    def span(self, start: int, end: int) -> "Span":
        return Span(self, start, end)


@dataclass(frozen=True)
class Span:
    buffer: TextBuffer = field(repr=False, compare=False)
    start: int
    end: int

    @property
    def text(self) -> str:
        return self.buffer.text[self.start : self.end]

    @property
    def length(self) -> int:
        return self.end - self.start

    def strip(self) -> "Span":
        text = self.buffer.text
        start, end = self.start, self.end
        while start < end and text[start] in _BLANKS:
            start += 1
        while end > start and text[end - 1] in _BLANKS:
            end -= 1
        return Span(self.buffer, start, end)


def read_source(path: Path) -> TextBuffer:
    """Read a whole file into a TextBuffer.

    Raises:
        UnreadableFileError: The file is missing or cannot be read.
        EmptyFileError: The file exists but holds no bytes.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8", errors="surrogateescape")
    except OSError as err:
        raise UnreadableFileError(path, err.strerror or str(err)) from err
    if not text:
        raise EmptyFileError(path)
    return TextBuffer(str(path), text)


def concatenate_registry(texts: Iterable[str]) -> str:
    """Join registry texts with exactly two newlines at every file boundary.

    The trailing newline of the preceding file is replaced, so a file that ends
    with "\\n" is followed by one extra blank line and nothing else.
    """
    parts = list(texts)
    joined: list[str] = []
    for index, text in enumerate(parts):
        if index < len(parts) - 1:
            text = text[:-1] if text.endswith("\n") else text
            text += "\n\n"
        joined.append(text)
    return "".join(joined)


def read_registry(paths: Iterable[Path]) -> TextBuffer:
    """Read and concatenate registry headers in the given order.

    Any unreadable or empty registry file is fatal: the error propagates.
    """
    paths = [Path(p) for p in paths]
    texts = [read_source(path).text for path in paths]
    return TextBuffer(",".join(str(p) for p in paths), concatenate_registry(texts))


# ===--- Tokenizer ---=== #

FNV_PRIME = 0x01000193
HASH_MASK = 0xFFFFFFFF
EMPTY_HASH = 0

_IDENTIFIER_RUN_RE = re.compile(r"[A-Za-z0-9_#*]+")
_NEWLINE_RE = re.compile(r"[\r\n]")
_BLANKS = " \t\v\f"


def string_hash(text: str) -> int:
    """32-bit FNV-1a variant: seed 1, multiply then xor each byte."""
    result = 1
    for byte in text.encode("utf-8", errors="surrogateescape"):
        result = (result * FNV_PRIME) & HASH_MASK
        result ^= byte
    return result


@dataclass(frozen=True)
class Token:
    span: Span
    hash: int

    @property
    def text(self) -> str:
        return self.span.text

    @property
    def is_empty(self) -> bool:
        return self.span.length == 0


class Tokenizer:
    """Lazy lexer over one buffer yielding identifier-class runs.

    Everything outside [A-Za-z0-9_#*] separates tokens. Once the input is
    exhausted next_token keeps returning an empty token; reset() rewinds.
    """

    absorb_pointer = False

    def __init__(self, buffer: TextBuffer):
        self.buffer = buffer
        self.pos = 0

    def reset(self) -> None:
        self.pos = 0

    def next_token(self) -> Token:
        text = self.buffer.text
        match = _IDENTIFIER_RUN_RE.search(text, self.pos)
        if match is None:
            self.pos = len(text)
            return Token(Span(self.buffer, self.pos, self.pos), string_hash(""))
        start, end = match.span()
        if (
            self.absorb_pointer
            and end + 1 < len(text)
            and text[end] in _BLANKS
            and text[end + 1] == "*"
        ):
            end += 2
        self.pos = end
        span = Span(self.buffer, start, end)
        return Token(span, string_hash(span.text))

    def advance_to_end_of_line(self) -> None:
        self.pos = self.buffer.line_end(self.pos)

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            if token.is_empty:
                return
            yield token


class DeclarationTokenizer(Tokenizer):
    """Registry variant: `GLubyte *` is lexed as a single token."""

    absorb_pointer = True


# ===--- Open addressing table ---=== #

TABLE_CAPACITY = 8192


class HashSlots:
    """Fixed-capacity open addressing table keyed by 32-bit hash.

    Linear probing from `hash & (capacity - 1)`. Hash 0 marks an empty slot,
    so a key hashing to 0 is never stored.
    """

    def __init__(self, capacity: int = TABLE_CAPACITY):
        if capacity <= 0 or capacity & (capacity - 1):
            raise ValueError(f"capacity must be a power of two: {capacity}")
        self.capacity = capacity
        self._mask = capacity - 1
        self._hashes = [EMPTY_HASH] * capacity
        self._values: list[object] = [None] * capacity
        self._count = 0

    def _probe(self, hash_value: int) -> Iterator[int]:
        index = hash_value & self._mask
        for _ in range(self.capacity):
            yield index
            index = (index + 1) & self._mask

    def _find(self, hash_value: int) -> int | None:
        if hash_value == EMPTY_HASH:
            return None
        for index in self._probe(hash_value):
            slot_hash = self._hashes[index]
            if slot_hash == EMPTY_HASH:
                return None
            if slot_hash == hash_value:
                return index
        return None

    def get(self, hash_value: int) -> object | None:
        index = self._find(hash_value)
        return None if index is None else self._values[index]

    def __contains__(self, hash_value: object) -> bool:
        return isinstance(hash_value, int) and self._find(hash_value) is not None

    def insert(self, hash_value: int, value: object) -> bool:
        """Store value under hash_value; False if the hash is already present.

        Raises:
            HashTableFullError: No empty slot is left.
        """
        if hash_value == EMPTY_HASH:
            return False
        for index in self._probe(hash_value):
            slot_hash = self._hashes[index]
            if slot_hash == hash_value:
                return False
            if slot_hash == EMPTY_HASH:
                self._hashes[index] = hash_value
                self._values[index] = value
                self._count += 1
                return True
        raise HashTableFullError(self.capacity)

    def hashes(self) -> list[int]:
        return [h for h in self._hashes if h != EMPTY_HASH]

    def __len__(self) -> int:
        return self._count


# ===--- Registry index ---=== #

EXPORT_MARKER = "GLAPI"
DEFINE_MARKER = "#define"
CONST_QUALIFIER = "const"

ENTRY_FUNCTION = "function"
ENTRY_MACRO = "macro"


@dataclass(frozen=True)
class RegistryEntry:
    kind: str
    hash: int
    name: Span
    line: Span
    return_type: Span | None = None
    parameters: Span | None = None


class RegistryIndex:
    """Hash-keyed index of every GLAPI prototype and #define in the registry.

    Built once by `build`; the first declaration of a hash wins and later
    duplicates are dropped. Lookups compare hashes only.
    """

    def __init__(self, buffer: TextBuffer, capacity: int = TABLE_CAPACITY):
        self.buffer = buffer
        self._slots = HashSlots(capacity)
        self.duplicates = 0
        self.collisions: list[tuple[str, str]] = []

    @classmethod
    def build(
        cls, buffer: TextBuffer, capacity: int = TABLE_CAPACITY
    ) -> "RegistryIndex":
        index = cls(buffer, capacity)
        tokenizer = DeclarationTokenizer(buffer)
        while True:
            token = tokenizer.next_token()
            if token.is_empty:
                break
            if token.text == EXPORT_MARKER:
                index._parse_function(token, tokenizer)
            elif token.text == DEFINE_MARKER:
                index._parse_macro(token, tokenizer)
        return index

    def _parse_function(self, marker: Token, tokenizer: Tokenizer) -> None:
        line_end = self.buffer.line_end(marker.span.end)

        return_token = tokenizer.next_token()
        return_end = return_token.span.end
        if return_token.text == CONST_QUALIFIER:
            return_end = tokenizer.next_token().span.end
        tokenizer.next_token()  # calling convention, e.g. APIENTRY
        name_token = tokenizer.next_token()

        # `#ifndef GLAPI` and friends: not a prototype.
        if name_token.is_empty or name_token.span.end > line_end:
            tokenizer.pos = line_end
            return

        params_start = tokenizer.pos
        tokenizer.advance_to_end_of_line()
        entry = RegistryEntry(
            kind=ENTRY_FUNCTION,
            hash=name_token.hash,
            name=name_token.span,
            line=self.buffer.span(marker.span.start, tokenizer.pos),
            return_type=self.buffer.span(return_token.span.start, return_end),
            parameters=self.buffer.span(params_start, tokenizer.pos).strip(),
        )
        self._add(entry)

    def _parse_macro(self, marker: Token, tokenizer: Tokenizer) -> None:
        line_end = self.buffer.line_end(marker.span.end)
        name_token = tokenizer.next_token()
        if name_token.is_empty or name_token.span.end > line_end:
            tokenizer.pos = line_end
            return
        tokenizer.advance_to_end_of_line()
        entry = RegistryEntry(
            kind=ENTRY_MACRO,
            hash=name_token.hash,
            name=name_token.span,
            line=self.buffer.span(marker.span.start, tokenizer.pos),
        )
        self._add(entry)

    def _add(self, entry: RegistryEntry) -> None:
        existing = self.lookup(entry.hash)
        if existing is not None:
            self.duplicates += 1
            if existing.name.text != entry.name.text:
                self.collisions.append((existing.name.text, entry.name.text))
                print(
                    f"WARNING: Hash collision in registry: {entry.name.text} "
                    f"shadowed by {existing.name.text}",
                    file=sys.stderr,
                )
            return
        self._slots.insert(entry.hash, entry)

    def lookup(self, hash_value: int) -> RegistryEntry | None:
        entry = self._slots.get(hash_value)
        assert entry is None or isinstance(entry, RegistryEntry)
        return entry

    def __len__(self) -> int:
        return len(self._slots)


# ===--- Usage collection ---=== #

SEED_FUNCTIONS: tuple[str, ...] = ("glGetIntegerv",)
SEED_MACROS: tuple[str, ...] = ("GL_MAJOR_VERSION", "GL_MINOR_VERSION")


class DiscoveredSet:
    """Deduplicated symbols found in user sources, keyed by hash."""

    def __init__(self, seeds: Iterable[str] = (), capacity: int = TABLE_CAPACITY):
        self._slots = HashSlots(capacity)
        for name in seeds:
            self.add(string_hash(name), name)

    def add(self, hash_value: int, name: str) -> bool:
        return self._slots.insert(hash_value, name)

    def __contains__(self, hash_value: object) -> bool:
        return hash_value in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def name_of(self, hash_value: int) -> str | None:
        name = self._slots.get(hash_value)
        return name if isinstance(name, str) else None

    def sorted_hashes(self) -> list[int]:
        """Descending hash order; the emitted declaration order."""
        return sorted(self._slots.hashes(), reverse=True)


def seed_discovered_sets() -> tuple[DiscoveredSet, DiscoveredSet]:
    return DiscoveredSet(SEED_FUNCTIONS), DiscoveredSet(SEED_MACROS)


def is_function_candidate(text: str) -> bool:
    return len(text) > 2 and text.startswith("gl") and "A" <= text[2] <= "Z"


def is_macro_candidate(text: str) -> bool:
    return text.startswith("GL_")


@dataclass(frozen=True)
class ScanResult:
    path: Path
    functions_added: int
    macros_added: int
    ignored: int
    unresolved: tuple[str, ...]


@dataclass(frozen=True)
class UsageReport:
    scanned: tuple[Path, ...]
    skipped: tuple[Path, ...]
    unresolved: tuple[str, ...]
    ignored: int


def _resolve(token: Token, index: RegistryIndex) -> RegistryEntry | None:
    """Registry entry whose name is exactly the token text, else None."""
    entry = index.lookup(token.hash)
    if entry is not None and entry.name.text != token.text:
        print(
            f"WARNING: Hash collision: {token.text} matches registry symbol "
            f"{entry.name.text}",
            file=sys.stderr,
        )
        return None
    return entry


def scan_buffer(
    buffer: TextBuffer,
    index: RegistryIndex,
    ignores: Iterable[str],
    functions: DiscoveredSet,
    macros: DiscoveredSet,
) -> ScanResult:
    """Classify every token of buffer and record registry hits.

    Function candidates look like `glXxx`, macro candidates like `GL_XXX`.
    A name already in its discovered set is skipped before lookup. Ignored
    names are accepted without being recorded. Anything else, including a
    name that only shares its hash with a registry symbol, produces one
    warning on stderr per occurrence.
    """
    ignore_set = frozenset(ignores)
    added = {ENTRY_FUNCTION: 0, ENTRY_MACRO: 0}
    ignored = 0
    unresolved: list[str] = []

    for token in Tokenizer(buffer):
        text = token.text
        if is_function_candidate(text):
            kind, target = ENTRY_FUNCTION, functions
        elif is_macro_candidate(text):
            kind, target = ENTRY_MACRO, macros
        else:
            continue

        if target.name_of(token.hash) == text:
            continue
        entry = _resolve(token, index)
        if entry is not None:
            if target.add(token.hash, text):
                added[kind] += 1
        elif text in ignore_set:
            ignored += 1
        else:
            unresolved.append(text)
            print(f"WARNING: Token not found in header: {text}", file=sys.stderr)

    return ScanResult(
        path=Path(buffer.name),
        functions_added=added[ENTRY_FUNCTION],
        macros_added=added[ENTRY_MACRO],
        ignored=ignored,
        unresolved=tuple(unresolved),
    )


def scan_file(
    path: Path,
    index: RegistryIndex,
    ignores: Iterable[str],
    functions: DiscoveredSet,
    macros: DiscoveredSet,
) -> ScanResult:
    """Read one input file and scan it.

    Raises:
        UnreadableFileError: The file is missing, unreadable or empty.
    """
    return scan_buffer(read_source(path), index, ignores, functions, macros)


def collect_usage(
    paths: Iterable[Path],
    index: RegistryIndex,
    ignores: Iterable[str],
    functions: DiscoveredSet,
    macros: DiscoveredSet,
) -> UsageReport:
    ignores = tuple(ignores)
    scanned: list[Path] = []
    skipped: list[Path] = []
    unresolved: list[str] = []
    ignored = 0

    for path in paths:
        try:
            result = scan_file(path, index, ignores, functions, macros)
        except UnreadableFileError as err:
            print(f"WARNING: {err}", file=sys.stderr)
            skipped.append(Path(path))
            continue
        scanned.append(Path(path))
        unresolved.extend(result.unresolved)
        ignored += result.ignored

    return UsageReport(
        scanned=tuple(scanned),
        skipped=tuple(skipped),
        unresolved=tuple(unresolved),
        ignored=ignored,
    )


# ===--- Header emission ---=== #

HEADER_GUARD = "INCLUDE_OPENGL_GENERATED_H"
PROC_PREFIX = "GEN_"

BASE_TYPEDEFS: tuple[tuple[str, str], ...] = (
    ("void", "GLvoid"),
    ("unsigned int", "GLenum"),
    ("float", "GLfloat"),
    ("int", "GLint"),
    ("int", "GLsizei"),
    ("unsigned int", "GLbitfield"),
    ("double", "GLdouble"),
    ("unsigned int", "GLuint"),
    ("unsigned char", "GLboolean"),
    ("unsigned char", "GLubyte"),
    ("char", "GLchar"),
    ("short", "GLshort"),
    ("signed char", "GLbyte"),
    ("unsigned short", "GLushort"),
    ("ptrdiff_t", "GLsizeiptr"),
    ("ptrdiff_t", "GLintptr"),
    ("float", "GLclampf"),
    ("double", "GLclampd"),
    ("unsigned short", "GLhalf"),
)

DEBUG_PROC_TYPEDEF = (
    "typedef void (APIENTRY *GLDEBUGPROC)(GLenum source,GLenum type,GLuint id,"
    "GLenum severity,GLsizei length,const GLchar *message,const void *userParam);"
)


def proc_typedef_name(function_name: str) -> str:
    return f"PFN{function_name.upper()}PROC"


def generate_preamble(timestamp: int) -> list[str]:
    return [
        f"#ifndef {HEADER_GUARD}",
        f"#define {HEADER_GUARD}",
        "",
        "// NOTE: This file is generated automatically. Do not edit.",
        f"// @GENERATED: {timestamp}",
        "",
    ]


def generate_version_api(prefix: str) -> list[str]:
    return [
        f"typedef struct {prefix}OpenGLVersion",
        "{",
        "  int Major;",
        "  int Minor;",
        f"}} {prefix}OpenGLVersion;",
        "// Call this function to initialize OpenGL.",
        "// Example:",
        "//",
        f"//    {prefix}OpenGLVersion Version;",
        f"//    {prefix}OpenGLInit(&Version);",
        "//    if(Version.Major < 3)",
        "//    {",
        '//       printf("OpenGL 3 or above required.\\n");',
        "//       return 0;",
        "//    }",
        "//",
        f"static void {prefix}OpenGLInit({prefix}OpenGLVersion* Version);",
        "",
        "",
    ]


def generate_base_typedefs() -> list[str]:
    lines = [
        "#ifndef APIENTRY",
        "#define APIENTRY",
        "#endif",
        "#ifndef APIENTRYP",
        "#define APIENTRYP APIENTRY *",
        "#endif",
        "#ifndef GLAPI",
        "#define GLAPI extern",
        "#endif",
        "",
        "#include <stddef.h>",
        "",
    ]
    for c_type, gl_type in BASE_TYPEDEFS:
        lines.append(f"typedef {c_type} {gl_type};")
    lines.append("")
    return lines


def generate_macro_lines(index: RegistryIndex, macros: DiscoveredSet) -> list[str]:
    lines = []
    for hash_value in macros.sorted_hashes():
        entry = index.lookup(hash_value)
        if entry is None:
            continue
        lines.append(entry.line.text)
    return lines


def _function_entries(
    index: RegistryIndex, functions: DiscoveredSet
) -> list[RegistryEntry]:
    entries = []
    for hash_value in functions.sorted_hashes():
        entry = index.lookup(hash_value)
        if entry is None or entry.kind != ENTRY_FUNCTION:
            continue
        entries.append(entry)
    return entries


def generate_function_typedef(entry: RegistryEntry) -> str:
    assert entry.return_type is not None and entry.parameters is not None
    return (
        f"typedef {entry.return_type.text} "
        f"(APIENTRYP {proc_typedef_name(entry.name.text)}) {entry.parameters.text}"
    )


def generate_function_aliases(entries: list[RegistryEntry]) -> list[str]:
    return [f"#define {e.name.text} {PROC_PREFIX}{e.name.text}" for e in entries]


def generate_function_storage(entries: list[RegistryEntry]) -> list[str]:
    return [
        f"{proc_typedef_name(e.name.text)} {PROC_PREFIX}{e.name.text};"
        for e in entries
    ]


def generate_loader_templates(prefix: str) -> list[str]:
    """Per-platform library loading routines.

    Selected by the C preprocessor at build time: Win32 (opengl32.dll +
    wglGetProcAddress), Apple (OpenGL.framework bundle), everything else
    (libGL.so.1 + glXGetProcAddressARB).
    """
    proc = f"{prefix}OpenGLProc"
    handle = f"{prefix}OpenGLHandle"
    bundle = f"{PROC_PREFIX}Bundle"
    bundle_url = f"{PROC_PREFIX}BundleURL"
    lines = [f"typedef void (*{proc})(void);", ""]

    lines.append("#ifdef _WIN32")
    lines.append(f"static HMODULE {handle};")
    lines.append(f"static void {prefix}LoadOpenGL()")
    lines.append("{")
    lines.append(f'  {handle} = LoadLibraryA("opengl32.dll");')
    lines.append("}")
    lines.append(f"static void {prefix}UnloadOpenGL()")
    lines.append("{")
    lines.append(f"  FreeLibrary({handle});")
    lines.append("}")
    lines.append(f"static {proc} {prefix}OpenGLGetProc(const char *proc)")
    lines.append("{")
    lines.append(f"  {proc} Result = ({proc})wglGetProcAddress(proc);")
    lines.append("  if (!Result)")
    lines.append(f"    Result = ({proc})GetProcAddress({handle}, proc);")
    lines.append("  return Result;")
    lines.append("}")

    lines.append("#elif defined(__APPLE__) || defined(__APPLE_CC__)")
    lines.append("#include <Carbon/Carbon.h>")
    lines.append("")
    lines.append(f"static CFBundleRef {bundle};")
    lines.append(f"static CFURLRef {bundle_url};")
    lines.append("")
    lines.append(f"static void {prefix}LoadOpenGL()")
    lines.append("{")
    lines.append(f"  {bundle_url} = CFURLCreateWithFileSystemPath(kCFAllocatorDefault,")
    lines.append('    CFSTR("/System/Library/Frameworks/OpenGL.framework"),')
    lines.append("    kCFURLPOSIXPathStyle, 1);")
    lines.append(f"  {bundle} = CFBundleCreate(kCFAllocatorDefault, {bundle_url});")
    lines.append("}")
    lines.append(f"static void {prefix}UnloadOpenGL()")
    lines.append("{")
    lines.append(f"  CFRelease({bundle});")
    lines.append(f"  CFRelease({bundle_url});")
    lines.append("}")
    lines.append(f"static {proc} {prefix}OpenGLGetProc(const char *proc)")
    lines.append("{")
    lines.append(
        "  CFStringRef ProcName = CFStringCreateWithCString(kCFAllocatorDefault, proc,"
    )
    lines.append("    kCFStringEncodingASCII);")
    lines.append(
        f"  {proc} Result = ({proc}) CFBundleGetFunctionPointerForName({bundle}, ProcName);"
    )
    lines.append("  CFRelease(ProcName);")
    lines.append("  return Result;")
    lines.append("}")

    lines.append("#else")
    lines.append("#include <dlfcn.h>")
    lines.append("")
    lines.append(f"static void *{handle};")
    lines.append("typedef void (*__GLXextproc)(void);")
    lines.append(
        "typedef __GLXextproc (* PFNGLXGETPROCADDRESSPROC) (const GLubyte *procName);"
    )
    lines.append("static PFNGLXGETPROCADDRESSPROC glx_get_proc_address;")
    lines.append(f"static void {prefix}LoadOpenGL()")
    lines.append("{")
    lines.append(f'  {handle} = dlopen("libGL.so.1", RTLD_LAZY | RTLD_GLOBAL);')
    lines.append(
        "  glx_get_proc_address = (PFNGLXGETPROCADDRESSPROC) "
        f'dlsym({handle}, "glXGetProcAddressARB");'
    )
    lines.append("}")
    lines.append(f"static void {prefix}UnloadOpenGL()")
    lines.append("{")
    lines.append(f"  dlclose({handle});")
    lines.append("}")
    lines.append(f"static {proc} {prefix}OpenGLGetProc(const char *proc)")
    lines.append("{")
    lines.append(
        f"  {proc} Result = ({proc}) glx_get_proc_address((const GLubyte *) proc);"
    )
    lines.append("  if (!Result)")
    lines.append(f"    Result = ({proc}) dlsym({handle}, proc);")
    lines.append("  return Result;")
    lines.append("}")
    lines.append("#endif")
    lines.append("")
    return lines


def generate_init_function(prefix: str, entries: list[RegistryEntry]) -> list[str]:
    lines = [
        f"void {prefix}OpenGLInit({prefix}OpenGLVersion* Version)",
        "{",
        f"  {prefix}LoadOpenGL();",
        "",
    ]
    for entry in entries:
        name = entry.name.text
        lines.append(
            f"  {PROC_PREFIX}{name} = ({proc_typedef_name(name)})"
            f'{prefix}OpenGLGetProc("{name}");'
        )
    lines.extend(
        [
            "",
            f"  {prefix}UnloadOpenGL();",
            "",
            "  Version->Major = 0;",
            "  Version->Minor = 0;",
            "  if (glGetIntegerv)",
            "  {",
            "    glGetIntegerv(GL_MAJOR_VERSION, &Version->Major);",
            "    glGetIntegerv(GL_MINOR_VERSION, &Version->Minor);",
            "  }",
            "}",
            "",
        ]
    )
    return lines


def render_header(
    index: RegistryIndex,
    functions: DiscoveredSet,
    macros: DiscoveredSet,
    prefix: str = "",
    boilerplate: bool = True,
    timestamp: int = 0,
) -> str:
    """Render the complete generated header.

    Section order: guard and stamp, version API (boilerplate), base
    typedefs, macro lines, GLDEBUGPROC, function pointer typedefs, then
    aliases, storage, loader templates and init body (boilerplate), and the
    closing guard. Macros and functions are in descending hash order.
    Discovered symbols missing from the registry are skipped.

    Args:
        index: Built registry index.
        functions: Discovered functions (seeded with glGetIntegerv).
        macros: Discovered macros (seeded with GL_MAJOR/MINOR_VERSION).
        prefix: Prepended to the generated version struct and loader names.
        boilerplate: Emit the version struct, loader and init function.
        timestamp: Value written to the @GENERATED line.

    Returns:
        Header text ending in a single newline.
    """
    entries = _function_entries(index, functions)

    lines: list[str] = []
    lines.extend(generate_preamble(timestamp))
    if boilerplate:
        lines.extend(generate_version_api(prefix))
    lines.extend(generate_base_typedefs())
    lines.extend(generate_macro_lines(index, macros))
    lines.append("")
    lines.append("")
    lines.append(DEBUG_PROC_TYPEDEF)
    lines.extend(generate_function_typedef(entry) for entry in entries)

    if boilerplate:
        lines.append("")
        lines.append("")
        lines.extend(generate_function_aliases(entries))
        lines.append("")
        lines.append("")
        lines.extend(generate_function_storage(entries))
        lines.append("")
        lines.append("")
        lines.extend(generate_loader_templates(prefix))
        lines.append("")
        lines.append("")
        lines.extend(generate_init_function(prefix, entries))
    else:
        lines.append("")

    lines.append(f"#endif // {HEADER_GUARD}")
    lines.append("")
    return "\n".join(lines)


def emit(
    index: RegistryIndex,
    functions: DiscoveredSet,
    macros: DiscoveredSet,
    sink: TextIO,
    prefix: str = "",
    boilerplate: bool = True,
    timestamp: int = 0,
) -> None:
    sink.write(render_header(index, functions, macros, prefix, boilerplate, timestamp))


@dataclass(frozen=True)
class FileWriteResult:
    path: Path
    line_count: int
    byte_count: int


def write_header(path: Path, content: str) -> FileWriteResult:
    """Write the generated header, creating parent directories.

    Raises:
        OSError: Propagated directly if the filesystem write fails.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8", errors="surrogateescape")
    path.write_bytes(data)
    return FileWriteResult(
        path=path.resolve(),
        line_count=content.count("\n"),
        byte_count=len(data),
    )


# ===--- Staleness check ---=== #


def file_mtime(path: Path) -> int:
    try:
        return int(os.stat(path).st_mtime)
    except OSError:
        return 0


def latest_input_mtime(paths: Iterable[Path]) -> int:
    return max((file_mtime(p) for p in paths), default=0)


def needs_regeneration(config: GenerateConfig) -> bool:
    """True when forced or any input is newer than the existing output."""
    if config.force:
        return True
    return latest_input_mtime(config.inputs) > file_mtime(config.output)


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class GenerationSummary:
    """Counts reported after a successful run.

    Attributes:
        output: Path of the written header.
        functions: Discovered functions, seeds included.
        macros: Discovered macros, seeds included.
        registry_entries: Symbols indexed from the registry headers.
        unresolved: Unresolved symbol occurrences (one warning each).
        scanned_inputs: Input files read and scanned.
        skipped_inputs: Input files that could not be read.
    """

    output: str
    functions: int
    macros: int
    registry_entries: int
    unresolved: int
    scanned_inputs: int
    skipped_inputs: tuple[str, ...]


def build_generation_summary(
    output: FileWriteResult,
    index: RegistryIndex,
    functions: DiscoveredSet,
    macros: DiscoveredSet,
    report: UsageReport,
) -> GenerationSummary:
    return GenerationSummary(
        output=str(output.path),
        functions=len(functions),
        macros=len(macros),
        registry_entries=len(index),
        unresolved=len(report.unresolved),
        scanned_inputs=len(report.scanned),
        skipped_inputs=tuple(str(p) for p in report.skipped),
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    lines = [
        f"Completed! {summary.functions} functions - {summary.macros} defines - "
        f"{summary.registry_entries} registry entries",
        f"  Output:     {summary.output}",
        f"  Scanned:    {summary.scanned_inputs} input files",
    ]
    if summary.unresolved:
        lines.append(f"  Unresolved: {summary.unresolved} symbol occurrences")
    if summary.skipped_inputs:
        lines.append(f"  Skipped:    {', '.join(summary.skipped_inputs)}")
    lines.append("")
    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Main generation ---=== #


def run_generate(config: GenerateConfig) -> GenerationSummary:
    """Run the pipeline: read registry, index, scan inputs, render, write.

    The output file is only touched after the registry has been indexed and
    every input scanned.

    Raises:
        UnreadableFileError: A registry header is missing, unreadable or empty.
        HashTableFullError: The registry or a discovered set overflowed.
        OSError: The output could not be written.
    """
    registry = read_registry(config.registry_files)
    index = RegistryIndex.build(registry)

    functions, macros = seed_discovered_sets()
    report = collect_usage(config.inputs, index, config.ignores, functions, macros)

    content = render_header(
        index,
        functions,
        macros,
        prefix=config.prefix,
        boilerplate=config.boilerplate,
        timestamp=latest_input_mtime(config.inputs),
    )
    result = write_header(config.output, content)

    summary = build_generation_summary(result, index, functions, macros, report)
    if not config.silent:
        print_generation_summary(summary)
    return summary


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    if not needs_regeneration(config):
        if not config.silent:
            print(f"Up to date: {config.output}")
        return

    try:
        run_generate(config)
    except GeneratorError as err:
        print(f"Error: {err}", file=sys.stderr)
        raise SystemExit(1) from err
    except OSError as err:
        print(f"Error: {err}", file=sys.stderr)
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
