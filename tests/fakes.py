"""In-process stand-ins for the external compiler and bundler engines."""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Callable, Iterable
from pathlib import Path

from buildtool.annotate import SourceMap
from buildtool.bundler import (
    FORMAT_CJS,
    BundleRequest,
    BundleWarning,
    EnginePlugin,
    GeneratedArtifact,
    LoadedModule,
    OutputOptions,
    PluginChain,
)
from buildtool.compiler import CompileRequest, CompileResult, Diagnostic, DiagnosticSink
from buildtool.config import BuildConfig, CliOverrides, load_effective_config
from buildtool.paths import normalize_virtual_path, replace_suffix

IMPORT_RE = re.compile(r"^import .* from [\"']([^\"']+)[\"'];?\n", re.MULTILINE)
EXPORT_RE = re.compile(r"^export (function|const|class) ([\w$]+)", re.MULTILINE)


def write_unit(
    root: Path,
    name: str,
    source: str,
    tests: dict[str, str] | None = None,
    extra_files: dict[str, str] | None = None,
) -> Path:
    """Lay out a unit on disk and return its entry path."""
    (root / "src").mkdir(parents=True, exist_ok=True)
    (root / "package.json").write_text(json.dumps({"name": name}), encoding="utf-8")
    entry = root / "src" / "index.ts"
    entry.write_text(source, encoding="utf-8")
    for file_name, text in (extra_files or {}).items():
        (root / "src" / file_name).write_text(text, encoding="utf-8")
    if tests is not None:
        (root / "test").mkdir(exist_ok=True)
        for file_name, text in tests.items():
            (root / "test" / file_name).write_text(text, encoding="utf-8")
    return entry


def make_config(workspace: Path, **overrides: object) -> BuildConfig:
    return load_effective_config(workspace, CliOverrides(**overrides))  # type: ignore[arg-type]


def declarations_for(text: str) -> str:
    lines = [match.group(0) for match in IMPORT_RE.finditer(text)]
    lines.extend(
        f"export declare {match.group(1)} {match.group(2)};\n" for match in EXPORT_RE.finditer(text)
    )
    return "".join(lines)


class FakeCompilerEngine:
    """Copies sources through unchanged and derives trivial declarations."""

    def __init__(
        self,
        diagnostics: Iterable[Diagnostic] = (),
        emit_skipped: bool = False,
    ) -> None:
        self.diagnostics = tuple(diagnostics)
        self.emit_skipped = emit_skipped
        self.requests: list[CompileRequest] = []
        self.watch_request: CompileRequest | None = None
        self.emitted = asyncio.Event()

    def emit(self, request: CompileRequest, only: Iterable[str] | None = None) -> None:
        selected = None if only is None else {normalize_virtual_path(path) for path in only}
        for name in request.root_names:
            if selected is not None and name not in selected:
                continue
            text = request.read_file(name)
            if text is None:
                continue
            request.write_file(replace_suffix(name, ".ts", ".js"), text)
            request.write_file(replace_suffix(name, ".ts", ".d.ts"), declarations_for(text))

    async def compile(self, request: CompileRequest) -> CompileResult:
        self.requests.append(request)
        if not self.emit_skipped:
            self.emit(request)
        return CompileResult(diagnostics=self.diagnostics, emit_skipped=self.emit_skipped)

    async def watch(self, request: CompileRequest, sink: DiagnosticSink) -> None:
        self.watch_request = request
        for diagnostic in self.diagnostics:
            sink(diagnostic)
        self.emit(request)
        self.emitted.set()
        await asyncio.Event().wait()

    def rewrite(self, source: Path, text: str) -> None:
        """Change a source on disk and re-emit it like an incremental pass."""
        assert self.watch_request is not None
        source.write_text(text, encoding="utf-8")
        self.emit(self.watch_request, only=[normalize_virtual_path(source)])


class FakeBuild:
    def __init__(
        self,
        modules: list[tuple[str, LoadedModule]],
        externals: list[str],
        input_path: str,
    ) -> None:
        self.modules = modules
        self.externals = externals
        self.input_path = input_path

    async def generate(self, options: OutputOptions) -> list[GeneratedArtifact]:
        body = "".join(IMPORT_RE.sub("", module.code) for _, module in self.modules)
        if options.format == FORMAT_CJS:
            requires = "".join(
                f"var _{index} = require('{spec}');\n"
                for index, spec in enumerate(self.externals)
            )
            code = "'use strict';\n\n" + requires + body.replace("export ", "")
        else:
            imports = "".join(f"import '{spec}';\n" for spec in self.externals)
            code = imports + body
        source_map = None
        if options.source_map:
            source_map = SourceMap(mappings="AAAA", sources=[self.input_path])
        return [GeneratedArtifact(file_name=Path(options.file).name, code=code, map=source_map)]


class FakeBundlerEngine:
    """Walks ``import`` lines through the plugin chain and concatenates modules."""

    def __init__(
        self,
        fail_when: Callable[[str], bool] | None = None,
        grammar: bool = True,
    ) -> None:
        self.requests: list[BundleRequest] = []
        self.fail_when = fail_when
        self.grammar = grammar

    async def bundle(self, request: BundleRequest) -> FakeBuild:
        self.requests.append(request)
        if self.fail_when is not None and self.fail_when(request.input):
            raise RuntimeError(f"cannot bundle {request.input}")
        chain = PluginChain(request.plugins)
        modules: list[tuple[str, LoadedModule]] = []
        externals: list[str] = []
        seen: set[str] = set()

        def visit(path: str) -> None:
            if path in seen:
                return
            seen.add(path)
            loaded = chain.load(path)
            if loaded is None:
                raise RuntimeError(f"cannot load {path}")
            for specifier in IMPORT_RE.findall(loaded.code):
                if request.external(specifier):
                    if specifier not in externals:
                        externals.append(specifier)
                    continue
                resolved = chain.resolve(specifier, path)
                if resolved is None:
                    raise RuntimeError(f"cannot resolve {specifier} from {path}")
                visit(resolved)
            modules.append((path, loaded))

        visit(request.input)
        if len(modules) > 1 and request.input.endswith(".d.ts"):
            request.on_warning(BundleWarning(code="CIRCULAR_DEPENDENCY", message="ignored"))
        return FakeBuild(modules, externals, request.input)

    def declaration_plugin(self) -> EnginePlugin:
        return EnginePlugin(name="dts")

    def grammar_plugin(self) -> EnginePlugin | None:
        return EnginePlugin(name="lezer") if self.grammar else None

    def inputs(self) -> list[str]:
        return [request.input for request in self.requests]


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll until ``predicate`` holds, failing the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)
