"""JSON-lines bridge to compiler and bundler engines running as child processes.

Each side writes one JSON object per line. The host sends requests
``{"id", "method", "params"}``. While a request is open the engine may call
back into the host with ``{"callback", "id", "request", "params"}``. The host
answers those with ``{"id", "result"}`` or ``{"id", "error"}``. A request
finishes with ``{"id", "ok": true, "result"}`` or
``{"id", "ok": false, "error": {"code", "message"}}``.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from buildtool.annotate import SourceMap
from buildtool.bundler.engine import (
    BundlerPlugin,
    BundleRequest,
    BundleWarning,
    GeneratedArtifact,
    LoadedModule,
    OutputOptions,
)
from buildtool.bundler.plugins import EnginePlugin, PluginChain
from buildtool.compiler.engine import (
    CATEGORY_ERROR,
    CompileRequest,
    CompileResult,
    Diagnostic,
    DiagnosticCollector,
    DiagnosticSink,
)

STREAM_LIMIT_BYTES = 64 * 1024 * 1024

CallbackHandler = Callable[[dict[str, object]], object]


@dataclass(slots=True, frozen=True)
class EngineError(Exception):
    """Represents a failed engine request or a broken engine process."""

    code: str
    message: str

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class JsonLineClient:
    """Multiplexed request/callback channel over a child's stdin and stdout."""

    def __init__(self, command: Sequence[str]) -> None:
        if not command:
            raise ValueError("Engine command must not be empty.")
        self._command = tuple(command)
        self._process: asyncio.subprocess.Process | None = None
        self._reader: asyncio.Task[None] | None = None
        self._start_lock: asyncio.Lock | None = None
        self._pending: dict[str, asyncio.Future[object]] = {}
        self._handlers: dict[str, Mapping[str, CallbackHandler]] = {}
        self._request_counter = 0

    async def start(self) -> None:
        """Spawn the engine once; concurrent callers share the same process."""
        if self._start_lock is None:
            self._start_lock = asyncio.Lock()
        async with self._start_lock:
            if self._process is not None:
                return
            process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT_BYTES,
            )
            self._process = process
            self._reader = asyncio.get_running_loop().create_task(self._read_loop(process))

    def next_request_id(self) -> str:
        self._request_counter += 1
        return f"req-{self._request_counter:06d}"

    async def request(
        self,
        method: str,
        params: dict[str, object],
        callbacks: Mapping[str, CallbackHandler] | None = None,
        request_id: str | None = None,
    ) -> object:
        """Send one request and wait for its final response."""
        await self.start()
        request_id = request_id or self.next_request_id()
        future: asyncio.Future[object] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        self._handlers[request_id] = callbacks or {}
        try:
            await self._send({"id": request_id, "method": method, "params": params})
            return await future
        finally:
            self._pending.pop(request_id, None)
            self._handlers.pop(request_id, None)

    async def aclose(self) -> None:
        """Stop the engine process and fail any request still waiting."""
        if self._reader is not None:
            self._reader.cancel()
            self._reader = None
        process = self._process
        self._process = None
        self._start_lock = None
        if process is not None and process.returncode is None:
            if process.stdin is not None:
                process.stdin.close()
            try:
                await asyncio.wait_for(process.wait(), timeout=2)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        self._fail_pending(EngineError(code="ENGINE_CLOSED", message="Engine process was closed."))

    async def _send(self, payload: dict[str, object]) -> None:
        if self._process is None or self._process.stdin is None:
            raise EngineError(code="ENGINE_NOT_RUNNING", message="Engine process is not running.")
        self._process.stdin.write(json.dumps(payload, sort_keys=True).encode("utf-8") + b"\n")
        await self._process.stdin.drain()

    def _fail_pending(self, error: EngineError) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)

    async def _read_loop(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        stdout = process.stdout
        while True:
            raw_line = await stdout.readline()
            if not raw_line:
                self._fail_pending(
                    EngineError(code="ENGINE_EXITED", message="Engine process exited unexpectedly.")
                )
                return
            line = raw_line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                self._fail_pending(
                    EngineError(code="INVALID_JSON", message="Engine sent a line that is not JSON.")
                )
                return
            if not isinstance(message, dict):
                continue
            if "callback" in message:
                try:
                    await self._answer_callback(message)
                except ConnectionError:
                    closed = EngineError(code="ENGINE_EXITED", message="Engine stdin closed.")
                    self._fail_pending(closed)
                    return
            else:
                self._complete(message)

    def _complete(self, message: dict[str, object]) -> None:
        future = self._pending.get(str(message.get("id")))
        if future is None or future.done():
            return
        if message.get("ok") is True:
            future.set_result(message.get("result"))
            return
        error = message.get("error")
        code = "ENGINE_ERROR"
        text = "Engine request failed."
        if isinstance(error, dict):
            code = str(error.get("code", code))
            text = str(error.get("message", text))
        future.set_exception(EngineError(code=code, message=text))

    async def _answer_callback(self, message: dict[str, object]) -> None:
        callback_id = message.get("id")
        name = message.get("callback")
        params = message.get("params", {})
        handlers = self._handlers.get(str(message.get("request")), {})
        handler = handlers.get(name) if isinstance(name, str) else None
        if handler is None or not isinstance(params, dict):
            await self._send(
                {
                    "id": callback_id,
                    "error": {"code": "UNKNOWN_CALLBACK", "message": f"Unknown callback: {name}"},
                }
            )
            return
        try:
            result = handler(params)
        except Exception as error:
            await self._send(
                {"id": callback_id, "error": {"code": "CALLBACK_FAILED", "message": str(error)}}
            )
            return
        await self._send({"id": callback_id, "result": result})


def _optional_int(value: object) -> int | None:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def diagnostic_from_payload(payload: Mapping[str, object]) -> Diagnostic:
    """Decode a diagnostic object sent by the engine."""
    category = payload.get("category")
    file = payload.get("file")
    return Diagnostic(
        message=str(payload.get("message", "")),
        category=category if isinstance(category, str) else CATEGORY_ERROR,
        file=file if isinstance(file, str) else None,
        line=_optional_int(payload.get("line")),
        column=_optional_int(payload.get("column")),
        code=_optional_int(payload.get("code")),
    )


def _compile_callbacks(request: CompileRequest, sink: DiagnosticSink) -> dict[str, CallbackHandler]:
    def read_file(params: dict[str, object]) -> object:
        return request.read_file(str(params.get("path", "")))

    def write_file(params: dict[str, object]) -> object:
        request.write_file(str(params.get("path", "")), str(params.get("text", "")))
        return None

    def diagnostic(params: dict[str, object]) -> object:
        sink(diagnostic_from_payload(params))
        return None

    return {"read_file": read_file, "write_file": write_file, "diagnostic": diagnostic}


def _compile_params(request: CompileRequest) -> dict[str, object]:
    return {
        "root_names": list(request.root_names),
        "tsconfig": request.to_tsconfig(),
    }


class SubprocessCompilerEngine:
    """Compiler engine hosted in a child process, one process per run."""

    def __init__(self, command: Sequence[str]) -> None:
        self._command = tuple(command)

    async def compile(self, request: CompileRequest) -> CompileResult:
        collector = DiagnosticCollector()
        client = JsonLineClient(self._command)
        try:
            result = await client.request(
                "compile", _compile_params(request), _compile_callbacks(request, collector)
            )
        finally:
            await client.aclose()
        emit_skipped = False
        if isinstance(result, dict):
            emit_skipped = result.get("emit_skipped") is True
            for item in result.get("diagnostics", []) or []:
                if isinstance(item, dict):
                    collector(diagnostic_from_payload(item))
        return CompileResult(diagnostics=tuple(collector.diagnostics), emit_skipped=emit_skipped)

    async def watch(self, request: CompileRequest, sink: DiagnosticSink) -> None:
        client = JsonLineClient(self._command)
        try:
            await client.request(
                "watch", _compile_params(request), _compile_callbacks(request, sink)
            )
        finally:
            await client.aclose()


def _plugin_descriptors(plugins: Sequence[BundlerPlugin]) -> list[dict[str, object]]:
    descriptors: list[dict[str, object]] = []
    for index, plugin in enumerate(plugins):
        if isinstance(plugin, EnginePlugin):
            descriptors.append({"kind": "engine", "name": plugin.name, "options": plugin.options})
        else:
            descriptors.append({"kind": "host", "name": plugin.name, "index": index})
    return descriptors


def _loaded_payload(loaded: LoadedModule | None) -> object:
    if loaded is None:
        return None
    return {"code": loaded.code, "map": loaded.map}


def _bundle_callbacks(request: BundleRequest) -> dict[str, CallbackHandler]:
    host_plugins = [plugin for plugin in request.plugins if not isinstance(plugin, EnginePlugin)]
    chain = PluginChain(host_plugins)

    def _target(params: dict[str, object]) -> BundlerPlugin:
        index = params.get("plugin")
        if isinstance(index, int) and 0 <= index < len(request.plugins):
            return request.plugins[index]
        return chain

    def resolve(params: dict[str, object]) -> object:
        importer = params.get("importer")
        return _target(params).resolve(
            str(params.get("specifier", "")), importer if isinstance(importer, str) else None
        )

    def load(params: dict[str, object]) -> object:
        return _loaded_payload(_target(params).load(str(params.get("path", ""))))

    def external(params: dict[str, object]) -> object:
        return request.external(str(params.get("specifier", "")))

    def warning(params: dict[str, object]) -> object:
        request.on_warning(
            BundleWarning(code=str(params.get("code", "")), message=str(params.get("message", "")))
        )
        return None

    return {"resolve": resolve, "load": load, "external": external, "warning": warning}


def _artifact_from_payload(payload: Mapping[str, object]) -> GeneratedArtifact:
    raw_map = payload.get("map")
    source_map: SourceMap | None = None
    if isinstance(raw_map, str):
        source_map = SourceMap.from_string(raw_map)
    elif isinstance(raw_map, dict):
        source_map = SourceMap.from_string(json.dumps(raw_map))
    return GeneratedArtifact(
        file_name=str(payload.get("file_name", "")),
        code=str(payload.get("code", "")),
        map=source_map,
    )


class _BridgedBuild:
    """Handle to a module graph kept alive inside the engine process."""

    def __init__(
        self,
        client: JsonLineClient,
        build_id: str,
        callbacks: Mapping[str, CallbackHandler],
    ) -> None:
        self._client = client
        self._build_id = build_id
        self._callbacks = callbacks

    async def generate(self, options: OutputOptions) -> list[GeneratedArtifact]:
        result = await self._client.request(
            "generate",
            {
                "build": self._build_id,
                "format": options.format,
                "file": options.file,
                "source_map": options.source_map,
                "external_live_bindings": options.external_live_bindings,
            },
            self._callbacks,
        )
        output = result.get("output", []) if isinstance(result, dict) else []
        return [_artifact_from_payload(item) for item in output if isinstance(item, dict)]


class SubprocessBundlerEngine:
    """Bundler engine hosted in one long-lived child process.

    Concurrent bundles share the process; responses are matched by id.
    """

    def __init__(self, command: Sequence[str]) -> None:
        self._client = JsonLineClient(command)

    async def bundle(self, request: BundleRequest) -> _BridgedBuild:
        callbacks = _bundle_callbacks(request)
        result = await self._client.request(
            "bundle",
            {"input": request.input, "plugins": _plugin_descriptors(request.plugins)},
            callbacks,
        )
        if not isinstance(result, dict) or not isinstance(result.get("build"), str):
            raise EngineError(code="INVALID_RESPONSE", message="bundle response lacks a build id.")
        return _BridgedBuild(self._client, result["build"], callbacks)

    def declaration_plugin(self) -> BundlerPlugin:
        return EnginePlugin(name="dts")

    def grammar_plugin(self) -> BundlerPlugin | None:
        return EnginePlugin(name="lezer")

    async def aclose(self) -> None:
        await self._client.aclose()
