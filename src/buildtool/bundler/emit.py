"""Write generated artifacts to disk without blocking the event loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path

from buildtool.bundler.engine import BundleBuild, GeneratedArtifact, OutputOptions

SOURCE_MAP_COMMENT = "//# sourceMappingURL="

ArtifactTransform = Callable[[str, str | None], tuple[str, str | None]]


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


async def write_text(path: Path, text: str) -> None:
    await asyncio.to_thread(_write_text, path, text)


def _map_text(artifact: GeneratedArtifact) -> str | None:
    if artifact.map is None:
        return None
    return artifact.map.to_string()


async def emit(
    build: BundleBuild,
    options: OutputOptions,
    transform: ArtifactTransform | None = None,
) -> list[Path]:
    """Generate one format and write every artifact next to ``options.file``.

    With source maps enabled, each artifact carrying a map gets a sibling
    ``.map`` file and a trailing reference comment.
    """
    artifacts: Sequence[GeneratedArtifact] = await build.generate(options)
    directory = Path(options.file).parent
    written: list[Path] = []
    for artifact in artifacts:
        code = artifact.code
        map_text = _map_text(artifact) if options.source_map else None
        if transform is not None:
            code, map_text = transform(code, map_text)
        target = directory / artifact.file_name
        if map_text is not None:
            map_name = f"{artifact.file_name}.map"
            await write_text(directory / map_name, map_text)
            written.append(directory / map_name)
            code = f"{code.rstrip()}\n{SOURCE_MAP_COMMENT}{Path(map_name).name}\n"
        await write_text(target, code)
        written.append(target)
    return written
