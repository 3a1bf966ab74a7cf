from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from wordpressify.utils.diagnostics import PipelineDiagnostic, PipelineError
from wordpressify.utils.globs import glob_base, matches_any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetFile:
    """One file flowing through a pipeline."""

    source: Path
    relative: str
    contents: bytes


Transform = Callable[[AssetFile], AssetFile]


def _expand(root: Path, pattern: str) -> List[Path]:
    pattern = pattern[2:] if pattern.startswith("./") else pattern
    if pattern.endswith("**"):
        pattern = pattern + "/*"
    return sorted(path for path in root.glob(pattern) if path.is_file())


@dataclass
class AssetPipeline:
    """
    Reads files matching `sources` (globs relative to `root`, `!` prefix excludes),
    applies `transforms` per file, optionally concatenates them into `concat`,
    applies `bundle_transforms` and writes the result under `dest`.

    A file that fails is reported and skipped; the rest are still written.
    """

    name: str
    root: Path
    sources: Sequence[str]
    dest: Path
    transforms: Sequence[Transform] = field(default_factory=tuple)
    concat: Optional[str] = None
    bundle_transforms: Sequence[Transform] = field(default_factory=tuple)

    def collect(self) -> List[AssetFile]:
        includes = [pattern for pattern in self.sources if not pattern.startswith("!")]
        excludes = [pattern[1:] for pattern in self.sources if pattern.startswith("!")]

        files: List[AssetFile] = []
        seen = set()
        for pattern in includes:
            base = self.root / glob_base(pattern)
            for path in _expand(self.root, pattern):
                rel_to_root = path.relative_to(self.root).as_posix()
                if rel_to_root in seen or matches_any(rel_to_root, excludes):
                    continue
                seen.add(rel_to_root)
                files.append(
                    AssetFile(source=path, relative=path.relative_to(base).as_posix(), contents=b"")
                )
        return files

    def run(self) -> List[PipelineDiagnostic]:
        diagnostics: List[PipelineDiagnostic] = []
        processed: List[AssetFile] = []

        for item in self.collect():
            try:
                asset = replace(item, contents=item.source.read_bytes())
                for transform in self.transforms:
                    asset = transform(asset)
            except (OSError, PipelineError, ValueError) as exc:
                diagnostics.append(self._diagnostic(exc, item.source))
                continue

            if self.concat is None:
                if self._write(asset, diagnostics):
                    processed.append(asset)
            else:
                processed.append(asset)

        if self.concat is not None and processed:
            bundle = AssetFile(
                source=self.dest / self.concat,
                relative=self.concat,
                contents=b"\n".join(asset.contents for asset in processed),
            )
            try:
                for transform in self.bundle_transforms:
                    bundle = transform(bundle)
            except (PipelineError, ValueError) as exc:
                diagnostics.append(self._diagnostic(exc, bundle.source))
            else:
                self._write(bundle, diagnostics)

        logger.info("%s: %d file(s), %d error(s)", self.name, len(processed), len(diagnostics))
        return diagnostics

    def _write(self, asset: AssetFile, diagnostics: List[PipelineDiagnostic]) -> bool:
        target = self.dest / asset.relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(asset.contents)
        except OSError as exc:
            diagnostics.append(self._diagnostic(exc, target))
            return False
        return True

    def _diagnostic(self, exc: Exception, path: Path) -> PipelineDiagnostic:
        message = exc.message if isinstance(exc, PipelineError) else str(exc)
        return PipelineDiagnostic(task_name=self.name, message=message, file_path=str(path))


_CSS_IMPORT = re.compile(r"""@import\s+(?:url\()?\s*["']([^"']+)["']\s*\)?\s*;""")
_CSS_PUNCTUATION_SPACING = re.compile(r"\s*([{};:,>])\s*")


def inline_css_imports(asset: AssetFile) -> AssetFile:
    """Inline local `@import "partial.css";` statements, recursively."""

    def inline(text: str, directory: Path, stack: tuple) -> str:
        def replace_import(match: re.Match) -> str:
            target = match.group(1)
            if "://" in target:
                return match.group(0)
            candidate = (directory / target).resolve()
            if candidate.suffix != ".css":
                candidate = candidate.with_suffix(".css")
            if candidate in stack:
                raise PipelineError(f"Circular @import of {target}")
            if not candidate.exists():
                raise PipelineError(f"Cannot resolve @import '{target}'")
            nested = candidate.read_text(encoding="utf-8")
            return inline(nested, candidate.parent, stack + (candidate,))

        return _CSS_IMPORT.sub(replace_import, text)

    text = asset.contents.decode("utf-8")
    inlined = inline(text, asset.source.parent, (asset.source.resolve(),))
    return replace(asset, contents=inlined.encode("utf-8"))


def minify_css(asset: AssetFile) -> AssetFile:
    """Collapse whitespace around CSS punctuation. Comments are kept."""
    text = asset.contents.decode("utf-8")
    collapsed = _CSS_PUNCTUATION_SPACING.sub(r"\1", text)
    collapsed = re.sub(r"\s+", " ", collapsed).strip()
    return replace(asset, contents=(collapsed + "\n").encode("utf-8"))


def strip_blank_lines(asset: AssetFile) -> AssetFile:
    """Drop empty lines and trailing whitespace from a script bundle."""
    text = asset.contents.decode("utf-8")
    lines = [line.rstrip() for line in text.splitlines() if line.strip()]
    return replace(asset, contents=("\n".join(lines) + "\n").encode("utf-8"))


def clean_directory(path: Path) -> None:
    """Remove a build output directory if it exists."""
    if path.exists():
        shutil.rmtree(path)
