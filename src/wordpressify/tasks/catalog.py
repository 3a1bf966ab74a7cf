"""
Named tasks and watch bindings of the theme workflow.

Environment tasks are fatal; asset tasks are stream tasks whose per-file
failures are reported without stopping the rest of the build.
"""

from __future__ import annotations

from pathlib import Path
from typing import List

from wordpressify.cli import messages
from wordpressify.core.context import WorkflowContext
from wordpressify.environment.controller import ExternalEnvironmentController
from wordpressify.runtime.dispatcher import WatchBinding
from wordpressify.runtime.reload import ReloadMode
from wordpressify.tasks.archive import backup_name, zip_tree
from wordpressify.tasks.pipelines import (
    AssetPipeline,
    clean_directory,
    inline_css_imports,
    minify_css,
    strip_blank_lines,
)
from wordpressify.tasks.registry import Registry
from wordpressify.tasks.scheduler import Node, Task, parallel, series, stream_task
from wordpressify.utils.diagnostics import MissingPrerequisiteError

HEADER_JS = ["node_modules/jquery/dist/jquery.js"]

DEV_BUILD = "dev:build"


def _pipeline_task(pipeline: AssetPipeline) -> Task:
    return stream_task(pipeline.name, pipeline.run)


def restart_task(controller: ExternalEnvironmentController, service: str) -> Task:
    return Task(f"restart-{service}", lambda: controller.restart(service))


class WorkflowCatalog:
    """Builds every named task for one project and registers the public ones."""

    def __init__(self, context: WorkflowContext, controller: ExternalEnvironmentController) -> None:
        self.context = context
        self.controller = controller
        self.registry: Registry[Node] = Registry()
        self._build()

    def _build(self) -> None:
        ctx = self.context
        root = ctx.root_dir
        src = ctx.paths.src
        style_entry = [f"{src}/assets/css/style.css"]
        footer_js = [f"{src}/assets/js/**"]
        controller = self.controller

        setup_environment = Task("setup-environment", controller.provision)
        start_containers = Task("start-containers", controller.start)
        build_containers = Task("build-containers", controller.build)
        rebuild_containers = Task("rebuild-containers", controller.rebuild)
        clean_environment = Task("clean-environment", controller.teardown_and_clean)
        stop_containers = Task("env:stop", controller.stop)

        self.registry.register_all([
            series("env:start", setup_environment, start_containers),
            series("env:build", setup_environment, build_containers),
            series("env:rebuild", clean_environment, setup_environment, rebuild_containers),
            restart_task(controller, ctx.environment.service),
            stop_containers,
        ])
        self.registry.register_alias("env:restart", f"restart-{ctx.environment.service}")

        theme_dir = ctx.theme_build_dir
        require_build = Task("require-build", self._require_build)

        self.copy_welcome_index = _pipeline_task(AssetPipeline(
            "copy-welcome-index", root, ["config/nginx/welcome.html"], ctx.wordpress_dir,
        ))
        self.copy_theme_dev = series(
            "copy-theme-dev",
            require_build,
            _pipeline_task(AssetPipeline("copy-theme-files", root, [f"{src}/theme/**"], theme_dir)),
        )
        self.copy_images_dev = _pipeline_task(AssetPipeline(
            "copy-images-dev", root, [f"{src}/assets/img/**"], theme_dir / "img",
        ))
        self.copy_fonts_dev = _pipeline_task(AssetPipeline(
            "copy-fonts-dev", root, [f"{src}/assets/fonts/**"], theme_dir / "fonts",
        ))
        self.styles_dev = _pipeline_task(AssetPipeline(
            "styles-dev", root, style_entry, theme_dir, transforms=[inline_css_imports],
        ))
        self.header_scripts_dev = _pipeline_task(AssetPipeline(
            "header-scripts-dev", root, HEADER_JS, theme_dir / "js", concat="header-bundle.js",
        ))
        self.footer_scripts_dev = _pipeline_task(AssetPipeline(
            "footer-scripts-dev", root, footer_js, theme_dir / "js", concat="footer-bundle.js",
        ))
        self.plugins_dev = _pipeline_task(AssetPipeline(
            "plugins-dev", root, [f"{src}/plugins/**", f"!{src}/plugins/README.md"], ctx.plugins_build_dir,
        ))

        # The theme copy must land before the other assets write into the theme dir.
        self.registry.register(series(
            DEV_BUILD,
            self.copy_welcome_index,
            self.copy_theme_dev,
            parallel(
                "dev:assets",
                self.copy_images_dev,
                self.copy_fonts_dev,
                self.styles_dev,
                self.header_scripts_dev,
                self.footer_scripts_dev,
                self.plugins_dev,
            ),
        ))

        dist_theme = ctx.theme_dist_dir
        self.registry.register(series(
            "prod",
            Task("clean-prod", lambda: clean_directory(ctx.dist_dir)),
            _pipeline_task(AssetPipeline(
                "copy-theme-prod", root, [f"{src}/theme/**", f"!{src}/theme/**/node_modules/**"], dist_theme,
            )),
            _pipeline_task(AssetPipeline(
                "copy-fonts-prod", root, [f"{src}/assets/fonts/**"], dist_theme / "fonts",
            )),
            _pipeline_task(AssetPipeline(
                "styles-prod", root, style_entry, dist_theme, transforms=[inline_css_imports, minify_css],
            )),
            _pipeline_task(AssetPipeline(
                "header-scripts-prod", root, HEADER_JS, dist_theme / "js",
                concat="header-bundle.js", bundle_transforms=[strip_blank_lines],
            )),
            _pipeline_task(AssetPipeline(
                "footer-scripts-prod", root, footer_js, dist_theme / "js",
                concat="footer-bundle.js", bundle_transforms=[strip_blank_lines],
            )),
            _pipeline_task(AssetPipeline(
                "plugins-prod", root, [f"{src}/plugins/**", f"!{src}/plugins/**/*.md"], ctx.dist_dir / "plugins",
            )),
            _pipeline_task(AssetPipeline(
                "process-images", root, [f"{src}/assets/img/**"], dist_theme / "img",
            )),
            Task("zip-prod", lambda: zip_tree(dist_theme, ctx.archive_path)),
        ))

        self.registry.register(Task("backup", self.backup))

    def _require_build(self) -> None:
        if not self.context.build_dir.exists():
            raise MissingPrerequisiteError(messages.BUILD_NOT_FOUND)

    def backup(self) -> Path:
        self._require_build()
        return zip_tree(self.context.build_dir, self.backup_path())

    def backup_path(self) -> Path:
        return self.context.backups_dir / backup_name()

    def watch_bindings(self) -> List[WatchBinding]:
        """Bindings relative to the source directory."""
        return [
            WatchBinding("assets/css/**/*.css", self.styles_dev, ReloadMode.SCOPED, reload_match="**/*.css"),
            WatchBinding("assets/js/**", self.footer_scripts_dev, ReloadMode.FULL),
            WatchBinding("assets/img/**", self.copy_images_dev, ReloadMode.FULL),
            WatchBinding("assets/fonts/**", self.copy_fonts_dev, ReloadMode.FULL),
            WatchBinding("theme/**", series("theme-dev", self.copy_theme_dev, self.styles_dev), ReloadMode.FULL),
            WatchBinding("plugins/**", self.plugins_dev, ReloadMode.FULL),
        ]
