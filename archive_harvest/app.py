"""Typer CLI entrypoint for archive-harvest."""

from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from .config import CONFIG_ENV_VAR, HarvestConfig, OutputMode, build_config
from .engine import FilterCompileError, PageCountError
from .logging_conf import configure_logging
from .orchestrator import HarvestSummary, Orchestrator, ResultWriteError
from .ui import ProgressReporter

app = typer.Typer(
    help="archive-harvest：从 Wayback Machine CDX 索引批量导出历史 URL",
    no_args_is_help=True,
    rich_markup_mode=None,
    add_completion=False,
)

console = Console(stderr=True)


def build_orchestrator(config: HarvestConfig, progress: ProgressReporter) -> Orchestrator:
    return Orchestrator(config, progress=progress)


def _resolve_mode(
    only_query: bool,
    only_query_keys: bool,
    no_query: bool,
    extract_paths: bool,
    subs: bool,
) -> OutputMode | None:
    flags = {
        OutputMode.ONLY_QUERY: only_query,
        OutputMode.ONLY_QUERY_KEYS: only_query_keys,
        OutputMode.NO_QUERY: no_query,
        OutputMode.EXTRACT_PATHS: extract_paths,
        OutputMode.SUBDOMAINS: subs,
    }
    chosen = [mode for mode, enabled in flags.items() if enabled]
    if len(chosen) > 1:
        names = ", ".join(f"--{mode.value}" if mode is not OutputMode.SUBDOMAINS else "--subs" for mode in chosen)
        raise typer.BadParameter(f"输出模式只能选择一个，当前同时指定了：{names}")
    return chosen[0] if chosen else None


def _run_with_interrupt(orchestrator: Orchestrator) -> HarvestSummary:
    """Run the pipeline; the first Ctrl+C winds it down, a second one aborts."""

    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        return orchestrator.run(cancel)

    def _on_sigint(_signum, _frame) -> None:
        if cancel.is_set():
            raise KeyboardInterrupt
        console.print("⚠ 收到中断信号，正在停止抓取并输出已获取的结果…", style="yellow")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        return orchestrator.run(cancel)
    finally:
        signal.signal(signal.SIGINT, previous)


def _print_summary(summary: HarvestSummary) -> None:
    message = (
        f"完成：页面 {summary.pages_completed}/{summary.pages_total}，"
        f"失败 {summary.pages_failed}，输出 {summary.values_written} 条"
    )
    if summary.cancelled:
        message += "（已中断）"
    console.print(message, style="dim")


@app.command(help="枚举指定域名在 Wayback Machine 中的历史 URL。")
def harvest(
    url: Annotated[
        Optional[str],
        typer.Option("-u", "--url", help="目标 URL 模式（例如 *.example.com）", show_default=False),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("-o", "--output", help="输出文件（同时打印到标准输出）", show_default=False),
    ] = None,
    only_query: Annotated[bool, typer.Option("--only-query", help="仅输出完整查询字符串")] = False,
    only_query_keys: Annotated[bool, typer.Option("--only-query-keys", help="仅输出查询参数名")] = False,
    no_query: Annotated[bool, typer.Option("--no-query", help="去除 URL 中的查询字符串")] = False,
    extract_paths: Annotated[
        bool, typer.Option("--extract-paths", help="提取去重后的路径片段，每行一个")
    ] = False,
    subs: Annotated[bool, typer.Option("--subs", help="仅输出基础域名下去重后的子域名")] = False,
    include_ext: Annotated[
        Optional[str],
        typer.Option("--include-ext", help="仅保留这些扩展名（逗号分隔，优先于排除列表）", show_default=False),
    ] = None,
    exclude_ext: Annotated[
        Optional[str],
        typer.Option(
            "--exclude-ext",
            help="排除这些扩展名（逗号分隔）；传空值（--exclude-ext=）时使用默认排除列表",
            show_default=False,
        ),
    ] = None,
    exclude_defaults: Annotated[
        bool, typer.Option("--exclude-defaults", help="使用默认排除列表（js,css,png,jpg 等）")
    ] = False,
    workers: Annotated[
        Optional[int], typer.Option("--workers", help="行处理并发数（默认 20）", show_default=False)
    ] = None,
    page_workers: Annotated[
        Optional[int], typer.Option("--page-workers", help="CDX 分页抓取并发数（默认 10）", show_default=False)
    ] = None,
    timeout: Annotated[
        Optional[float], typer.Option("--timeout", help="HTTP 超时秒数（默认 80）", show_default=False)
    ] = None,
    endpoint: Annotated[
        Optional[str], typer.Option("--endpoint", help="CDX 接口地址", show_default=False)
    ] = None,
    config_file: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            help="YAML/JSON 默认配置文件，命令行参数优先",
            envvar=CONFIG_ENV_VAR,
            exists=True,
            dir_okay=False,
            show_default=False,
        ),
    ] = None,
    log_dir: Annotated[
        Optional[Path], typer.Option("--log-dir", help="写入 harvest.log / error.log 的目录", show_default=False)
    ] = None,
    quiet: Annotated[bool, typer.Option("--quiet", help="静默模式，不显示进度条与汇总")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", help="开启调试日志")] = False,
) -> None:
    mode = _resolve_mode(only_query, only_query_keys, no_query, extract_paths, subs)
    overrides = {
        "url_pattern": url,
        "mode": mode,
        "output_file": output,
        "include_ext": include_ext,
        "exclude_ext": exclude_ext,
        "exclude_defaults": exclude_defaults or None,
        "workers": workers,
        "page_workers": page_workers,
        "timeout": timeout,
        "cdx_endpoint": endpoint,
        "log_dir": log_dir,
    }
    try:
        config = build_config(overrides, config_file)
    except ValidationError as exc:
        if url is None and any(err["loc"] == ("url_pattern",) for err in exc.errors()):
            raise typer.BadParameter("必须提供 -u/--url", param_hint="-u/--url") from exc
        console.print(f"❌ ERROR 配置无效：{exc}", style="red")
        raise typer.Exit(code=1) from exc
    except (OSError, ValueError) as exc:
        console.print(f"❌ ERROR 读取配置失败：{exc}", style="red")
        raise typer.Exit(code=1) from exc

    configure_logging(verbose, config.log_dir)
    progress = ProgressReporter(enabled=not quiet)
    orchestrator = build_orchestrator(config, progress)
    try:
        summary = _run_with_interrupt(orchestrator)
    except FilterCompileError as exc:
        console.print(f"❌ ERROR 扩展名过滤规则编译失败：{exc}", style="red")
        raise typer.Exit(code=1) from exc
    except PageCountError as exc:
        console.print(f"❌ ERROR 获取 CDX 页数失败：{exc}", style="red")
        raise typer.Exit(code=1) from exc
    except ResultWriteError as exc:
        console.print(f"❌ ERROR 写入结果失败：{exc.__cause__ or exc}", style="red")
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        console.print(f"❌ ERROR 无法创建输出文件：{exc}", style="red")
        raise typer.Exit(code=1) from exc

    if summary.pages_total == 0:
        console.print("CDX 未返回任何分页，无需处理。", style="yellow")
        return
    if summary.output_path is not None:
        console.print(f"✔ 结果已保存至 {summary.output_path}", style="green")
    if not quiet:
        _print_summary(summary)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
