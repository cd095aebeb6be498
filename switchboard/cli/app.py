"""
Main CLI application for switchboard.

Usage:
    sb chat [--model NAME] [--profile NAME] [--verbose]
    sb models
    sb tools list|info
    sb config show|validate
    sb version
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from switchboard.config import ProviderConfig, SwitchboardConfig, find_config_file, load_config
from switchboard.llm.errors import ModelNotRecognizedError
from switchboard.llm.providers.base import ProviderAdapter
from switchboard.llm.providers.grok import GrokAdapter
from switchboard.llm.providers.ollama import OllamaAdapter
from switchboard.llm.providers.openai_compat import OpenAICompatAdapter
from switchboard.llm.registry import ProviderRegistry
from switchboard.tools.builtin import build_dispatch_table
from switchboard.tools.dispatch import ToolDispatchTable

app = typer.Typer(name="sb", help="Switchboard - multi-provider coding assistant")
tools_app = typer.Typer(help="Tool management")
config_app = typer.Typer(help="Configuration management")

app.add_typer(tools_app, name="tools")
app.add_typer(config_app, name="config")

console = Console()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load(profile: str | None = None, config_path: Path | None = None) -> SwitchboardConfig:
    try:
        return load_config(config_path or find_config_file(), profile=profile)
    except (KeyError, ValueError, OSError) as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1)


def build_provider(name: str, pcfg: ProviderConfig) -> ProviderAdapter:
    """Instantiate the adapter described by one ``providers`` entry."""
    if pcfg.type == "ollama":
        return OllamaAdapter(
            url=pcfg.api_base or "http://localhost:11434",
            model=pcfg.default_model or "llama3.1",
            models=pcfg.models or None,
            timeout=pcfg.timeout_seconds,
        )
    if pcfg.type == "grok":
        cls = GrokAdapter
    elif pcfg.type == "openai":
        cls = OpenAICompatAdapter
    else:
        raise ValueError(f"Provider {name!r}: unknown type {pcfg.type!r}")
    return cls(
        url=pcfg.api_base or None,
        model=pcfg.default_model or None,
        api_key=pcfg.api_key(),
        timeout=pcfg.timeout_seconds,
        max_retries=pcfg.max_retries,
        models=pcfg.models or None,
        discover_models=pcfg.discover_models,
        name=name,
    )


def build_registry(cfg: SwitchboardConfig) -> ProviderRegistry:
    """
    Register the configured providers, default provider first.

    Non-default providers whose API key variable is unset are skipped.
    """
    if cfg.default_provider not in cfg.providers:
        raise ValueError(f"Invalid default provider: {cfg.default_provider!r}")

    registry = ProviderRegistry()
    order = [cfg.default_provider] + [n for n in cfg.providers if n != cfg.default_provider]
    for name in order:
        pcfg = cfg.providers[name]
        if name != cfg.default_provider and pcfg.api_key_env and not pcfg.api_key():
            logger.info("Skipping provider %s: %s is not set", name, pcfg.api_key_env)
            continue
        registry.register(name, build_provider(name, pcfg))
    return registry


def build_tools(cfg: SwitchboardConfig) -> ToolDispatchTable:
    return build_dispatch_table(
        working_dir=cfg.tools.working_dir or None,
        bash_timeout=cfg.tools.bash_timeout_seconds,
        disabled=cfg.tools.disabled,
    )


async def _setup_stack(cfg: SwitchboardConfig, model: str | None = None):
    """Wire up the full stack for chat."""
    from switchboard.cli.chat import ChatHandler
    from switchboard.llm.token_counter import TokenCounter
    from switchboard.orchestrator.core import ConversationOrchestrator
    from switchboard.prompts.system import build_system_prompt, load_custom_instructions

    registry = build_registry(cfg)
    await registry.initialize_all()

    target_model = model or cfg.default_model
    if target_model:
        try:
            registry.switch_model(target_model)
        except ModelNotRecognizedError as e:
            console.print(f"[yellow]Warning:[/yellow] {escape(str(e))}")

    tools = build_tools(cfg)
    working_dir = cfg.tools.working_dir or None

    system_prompt = build_system_prompt(
        tool_names=tools.names(),
        working_dir=working_dir,
        custom_instructions=load_custom_instructions(
            cfg.custom_instructions_path or None, working_dir
        ),
    )

    orchestrator = ConversationOrchestrator(
        providers=registry,
        tools=tools,
        system_prompt=system_prompt,
        max_rounds=cfg.orchestrator.max_rounds,
        options=cfg.orchestrator.request_options(),
        token_counter=TokenCounter(registry.active.current_model),
    )
    handler = ChatHandler(orchestrator=orchestrator, console=console)
    if cfg.tools.confirm:
        tools.confirm = handler.confirm_tool
    return handler


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def chat(
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model to start with"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to a config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Run file and shell tools without asking"),
):
    """Start an interactive chat session."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = _load(profile, config)
    if yes:
        cfg.tools.confirm = False

    async def _run():
        handler = await _setup_stack(cfg, model)
        await handler.run_loop()

    try:
        asyncio.run(_run())
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


@app.command()
def models(
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """List the models each configured provider serves."""
    from switchboard.cli.output import OutputFormatter

    cfg = _load(profile)

    async def _run() -> ProviderRegistry:
        registry = build_registry(cfg)
        await registry.initialize_all()
        return registry

    try:
        registry = asyncio.run(_run())
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    OutputFormatter(console).format_model_list(
        registry.all_models(), registry.active.current_model
    )


@tools_app.command("list")
def tools_list():
    """List registered tools."""
    from switchboard.cli.output import OutputFormatter

    tools = build_tools(_load())
    OutputFormatter(console).format_tool_list(tools.list())


@tools_app.command("info")
def tools_info(tool_name: str = typer.Argument(..., help="Tool name")):
    """Show tool details and schema."""
    from switchboard.cli.output import OutputFormatter

    entry = build_tools(_load()).get(tool_name)
    if not entry:
        console.print(f"[red]Tool not found:[/red] {tool_name}")
        raise typer.Exit(1)

    OutputFormatter(console).format_tool_info(entry)


@config_app.command("show")
def config_show(
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """Show effective config."""
    from switchboard.cli.output import OutputFormatter

    OutputFormatter(console).format_config(_load(profile).to_dict())


@config_app.command("validate")
def config_validate():
    """Validate config and report problems."""
    config_path = find_config_file()
    cfg = _load(config_path=config_path)
    problems = cfg.validate()
    if problems:
        console.print("[red]Config validation failed:[/red]")
        for p in problems:
            console.print(f"  - {p}")
        raise typer.Exit(1)

    console.print("[green]Config is valid.[/green]")
    if config_path:
        console.print(f"  Loaded from: {config_path}")
    else:
        console.print("  [dim]No config file found, using defaults.[/dim]")
    console.print(f"  Default provider: {cfg.default_provider}")
    console.print(f"  Providers: {', '.join(cfg.providers)}")
    console.print(f"  Max tool rounds: {cfg.orchestrator.max_rounds}")


@app.command()
def version():
    """Show version."""
    console.print("switchboard v0.1.0")


def main():
    app()


if __name__ == "__main__":
    main()
