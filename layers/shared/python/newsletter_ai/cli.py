from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from newsletter_ai.config import ConfigError
from newsletter_ai.store import ArtifactStore
from newsletter_ai.tools import ToolSpec
from newsletter_ai.tools import insights as insights_tool
from newsletter_ai.tools import social_post as social_post_tool


def tool_catalog(store: ArtifactStore | None = None) -> dict[str, ToolSpec]:
    """Every tool this package ships, keyed by name."""
    store = store or ArtifactStore(table_name=os.getenv("TABLE_NAME") or "unset")
    tools = [social_post_tool.build_tool(store), insights_tool.build_tool(store)]
    return {t.name: t for t in tools}


def _read_arg(value: str) -> str:
    """`@path` reads the file, anything else is used as-is."""
    if value.startswith("@"):
        return Path(value[1:]).expanduser().read_text(encoding="utf-8")
    return value


def run(argv: list[str]) -> int:
    import typer
    from dotenv import load_dotenv

    from typing import NoReturn

    app = typer.Typer(
        add_completion=False,
        help="newsletter-ai: inspect tools and run model-driven newsletter steps",
        no_args_is_help=True,
    )

    def _die(msg: str, code: int = 2) -> NoReturn:
        typer.echo(f"ERROR: {msg}", err=True)
        raise typer.Exit(code=code)

    def _emit(obj: Any) -> None:
        typer.echo(json.dumps(obj, indent=2, default=str))

    @app.callback()
    def _root(
        env_file: str | None = typer.Option(None, "--env-file", help="Load environment from this .env file"),
    ) -> None:
        load_dotenv(env_file or os.getenv("ENV_FILE", ".env"))

    @app.command("tools")
    def tools_cmd() -> None:
        """Print the tool signatures shown to the model."""
        _emit([t.signature().to_dict() for t in tool_catalog().values()])

    @app.command("validate")
    def validate_cmd(
        tool: str = typer.Argument(..., help="Tool name, e.g. createSocialMediaPost"),
        args: str = typer.Argument(..., help="Arguments as JSON, or @file.json"),
    ) -> None:
        """Validate tool arguments offline, without calling the model or AWS."""
        spec = tool_catalog().get(tool)
        if spec is None:
            _die(f"unknown tool: {tool}", code=2)
        checked = spec.validator.validate(_read_arg(args))
        _emit({"ok": checked.ok, "violations": [v.to_dict() for v in checked.violations]})
        if not checked.ok:
            raise typer.Exit(code=1)

    @app.command("social-post")
    def social_post_cmd(
        tenant: str = typer.Option(..., "--tenant", help="Tenant id"),
        issue: str = typer.Option(..., "--issue", help="Issue id"),
        content: str = typer.Option(..., "--content", help="Issue content, or @file"),
    ) -> None:
        """Generate a LinkedIn post for an issue (calls Bedrock and DynamoDB)."""
        from newsletter_ai.config import load_config
        from newsletter_ai.workflows import generate_social_post

        cfg = load_config()
        result = generate_social_post(
            tenant,
            issue,
            _read_arg(content),
            model_id=cfg.model_id,
            store=ArtifactStore(table_name=cfg.table_name),
            ttl_seconds=cfg.social_post_ttl_seconds,
        )
        _emit(result)
        if "copy" not in result:
            raise typer.Exit(code=1)

    @app.command("insights")
    def insights_cmd(
        tenant: str = typer.Option(..., "--tenant", help="Tenant id"),
        issue: str = typer.Option(..., "--issue", help="Issue id"),
        data: str = typer.Option(..., "--data", help="Current issue analytics JSON, or @file"),
        subject: str | None = typer.Option(None, "--subject", help="Subject line"),
    ) -> None:
        """Generate insights for an issue (calls Bedrock and DynamoDB)."""
        from newsletter_ai.config import load_config
        from newsletter_ai.workflows import generate_insights

        try:
            insight_data = json.loads(_read_arg(data))
        except json.JSONDecodeError as e:
            _die(f"--data is not valid JSON: {e}")

        cfg = load_config()
        result = generate_insights(
            tenant,
            issue,
            insight_data,
            subject,
            model_id=cfg.model_id,
            store=ArtifactStore(table_name=cfg.table_name),
        )
        _emit(result)
        if not result.get("insights"):
            raise typer.Exit(code=1)

    # Usage errors and `typer.Exit` leave through sys.exit(); report them as a return code.
    command = typer.main.get_command(app)
    try:
        command.main(args=argv, prog_name="newsletter-ai", standalone_mode=True)
    except SystemExit as e:
        if e.code is None or isinstance(e.code, int):
            return int(e.code or 0)
        typer.echo(str(e.code), err=True)
        return 1
    except ConfigError as e:
        typer.echo(f"ERROR: {e}", err=True)
        return 2
    except OSError as e:
        typer.echo(f"ERROR: {e}", err=True)
        return 2
    return 0
