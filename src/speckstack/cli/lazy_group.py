"""Click group that imports subcommand modules on first use."""

import importlib

import click


class LazyGroup(click.Group):
    """Click Group that lazily loads commands.

    `lazy_subcommands` maps a command name to a "module.path:attribute"
    import string. The module is only imported when the command is listed
    or invoked, which keeps `--help` and simple commands fast.

    Help output is split into sections: plain commands first, then groups.
    """

    def __init__(
        self,
        *args: object,
        lazy_subcommands: dict[str, str] | None = None,
        **kwargs: object,
    ) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self.lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        return sorted({*super().list_commands(ctx), *self.lazy_subcommands})

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        if cmd_name in self.lazy_subcommands:
            return self._load(cmd_name)
        return super().get_command(ctx, cmd_name)

    def _load(self, cmd_name: str) -> click.Command:
        import_path = self.lazy_subcommands[cmd_name]
        module_name, attr_name = import_path.split(":", 1)
        command = getattr(importlib.import_module(module_name), attr_name)
        if not isinstance(command, click.Command):
            raise ValueError(f"Lazy command '{import_path}' did not resolve to a click command")
        return command

    def format_commands(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Format commands into organized sections."""
        plain: list[tuple[str, str]] = []
        groups: list[tuple[str, str]] = []
        for name in self.list_commands(ctx):
            cmd = self.get_command(ctx, name)
            if cmd is None or cmd.hidden:
                continue
            row = (name, cmd.get_short_help_str(limit=formatter.width))
            if isinstance(cmd, click.Group):
                groups.append(row)
            else:
                plain.append(row)

        if plain:
            with formatter.section("Stack Commands"):
                formatter.write_dl(plain)
        if groups:
            with formatter.section("Command Groups"):
                formatter.write_dl(groups)
