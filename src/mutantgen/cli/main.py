# Copyright (c) Syntropy Systems
"""Main CLI entry point for mutantgen."""

import typer

from mutantgen.cli.analyze import analyze
from mutantgen.cli.doctor import doctor
from mutantgen.cli.estimate import estimate
from mutantgen.cli.generate import generate
from mutantgen.cli.init_cmd import init
from mutantgen.cli.providers import providers
from mutantgen.cli.report import report

app = typer.Typer(
    name="mutantgen",
    help=(
        "Mutation-guided test generation. Draft tests with a language model, "
        "improve them until they kill enough mutants."
    ),
    no_args_is_help=True,
    add_completion=False,
)

# Register commands
_ = app.command()(init)
_ = app.command()(generate)
_ = app.command()(analyze)
_ = app.command()(providers)
_ = app.command()(doctor)
_ = app.command()(estimate)
_ = app.command()(report)


if __name__ == "__main__":
    app()
