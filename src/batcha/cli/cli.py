"""CLI entrypoint: Typer app definition and command registration"""

import typer

from batcha.cli.commands import (
    diff_cmd, init_cmd, logs_cmd, main_callback, register_cmd,
    render_cmd, run_cmd, status_cmd, verify_cmd, version_cmd,
)


app = typer.Typer(name="batcha", no_args_is_help=True, add_completion=False,
                  help="Declarative AWS Batch Job Definition deployment tool")

app.callback()(main_callback)
app.command(name="init")(init_cmd)
app.command(name="register")(register_cmd)
app.command(name="render")(render_cmd)
app.command(name="diff")(diff_cmd)
app.command(name="status")(status_cmd)
app.command(name="run")(run_cmd)
app.command(name="logs")(logs_cmd)
app.command(name="verify")(verify_cmd)
app.command(name="version")(version_cmd)
