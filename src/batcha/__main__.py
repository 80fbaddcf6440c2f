from batcha.cli.cli import app

app()
