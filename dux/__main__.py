from dux.cli.main import app

app()
