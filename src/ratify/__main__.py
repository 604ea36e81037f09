from ratify.cli.main import app

app()
