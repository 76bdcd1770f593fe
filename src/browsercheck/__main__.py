from browsercheck.cli import app

app()
