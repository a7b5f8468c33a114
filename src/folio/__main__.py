from folio.cli.app import app

app()
