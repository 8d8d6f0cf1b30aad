from shelfpad.main import cli

cli()
