from focus_voyage.cli.service import cli

if __name__ == "__main__":
    cli()
