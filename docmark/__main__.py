from docmark.cli.cli import main

main()
