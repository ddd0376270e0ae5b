from tuture.cli import main

main()
