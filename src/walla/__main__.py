from walla.cli import main

main()
