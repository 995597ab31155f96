from player_integration.cli import main

main()
