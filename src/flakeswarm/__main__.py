from flakeswarm.cli.swarm_cli import main

main()
