from medplum_mcp.server import main

main()
