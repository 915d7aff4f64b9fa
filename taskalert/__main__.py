from taskalert.main import main

main()
