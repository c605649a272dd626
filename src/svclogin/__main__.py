from svclogin.app import main

main()
