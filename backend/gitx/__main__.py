from gitx.main import main

main()
