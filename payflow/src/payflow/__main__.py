from payflow.main import main

main()
