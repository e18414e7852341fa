from iute_sync.app import main

main()
