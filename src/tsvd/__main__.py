from tsvd.cli import main

main()
